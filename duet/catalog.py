"""Model catalog and personality profiles."""

from dataclasses import dataclass, field

from config.config_loader import AppConfig


@dataclass
class Catalog:
    models: dict[str, str] = field(default_factory=dict)          # id -> display name
    personalities: dict[str, str] = field(default_factory=dict)   # id -> instruction

    @classmethod
    def from_config(cls, config: AppConfig) -> "Catalog":
        return cls(models=dict(config.models), personalities=dict(config.personalities))

    def model_name(self, model_id: str | None) -> str:
        """Display name for a model id, falling back to the raw id."""
        if not model_id:
            return ""
        return self.models.get(model_id, model_id)

    def personality_instruction(self, personality_id: str | None) -> str:
        """Instruction text appended to the system prompt; unknown ids add nothing."""
        if not personality_id:
            return ""
        return self.personalities.get(personality_id, "")
