"""Load settings.yaml into typed dataclasses."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_ENDPOINT_URL_ENV = "DUET_ENDPOINT_URL"


@dataclass
class EndpointConfig:
    url: str
    timeout_sec: float = 120.0
    api_key_env: str | None = None


@dataclass
class OpenAIConfig:
    api_key_env: str = "OPENAI_API_KEY"
    base_url: str | None = None
    timeout_sec: float = 120.0


@dataclass
class PromptsConfig:
    system: str = "You are having a conversation with another AI ({other_model}).{personality}"
    opening_system: str = (
        "You are having a conversation with another AI ({other_model}). "
        "Be concise but engaging. Share your perspective and ask follow-up questions "
        "when appropriate. Keep responses to 2-3 paragraphs max.{personality}"
    )
    topic_opener: str = "Let's discuss: {topic}. Please share your thoughts."
    blank_opener: str = "Start the conversation."


@dataclass
class ParticipantConfig:
    model: str
    color: str
    personality: str = "default"


@dataclass
class DefaultsConfig:
    backend: str = "proxy"
    mode: str = "auto"
    view: str = "split"
    auto_delay_sec: float = 1.0
    output_dir: Path = Path("./output")


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    endpoint: EndpointConfig
    participants: list[ParticipantConfig]
    prompts: PromptsConfig = field(default_factory=PromptsConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    models: dict[str, str] = field(default_factory=dict)          # model id -> display name
    personalities: dict[str, str] = field(default_factory=dict)   # profile id -> instruction


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if the settings file is missing and ValueError
    if it does not declare exactly two participants.
    ``DUET_ENDPOINT_URL`` in the environment overrides ``endpoint.url``.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    defaults_raw = raw.get("defaults", {})
    defaults = DefaultsConfig(
        backend=str(defaults_raw.get("backend", "proxy")),
        mode=str(defaults_raw.get("mode", "auto")),
        view=str(defaults_raw.get("view", "split")),
        auto_delay_sec=float(defaults_raw.get("auto_delay_sec", 1.0)),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
    )

    endpoint_raw = raw["endpoint"]
    endpoint_url = os.environ.get(_ENDPOINT_URL_ENV, "").strip() or str(endpoint_raw["url"])
    endpoint = EndpointConfig(
        url=endpoint_url,
        timeout_sec=float(endpoint_raw.get("timeout_sec", 120)),
        api_key_env=endpoint_raw.get("api_key_env"),
    )

    openai_raw = raw.get("openai", {})
    openai_cfg = OpenAIConfig(
        api_key_env=str(openai_raw.get("api_key_env", "OPENAI_API_KEY")),
        base_url=openai_raw.get("base_url"),
        timeout_sec=float(openai_raw.get("timeout_sec", 120)),
    )

    participants = [
        ParticipantConfig(
            model=str(p["model"]),
            color=str(p.get("color", "white")),
            personality=str(p.get("personality", "default")),
        )
        for p in raw.get("participants", [])
    ]
    if len(participants) != 2:
        raise ValueError(f"Exactly 2 participants required, got {len(participants)}")

    prompts_raw = raw.get("prompts", {})
    prompt_defaults = PromptsConfig()
    prompts = PromptsConfig(
        system=prompts_raw.get("system", prompt_defaults.system),
        opening_system=prompts_raw.get("opening_system", prompt_defaults.opening_system),
        topic_opener=prompts_raw.get("topic_opener", prompt_defaults.topic_opener),
        blank_opener=prompts_raw.get("blank_opener", prompt_defaults.blank_opener),
    )

    models = {str(m["id"]): str(m.get("name", m["id"])) for m in raw.get("models", [])}
    personalities = {str(k): str(v or "") for k, v in raw.get("personalities", {}).items()}

    logger.debug(
        "Loaded config: endpoint=%s, %d catalog models, %d personalities",
        endpoint.url,
        len(models),
        len(personalities),
    )

    return AppConfig(
        defaults=defaults,
        endpoint=endpoint,
        participants=participants,
        prompts=prompts,
        openai=openai_cfg,
        models=models,
        personalities=personalities,
    )
