"""Dataclasses for the AI Duet session. No I/O, no deps."""

from dataclasses import dataclass
from enum import Enum

NO_RESPONSE = "No response"


class Mode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class ViewMode(str, Enum):
    SPLIT = "split"
    TIMELINE = "timeline"


@dataclass
class PromptMessage:
    role: str              # "system", "user" or "assistant"
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class Turn:
    role: str = "assistant"
    content: str = ""
    author: int | None = None      # participant id; None for seed/system turns
    side: int | None = None        # display lane
    model: str | None = None       # model id of the author when the turn was written
    frozen: bool = False           # False only for the in-progress placeholder


@dataclass
class Participant:
    model: str
    color: str = "white"
    personality: str = "default"


@dataclass
class SessionState:
    """One record for the orchestrator's flags.

    Legal combinations are checked by ``check``: ``loading`` is true exactly
    while the transcript ends in a placeholder turn.
    """

    active: int = 1
    mode: Mode = Mode.AUTO
    running: bool = False
    loading: bool = False
    last_error: str | None = None
    topic: str = ""
    manual_message: str = ""

    def check(self, has_placeholder: bool) -> None:
        if self.active not in (1, 2):
            raise RuntimeError(f"Illegal active participant: {self.active}")
        if self.loading != has_placeholder:
            raise RuntimeError(
                f"Illegal session state: loading={self.loading}, placeholder={has_placeholder}"
            )
