"""Shared transcript: ordered turns with at most one in-progress placeholder."""

import logging
from collections.abc import Iterator

from duet.models import Turn

logger = logging.getLogger(__name__)


class TranscriptStore:
    """Ordered turns, each tagged with the participant that wrote it.

    The only non-frozen turn is the placeholder of a streaming response and it
    is always the last element.
    """

    def __init__(self, turns: list[Turn] | None = None) -> None:
        self._turns: list[Turn] = list(turns or [])

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    @property
    def placeholder(self) -> Turn | None:
        if self._turns and not self._turns[-1].frozen:
            return self._turns[-1]
        return None

    def completed(self) -> list[Turn]:
        return [t for t in self._turns if t.frozen]

    def visible(self, side: int | None = None) -> list[Turn]:
        """Turns that have content, optionally restricted to one display lane."""
        return [
            t for t in self._turns
            if t.content and (side is None or t.side == side)
        ]

    def append_placeholder(self, author: int, model: str | None) -> Turn:
        if self.placeholder is not None:
            raise RuntimeError("A turn is already in progress")
        turn = Turn(role="assistant", content="", author=author, side=author, model=model)
        self._turns.append(turn)
        return turn

    def write_snapshot(self, text: str) -> None:
        """Overwrite the placeholder's content with a cumulative snapshot."""
        turn = self._require_placeholder()
        turn.content = text

    def finalize(self, text: str) -> Turn:
        turn = self._require_placeholder()
        turn.content = text
        turn.frozen = True
        return turn

    def discard_placeholder(self) -> None:
        if self.placeholder is not None:
            self._turns.pop()

    def append_authored(self, author: int, model: str | None, text: str) -> Turn:
        if self.placeholder is not None:
            raise RuntimeError("Cannot add a turn while another is in progress")
        turn = Turn(role="assistant", content=text, author=author, side=author, model=model, frozen=True)
        self._turns.append(turn)
        return turn

    def replace(self, turns: list[Turn]) -> None:
        self._turns = list(turns)

    def clear(self) -> None:
        if self._turns:
            logger.debug("Clearing transcript (%d turns)", len(self._turns))
        self._turns = []

    def _require_placeholder(self) -> Turn:
        turn = self.placeholder
        if turn is None:
            raise RuntimeError("No turn in progress")
        return turn
