"""Turn orchestration: whose turn it is, what they see, and when the next turn runs."""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from config.config_loader import PromptsConfig
from duet.catalog import Catalog
from duet.models import NO_RESPONSE, Mode, Participant, SessionState, Turn
from duet.prompting import build_prompt_view, other_participant
from duet.providers.base import ChatStreamer, ProviderError
from duet.transcript import TranscriptStore

logger = logging.getLogger(__name__)

TRIGGER_KEYS = frozenset({"space", " "})
_GENERIC_ERROR = "An error occurred"


class Orchestrator:
    """Single authority over the shared transcript and the turn cadence.

    Must be driven from a running asyncio loop. ``state.loading`` is the only
    lock: it is set from the moment a placeholder turn is appended until that
    turn is finalized or discarded.

    ``reset`` and ``start_session`` start a new epoch. A stream begun in an
    older epoch is allowed to finish, but nothing it reports touches the
    transcript or the session state.
    """

    def __init__(
        self,
        streamer: ChatStreamer,
        participants: list[Participant],
        prompts: PromptsConfig,
        catalog: Catalog,
        mode: Mode = Mode.AUTO,
        auto_delay_sec: float = 1.0,
        on_chunk: Callable[[Turn], None] | None = None,
        on_turn_complete: Callable[[Turn], None] | None = None,
        on_error: Callable[[str], None] | None = None,
        on_reset: Callable[[], None] | None = None,
    ) -> None:
        if len(participants) != 2:
            raise ValueError(f"Exactly 2 participants required, got {len(participants)}")
        self.streamer = streamer
        self.participants = participants
        self.prompts = prompts
        self.catalog = catalog
        self.auto_delay_sec = auto_delay_sec
        self.on_chunk = on_chunk
        self.on_turn_complete = on_turn_complete
        self.on_error = on_error
        self.on_reset = on_reset

        self.state = SessionState(mode=mode)
        self.transcript = TranscriptStore()

        self._epoch = 0
        self._timer: asyncio.TimerHandle | None = None
        self._timer_key: tuple[Mode, bool, bool, int] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    # --- session settings -------------------------------------------------

    @property
    def topic(self) -> str:
        return self.state.topic

    @topic.setter
    def topic(self, value: str) -> None:
        if len(self.transcript):
            raise RuntimeError("Topic cannot change once the conversation has started")
        self.state.topic = value

    @property
    def active_participant(self) -> Participant:
        return self.participants[self.state.active - 1]

    @property
    def key_binding_active(self) -> bool:
        return self.state.mode is Mode.MANUAL and self.state.running

    @property
    def auto_timer_armed(self) -> bool:
        return self._timer is not None

    def set_mode(self, mode: Mode) -> None:
        self.state.mode = mode
        logger.info("Mode: %s", mode.value)
        self._state_changed()

    def toggle_running(self) -> bool:
        """Pause or resume. Leaves ``loading`` and the transcript alone."""
        self.state.running = not self.state.running
        logger.info("Conversation %s", "resumed" if self.state.running else "paused")
        self._state_changed()
        return self.state.running

    # --- turns --------------------------------------------------------------

    async def start_session(self) -> Turn | None:
        """Open the conversation with participant 1.

        The transcript is re-set as a whole on every snapshot and on
        completion. On failure it is left empty and the session stops.
        """
        if self.state.loading:
            return None

        self._epoch += 1
        epoch = self._epoch
        self._cancel_timer()

        first = self.participants[0]
        self.state.active = 1
        self.state.running = True
        self.state.loading = True
        self.state.last_error = None
        self.transcript.replace([Turn(author=1, side=1, model=first.model)])

        view = build_prompt_view(
            [], 1, self.participants, self.state.topic, self.prompts, self.catalog, opening=True
        )
        logger.info("Starting conversation: %s vs %s", first.model, self.participants[1].model)

        def on_snapshot(text: str) -> None:
            if epoch != self._epoch:
                return
            turn = Turn(content=text, author=1, side=1, model=first.model)
            self.transcript.replace([turn])
            if self.on_chunk:
                self.on_chunk(turn)

        try:
            try:
                text = await self.streamer.stream_chat(first.model, view, on_snapshot)
            except Exception as exc:
                if epoch == self._epoch:
                    self._record_failure(exc)
                    self.transcript.clear()
                return None

            if epoch != self._epoch:
                logger.debug("Dropping opening turn from a reset session")
                return None

            turn = Turn(content=text or NO_RESPONSE, author=1, side=1, model=first.model, frozen=True)
            self.transcript.replace([turn])
            self.state.active = 2
        finally:
            if epoch == self._epoch:
                self.transcript.discard_placeholder()
                self.state.loading = False
                self._state_changed()

        if self.on_turn_complete:
            self.on_turn_complete(turn)
        return turn

    async def request_next_turn(self) -> Turn | None:
        """Stream the active participant's next turn into the transcript.

        No-op while another turn is loading. Any failure is recorded in
        ``state.last_error``, stops the session and removes the placeholder.
        """
        if self.state.loading:
            logger.debug("Turn requested while another is loading; ignored")
            return None

        epoch = self._epoch
        active = self.state.active
        participant = self.participants[active - 1]

        self.state.loading = True
        self.state.last_error = None
        view = build_prompt_view(
            self.transcript.completed(),
            active,
            self.participants,
            self.state.topic,
            self.prompts,
            self.catalog,
        )
        placeholder = self.transcript.append_placeholder(active, participant.model)
        self._state_changed()
        logger.info("Turn #%d: participant %d (%s)", len(self.transcript), active, participant.model)

        def on_snapshot(text: str) -> None:
            if epoch != self._epoch:
                return
            self.transcript.write_snapshot(text)
            if self.on_chunk:
                self.on_chunk(placeholder)

        try:
            try:
                text = await self.streamer.stream_chat(participant.model, view, on_snapshot)
            except Exception as exc:
                if epoch == self._epoch:
                    self._record_failure(exc)
                return None

            if epoch != self._epoch:
                logger.debug("Dropping turn from a reset session")
                return None

            turn = self.transcript.finalize(text or NO_RESPONSE)
            self.state.active = other_participant(active)
        finally:
            if epoch == self._epoch:
                self.transcript.discard_placeholder()
                self.state.loading = False
                self._state_changed()

        if self.on_turn_complete:
            self.on_turn_complete(turn)
        return turn

    def send_manual_message(self, text: str | None = None) -> Turn | None:
        """Write the active participant's turn by hand.

        Uses ``text`` or, when omitted, the pending ``state.manual_message``.
        Only allowed in manual mode while running and idle; returns None when
        refused.
        """
        draft = self.state.manual_message if text is None else text
        if (
            self.state.mode is not Mode.MANUAL
            or not self.state.running
            or self.state.loading
            or not draft.strip()
        ):
            return None

        active = self.state.active
        turn = self.transcript.append_authored(active, self.participants[active - 1].model, draft.strip())
        self.state.active = other_participant(active)
        self.state.manual_message = ""
        logger.info("Manual turn written for participant %d", active)
        self._state_changed()
        if self.on_turn_complete:
            self.on_turn_complete(turn)
        return turn

    def handle_key(self, key: str, in_text_input: bool = False) -> bool:
        """Trigger the next turn from the manual-mode key. Returns True if triggered."""
        if not self.key_binding_active or in_text_input or key not in TRIGGER_KEYS:
            return False
        if self.state.loading or not len(self.transcript):
            return False
        self._spawn(self.request_next_turn())
        return True

    def reset(self) -> None:
        """Wipe the conversation back to the pre-start state."""
        self._epoch += 1
        self._cancel_timer()
        self.transcript.clear()
        self.state.running = False
        self.state.loading = False
        self.state.active = 1
        self.state.last_error = None
        self.state.manual_message = ""
        logger.info("Conversation reset")
        if self.on_reset:
            self.on_reset()

    async def wait_idle(self) -> None:
        """Wait for the turn tasks currently in flight."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- internals ----------------------------------------------------------

    def _record_failure(self, exc: Exception) -> None:
        if isinstance(exc, ProviderError):
            message = exc.message
        else:
            message = str(exc) or _GENERIC_ERROR
        logger.warning("Participant %d turn failed: %s", self.state.active, message)
        self.state.last_error = message
        self.state.running = False
        self.transcript.discard_placeholder()
        if self.on_error:
            self.on_error(message)

    def _state_changed(self) -> None:
        self.state.check(has_placeholder=self.transcript.placeholder is not None)
        self._sync_auto_timer()

    def _sync_auto_timer(self) -> None:
        """Re-arm the auto-mode delay whenever its triggering conditions change."""
        key = (self.state.mode, self.state.running, self.state.loading, len(self.transcript))
        if key == self._timer_key:
            return
        self._cancel_timer()
        self._timer_key = key
        if (
            self.state.mode is Mode.AUTO
            and self.state.running
            and not self.state.loading
            and len(self.transcript) > 0
        ):
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.auto_delay_sec, self._on_auto_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._timer_key = None

    def _on_auto_timer(self) -> None:
        self._timer = None
        if self.state.running:
            self._spawn(self.request_next_turn())

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
