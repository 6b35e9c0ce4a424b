"""Incremental decoder for ``data: ...`` event-stream frames."""

import codecs
import json
import logging

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class EventStreamDecoder:
    """Turns raw body bytes into content deltas.

    Bytes are buffered until a newline completes a line; the partial tail is
    kept for the next ``feed``. A ``[DONE]`` frame stops processing of the
    current chunk and leaves the remaining lines buffered.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, data: bytes) -> list[str]:
        """Add body bytes and return the content deltas of every complete frame."""
        self._buffer += self._utf8.decode(data)
        deltas: list[str] = []

        while True:
            line_end = self._buffer.find("\n")
            if line_end == -1:
                break

            line = self._buffer[:line_end].strip()
            self._buffer = self._buffer[line_end + 1:]

            if not line.startswith(DATA_PREFIX):
                continue
            payload = line[len(DATA_PREFIX):]
            if payload == DONE_SENTINEL:
                break

            delta = parse_delta(payload)
            if delta:
                deltas.append(delta)

        return deltas


def parse_delta(payload: str) -> str | None:
    """Return the first choice's ``delta.content`` of a JSON frame, if any.

    Malformed or unexpectedly shaped frames yield None.
    """
    try:
        parsed = json.loads(payload)
        content = parsed["choices"][0]["delta"].get("content")
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        logger.debug("Skipping malformed frame: %.80s", payload)
        return None
    if not isinstance(content, str):
        return None
    return content
