"""Abstract base for streaming chat clients."""

from abc import ABC, abstractmethod
from collections.abc import Callable

from duet.models import PromptMessage

ChunkCallback = Callable[[str], None]


class ProviderError(Exception):
    """Raised when a streaming call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        self.message = message
        super().__init__(f"[{provider_name}] {message}")


class RequestFailed(ProviderError):
    """Non-success response status, or the request never got a response."""


class UnreadableStream(ProviderError):
    """The response has no readable body."""


class ChatStreamer(ABC):
    """Streams one chat completion as cumulative text snapshots."""

    @abstractmethod
    def name(self) -> str:
        """Return the short client name (e.g. 'proxy', 'openai')."""
        ...

    @abstractmethod
    async def stream_chat(
        self,
        model: str,
        messages: list[PromptMessage],
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        """Stream a completion for ``messages`` from ``model``.

        Args:
            model: Model identifier understood by the endpoint.
            messages: Ordered role/content pairs.
            on_chunk: Called with the full text accumulated so far every time
                new content arrives. Never called with just the increment.

        Returns:
            The final accumulated text, or ``"No response"`` if nothing arrived.

        Raises:
            RequestFailed: On a non-success status or transport failure.
            UnreadableStream: When the response body cannot be read.
        """
        ...

    async def aclose(self) -> None:
        """Release any pooled connections."""
