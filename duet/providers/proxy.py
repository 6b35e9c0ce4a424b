"""Streaming client for the HTTP completion proxy, using httpx."""

import logging
import os
import time

import httpx

from config.config_loader import EndpointConfig
from duet.models import NO_RESPONSE, PromptMessage
from duet.providers.base import ChatStreamer, ChunkCallback, RequestFailed, UnreadableStream
from duet.providers.sse import EventStreamDecoder

logger = logging.getLogger(__name__)

_GENERIC_FAILURE = "Failed to send message"


class ProxyStreamer(ChatStreamer):
    """POSTs ``{model, messages}`` to the proxy and decodes its event stream."""

    def __init__(self, config: EndpointConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        headers = {"Content-Type": "application/json"}
        api_key = os.environ.get(config.api_key_env, "").strip() if config.api_key_env else ""
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(timeout=config.timeout_sec)
        self._headers = headers

    def name(self) -> str:
        return "proxy"

    async def stream_chat(
        self,
        model: str,
        messages: list[PromptMessage],
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        start = time.monotonic()
        body = {"model": model, "messages": [m.to_dict() for m in messages]}
        decoder = EventStreamDecoder()
        full_content = ""

        try:
            async with self._client.stream(
                "POST", self._config.url, json=body, headers=self._headers
            ) as response:
                if not response.is_success:
                    raise RequestFailed(self.name(), await _error_message(response))

                try:
                    async for data in response.aiter_bytes():
                        for delta in decoder.feed(data):
                            full_content += delta
                            if on_chunk:
                                on_chunk(full_content)
                except httpx.StreamError as exc:
                    raise UnreadableStream(self.name(), "Response body is not readable") from exc
        except httpx.HTTPError as exc:
            raise RequestFailed(self.name(), f"Request failed: {exc}") from exc

        logger.info(
            "Proxy stream %s: %.2fs, %d chars",
            model,
            time.monotonic() - start,
            len(full_content),
        )
        return full_content or NO_RESPONSE

    async def aclose(self) -> None:
        await self._client.aclose()


async def _error_message(response: httpx.Response) -> str:
    """Error text reported by the server in ``{"error": ...}``, else a generic one."""
    try:
        await response.aread()
        payload = response.json()
    except (httpx.HTTPError, ValueError):
        logger.debug("Error response %d had no JSON body", response.status_code)
        return _GENERIC_FAILURE
    if isinstance(payload, dict) and payload.get("error"):
        error = payload["error"]
        if isinstance(error, dict):
            return str(error.get("message") or _GENERIC_FAILURE)
        return str(error)
    return _GENERIC_FAILURE
