"""OpenAI-compatible streaming client using the openai SDK with native async."""

import logging
import os
import time

import openai
from openai import AsyncOpenAI

from config.config_loader import OpenAIConfig
from duet.models import NO_RESPONSE, PromptMessage
from duet.providers.base import ChatStreamer, ChunkCallback, ProviderError, RequestFailed

logger = logging.getLogger(__name__)


class OpenAIStreamer(ChatStreamer):
    """Streams chat completions straight from an OpenAI-compatible API.

    Works against OpenAI itself or any compatible gateway set via ``base_url``.
    """

    def __init__(self, config: OpenAIConfig, client: AsyncOpenAI | None = None) -> None:
        self._config = config
        if client is None:
            api_key = os.environ.get(config.api_key_env, "").strip()
            if not api_key:
                raise ProviderError(self.name(), f"Missing API key: {config.api_key_env}")
            client = AsyncOpenAI(api_key=api_key, base_url=config.base_url, timeout=config.timeout_sec)
        self._client = client

    def name(self) -> str:
        return "openai"

    async def stream_chat(
        self,
        model: str,
        messages: list[PromptMessage],
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        start = time.monotonic()
        full_content = ""
        try:
            stream = await self._client.chat.completions.create(
                model=model,
                messages=[m.to_dict() for m in messages],
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    full_content += content
                    if on_chunk:
                        on_chunk(full_content)
        except openai.APIStatusError as exc:
            raise RequestFailed(self.name(), _status_message(exc)) from exc
        except openai.APIError as exc:
            raise RequestFailed(self.name(), f"API call failed: {exc}") from exc

        logger.info(
            "OpenAI stream %s: %.2fs, %d chars",
            model,
            time.monotonic() - start,
            len(full_content),
        )
        return full_content or NO_RESPONSE

    async def aclose(self) -> None:
        await self._client.close()


def _status_message(exc: "openai.APIStatusError") -> str:
    body = exc.body
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return exc.message or "Failed to send message"
