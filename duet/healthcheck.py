"""Model health checks: ping each participant's model before starting a conversation."""

import asyncio
import logging

from duet.models import PromptMessage
from duet.providers.base import ChatStreamer

logger = logging.getLogger(__name__)

_PING_MESSAGES = [PromptMessage("user", "Reply with the word OK only.")]
_TIMEOUT_SEC = 15.0


async def _check_one(streamer: ChatStreamer, model: str) -> tuple[str, bool, str]:
    """Ping a single model. Returns (model, ok, error_message)."""
    try:
        await asyncio.wait_for(
            streamer.stream_chat(model, _PING_MESSAGES),
            timeout=_TIMEOUT_SEC,
        )
        return model, True, ""
    except TimeoutError:
        return model, False, f"No reply within {_TIMEOUT_SEC:.0f}s"
    except Exception as exc:
        return model, False, str(exc)


async def run_health_checks(
    streamer: ChatStreamer,
    models: list[str],
) -> dict[str, tuple[bool, str]]:
    """Ping all distinct models in parallel.

    Returns:
        Dict mapping model id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    unique = list(dict.fromkeys(models))
    results = await asyncio.gather(*(_check_one(streamer, m) for m in unique))
    for model, ok, err in results:
        if not ok:
            logger.warning("Health check failed for %s: %s", model, err)
    return {model: (ok, err) for model, ok, err in results}
