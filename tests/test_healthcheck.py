"""Unit tests for duet/healthcheck.py (no real API calls)."""

import asyncio

import duet.healthcheck as hc
from duet.healthcheck import run_health_checks
from duet.providers.base import RequestFailed
from tests.conftest import ScriptedStreamer


async def test_all_models_pass():
    results = await run_health_checks(ScriptedStreamer(), ["m1", "m2"])

    assert results == {"m1": (True, ""), "m2": (True, "")}


async def test_one_model_fails():
    streamer = ScriptedStreamer([["OK"], RequestFailed("proxy", "403 Forbidden")])
    results = await run_health_checks(streamer, ["good", "bad"])

    assert results["good"] == (True, "")
    ok, err = results["bad"]
    assert ok is False
    assert "403" in err


async def test_duplicate_models_pinged_once():
    streamer = ScriptedStreamer()
    results = await run_health_checks(streamer, ["same", "same"])

    assert list(results) == ["same"]
    assert len(streamer.calls) == 1


async def test_ping_message_is_single_user_turn():
    streamer = ScriptedStreamer()
    await run_health_checks(streamer, ["m"])

    _, messages = streamer.calls[0]
    assert [m.role for m in messages] == ["user"]


async def test_timeout_counts_as_failure():
    """A model that hangs past the timeout is marked as failed."""
    streamer = ScriptedStreamer()
    streamer.gate = asyncio.Event()

    original = hc._TIMEOUT_SEC
    hc._TIMEOUT_SEC = 0.05
    try:
        results = await hc.run_health_checks(streamer, ["slow"])
    finally:
        hc._TIMEOUT_SEC = original

    ok, err = results["slow"]
    assert ok is False
    assert "No reply" in err
