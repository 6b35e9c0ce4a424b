"""Integration tests: real completion calls, no mocks. Requires a reachable proxy or an API key."""

import os

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

if not os.environ.get("DUET_ENDPOINT_URL", "").strip():
    pytestmark = pytest.mark.skip(reason="DUET_ENDPOINT_URL not set")


async def test_two_turn_conversation():
    """Open a conversation and run one reply through the configured proxy."""
    from config.config_loader import load_config
    from duet.catalog import Catalog
    from duet.models import Mode, Participant
    from duet.orchestrator import Orchestrator
    from duet.providers.proxy import ProxyStreamer

    config = load_config()
    streamer = ProxyStreamer(config.endpoint)
    orchestrator = Orchestrator(
        streamer=streamer,
        participants=[Participant(model=p.model, color=p.color) for p in config.participants],
        prompts=config.prompts,
        catalog=Catalog.from_config(config),
        mode=Mode.MANUAL,
    )
    orchestrator.topic = "Say hello in five words."
    try:
        await orchestrator.start_session()
        assert orchestrator.state.last_error is None, orchestrator.state.last_error
        assert len(orchestrator.transcript) == 1

        assert orchestrator.handle_key("space") is True
        await orchestrator.wait_idle()
        assert orchestrator.state.last_error is None, orchestrator.state.last_error
        assert [t.author for t in orchestrator.transcript] == [1, 2]
        assert all(t.content for t in orchestrator.transcript)
    finally:
        await streamer.aclose()
