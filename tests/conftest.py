"""Shared pytest fixtures."""

import asyncio
from pathlib import Path

import pytest

from config.config_loader import AppConfig, DefaultsConfig, EndpointConfig, ParticipantConfig, PromptsConfig
from duet.catalog import Catalog
from duet.models import NO_RESPONSE, Participant, PromptMessage
from duet.orchestrator import Orchestrator
from duet.providers.base import ChatStreamer, ChunkCallback


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig()


@pytest.fixture
def sample_catalog() -> Catalog:
    return Catalog(
        models={
            "openai/gpt-4o-mini": "GPT-4o Mini",
            "anthropic/claude-3.5-haiku": "Claude 3.5 Haiku",
        },
        personalities={
            "default": "",
            "skeptical": " Be analytical and questioning. Challenge assumptions and ask for evidence.",
            "concise": " Be extremely brief and to the point.",
        },
    )


@pytest.fixture
def participants() -> list[Participant]:
    return [
        Participant(model="openai/gpt-4o-mini", color="#3b82f6"),
        Participant(model="anthropic/claude-3.5-haiku", color="#22c55e"),
    ]


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_prompts_config: PromptsConfig) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(output_dir=tmp_path / "output"),
        endpoint=EndpointConfig(url="http://testserver/api/chat"),
        participants=[
            ParticipantConfig(model="openai/gpt-4o-mini", color="#3b82f6"),
            ParticipantConfig(model="anthropic/claude-3.5-haiku", color="#22c55e", personality="skeptical"),
        ],
        prompts=sample_prompts_config,
        models={"openai/gpt-4o-mini": "GPT-4o Mini"},
        personalities={"default": "", "skeptical": " Be skeptical."},
    )


class ScriptedStreamer(ChatStreamer):
    """Test double that replays scripted deltas as cumulative snapshots.

    Each script entry is a list of deltas or an exception to raise. When the
    script runs out, every further call answers "ok". Set ``gate`` to hold
    streams open until the test releases them.
    """

    def __init__(self, script: list[list[str] | Exception] | None = None) -> None:
        self.script = list(script or [])
        self.calls: list[tuple[str, list[PromptMessage]]] = []
        self.gate: asyncio.Event | None = None
        self.closed = False

    def name(self) -> str:
        return "scripted"

    async def stream_chat(
        self,
        model: str,
        messages: list[PromptMessage],
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        self.calls.append((model, list(messages)))
        step = self.script.pop(0) if self.script else ["ok"]
        full = ""
        for delta in step if isinstance(step, list) else []:
            full += delta
            if on_chunk:
                on_chunk(full)
            await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(step, Exception):
            raise step
        return full or NO_RESPONSE

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def streamer() -> ScriptedStreamer:
    return ScriptedStreamer()


@pytest.fixture
def orchestrator(streamer, participants, sample_prompts_config, sample_catalog) -> Orchestrator:
    return Orchestrator(
        streamer=streamer,
        participants=participants,
        prompts=sample_prompts_config,
        catalog=sample_catalog,
        auto_delay_sec=0.01,
    )
