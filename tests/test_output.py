"""Tests for duet/output.py."""

import asyncio
import io
from datetime import date
from pathlib import Path

from rich.console import Console

from duet.models import Mode, Turn
from duet.orchestrator import Orchestrator
from duet.output import StreamPrinter, format_transcript, render_split, render_timeline, save_transcript
from tests.conftest import ScriptedStreamer


def _turn(content: str, author: int, model: str) -> Turn:
    return Turn(content=content, author=author, side=author, model=model, frozen=True)


def _render(renderable) -> str:
    out = Console(file=io.StringIO(), width=120, color_system=None)
    out.print(renderable)
    return out.file.getvalue()


def test_format_transcript(sample_catalog):
    turns = [
        _turn("Hello!", 1, "openai/gpt-4o-mini"),
        _turn("Hi there.", 2, "anthropic/claude-3.5-haiku"),
    ]
    assert format_transcript(turns, sample_catalog) == (
        "#1 [GPT-4o Mini]\nHello!\n\n---\n\n#2 [Claude 3.5 Haiku]\nHi there."
    )


def test_format_transcript_skips_empty_turns(sample_catalog):
    turns = [
        _turn("one", 1, "openai/gpt-4o-mini"),
        Turn(content="", author=2, side=2, model="anthropic/claude-3.5-haiku"),
        _turn("two", 1, "mystery/model"),
    ]
    assert format_transcript(turns, sample_catalog) == (
        "#1 [GPT-4o Mini]\none\n\n---\n\n#2 [mystery/model]\ntwo"
    )


def test_format_transcript_empty(sample_catalog):
    assert format_transcript([], sample_catalog) == ""


def test_save_transcript(tmp_path: Path, sample_catalog):
    turns = [_turn("Hello!", 1, "openai/gpt-4o-mini")]
    saved = save_transcript(turns, sample_catalog, tmp_path / "nested", day=date(2025, 3, 14))

    assert saved.name == "chat-2025-03-14.txt"
    assert saved.read_text(encoding="utf-8") == "#1 [GPT-4o Mini]\nHello!"


def test_timeline_hides_empty_turns(participants, sample_catalog):
    turns = [
        _turn("first words", 1, "openai/gpt-4o-mini"),
        Turn(content="", author=2, side=2, model="anthropic/claude-3.5-haiku"),
    ]
    text = _render(render_timeline(turns, participants, sample_catalog))

    assert "#1 · GPT-4o Mini" in text
    assert "first words" in text
    assert "#2" not in text


def test_timeline_thinking_line(participants, sample_catalog):
    text = _render(render_timeline([], participants, sample_catalog, thinking=2))
    assert "Claude 3.5 Haiku is thinking..." in text


def test_split_numbers_within_each_side(participants, sample_catalog):
    turns = [
        _turn("alpha", 1, "openai/gpt-4o-mini"),
        _turn("beta", 2, "anthropic/claude-3.5-haiku"),
        _turn("gamma", 1, "openai/gpt-4o-mini"),
        Turn(content="", author=2, side=2, model="anthropic/claude-3.5-haiku"),
    ]
    text = _render(render_split(turns, participants, sample_catalog, thinking=2))

    for word in ("alpha", "beta", "gamma", "GPT-4o Mini", "Claude 3.5 Haiku", "Thinking..."):
        assert word in text
    assert "#3" not in text


def test_stream_printer_prints_only_new_text(participants, sample_catalog):
    out = Console(file=io.StringIO(), width=80, color_system=None)
    printer = StreamPrinter(participants, sample_catalog, out=out)
    turn = Turn(author=1, side=1, model="openai/gpt-4o-mini")

    for snapshot in ("Hel", "Hello", "Hello, world"):
        turn.content = snapshot
        printer.on_chunk(turn)
    turn.frozen = True
    printer.on_turn_complete(turn)

    text = out.file.getvalue()
    assert "GPT-4o Mini" in text
    assert text.count("Hello, world") == 1
    assert "HelHello" not in text


def test_stream_printer_manual_turn(participants, sample_catalog):
    out = Console(file=io.StringIO(), width=80, color_system=None)
    printer = StreamPrinter(participants, sample_catalog, out=out)

    printer.on_turn_complete(_turn("typed by hand", 2, "anthropic/claude-3.5-haiku"))

    text = out.file.getvalue()
    assert "Claude 3.5 Haiku" in text
    assert "typed by hand" in text


def test_stream_printer_error(participants, sample_catalog):
    out = Console(file=io.StringIO(), width=80, color_system=None)
    printer = StreamPrinter(participants, sample_catalog, out=out)

    printer.on_error("Rate limited")

    assert "Error: Rate limited" in out.file.getvalue()


def test_stream_printer_reset_starts_fresh(participants, sample_catalog):
    out = Console(file=io.StringIO(), width=80, color_system=None)
    printer = StreamPrinter(participants, sample_catalog, out=out)
    turn = Turn(content="a long abandoned reply", author=1, side=1, model="openai/gpt-4o-mini")
    printer.on_chunk(turn)

    printer.reset()
    printer.on_chunk(Turn(content="new", author=1, side=1, model="openai/gpt-4o-mini"))

    text = out.file.getvalue()
    assert text.count("GPT-4o Mini") == 2
    assert text.endswith("new")


async def test_stream_echo_survives_reset_mid_stream(participants, sample_prompts_config, sample_catalog):
    out = Console(file=io.StringIO(), width=80, color_system=None)
    printer = StreamPrinter(participants, sample_catalog, out=out)
    streamer = ScriptedStreamer([["Hello there,", " first stream"], ["NEWSESSION", " text"]])
    streamer.gate = asyncio.Event()
    orchestrator = Orchestrator(
        streamer=streamer,
        participants=participants,
        prompts=sample_prompts_config,
        catalog=sample_catalog,
        mode=Mode.MANUAL,
        on_chunk=printer.on_chunk,
        on_turn_complete=printer.on_turn_complete,
        on_error=printer.on_error,
        on_reset=printer.reset,
    )

    first = asyncio.create_task(orchestrator.start_session())
    while "first stream" not in out.file.getvalue():
        await asyncio.sleep(0)
    orchestrator.reset()
    streamer.gate.set()
    await first

    streamer.gate = None
    await orchestrator.start_session()

    text = out.file.getvalue()
    assert "NEWSESSION text" in text
    assert text.count("GPT-4o Mini") == 2
