"""Click CLI: wires config, streaming client and orchestrator, then runs the control loop."""

import asyncio
import logging
import sys
import threading
from pathlib import Path
from typing import TextIO

import click
from dotenv import load_dotenv
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, load_config
from duet.catalog import Catalog
from duet.healthcheck import run_health_checks
from duet.models import Mode, Participant, Turn, ViewMode
from duet.orchestrator import Orchestrator
from duet.output import StreamPrinter, console, print_conversation, save_transcript
from duet.providers.base import ChatStreamer, ProviderError
from duet.providers.openai_provider import OpenAIStreamer
from duet.providers.proxy import ProxyStreamer

logger = logging.getLogger(__name__)

_HELP = """\
[bold]Controls[/bold]
  [cyan]Enter[/cyan]            next turn (manual mode)
  [cyan]<text>[/cyan]           write the next turn yourself (manual mode)
  [cyan]/pause[/cyan]           pause or resume
  [cyan]/mode[/cyan]            switch between auto and manual
  [cyan]/view[/cyan]            switch between split and timeline view
  [cyan]/show[/cyan]            print the conversation
  [cyan]/topic <text>[/cyan]    set the topic (before starting)
  [cyan]/model <1|2> <id>[/cyan]    change a participant's model
  [cyan]/persona <1|2> <id>[/cyan]  change a participant's personality
  [cyan]/models[/cyan]          list known models and personalities
  [cyan]/start[/cyan]           start the conversation
  [cyan]/reset[/cyan]           clear everything
  [cyan]/save[/cyan]            save the transcript as text
  [cyan]/quit[/cyan]            exit"""


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_streamer(config: AppConfig, backend: str) -> ChatStreamer:
    if backend == "openai":
        return OpenAIStreamer(config.openai)
    return ProxyStreamer(config.endpoint)


def _build_participants(
    config: AppConfig,
    models: tuple[str | None, str | None],
    personalities: tuple[str | None, str | None],
    colors: tuple[str | None, str | None],
) -> list[Participant]:
    """Participants from config, with any CLI overrides applied."""
    return [
        Participant(
            model=models[i] or p.model,
            color=colors[i] or p.color,
            personality=personalities[i] or p.personality,
        )
        for i, p in enumerate(config.participants)
    ]


class ConsoleControls:
    """Maps typed commands onto orchestrator actions."""

    def __init__(
        self,
        orchestrator: Orchestrator,
        view: ViewMode,
        output_dir: Path,
    ) -> None:
        self.orchestrator = orchestrator
        self.view = view
        self.output_dir = output_dir

    async def handle(self, line: str) -> bool:
        """Run one command line. Returns False when the user asked to quit."""
        orch = self.orchestrator
        text = line.rstrip("\n")
        command, _, arg = text.strip().partition(" ")

        if not text.strip():
            if orch.handle_key("space"):
                return True
            if orch.state.mode is Mode.AUTO:
                console.print("[dim]Auto mode: turns advance on their own. /mode to switch.[/dim]")
            elif not orch.state.running:
                console.print("[dim]Paused. /pause to resume.[/dim]")
            return True

        if not command.startswith("/"):
            orch.state.manual_message = text
            if orch.send_manual_message() is None:
                console.print("[yellow]Manual turns need manual mode, a running conversation and an idle model.[/yellow]")
            return True

        if command == "/quit":
            return False
        if command == "/help":
            console.print(_HELP)
        elif command == "/pause":
            running = orch.toggle_running()
            console.print("[green]Resumed[/green]" if running else "[yellow]Paused[/yellow]")
        elif command == "/mode":
            orch.set_mode(Mode.MANUAL if orch.state.mode is Mode.AUTO else Mode.AUTO)
            label = "Auto" if orch.state.mode is Mode.AUTO else "Manual (Enter)"
            console.print(f"Mode: [bold]{label}[/bold]")
        elif command == "/view":
            self.view = ViewMode.TIMELINE if self.view is ViewMode.SPLIT else ViewMode.SPLIT
            self._show()
        elif command == "/show":
            self._show()
        elif command == "/topic":
            try:
                orch.topic = arg
            except RuntimeError as exc:
                console.print(f"[yellow]{exc}[/yellow]")
        elif command in ("/model", "/persona"):
            self._configure_participant(command, arg)
        elif command == "/models":
            self._list_catalog()
        elif command == "/start":
            if len(orch.transcript):
                console.print("[yellow]Already started. /reset first.[/yellow]")
            else:
                await orch.start_session()
        elif command == "/reset":
            orch.reset()
            console.print("[dim]Conversation cleared.[/dim]")
        elif command == "/save":
            if not len(orch.transcript):
                console.print("[yellow]Nothing to save yet.[/yellow]")
            else:
                path = save_transcript(orch.transcript.turns, orch.catalog, self.output_dir)
                console.print(f"[dim]Saved to: {path}[/dim]")
        else:
            console.print(f"[yellow]Unknown command {command}. /help lists commands.[/yellow]")
        return True

    def _show(self) -> None:
        orch = self.orchestrator
        thinking = orch.state.active if orch.state.loading else None
        print_conversation(orch.transcript.turns, orch.participants, orch.catalog, self.view, thinking)

    def _configure_participant(self, command: str, arg: str) -> None:
        which, _, value = arg.partition(" ")
        if which not in ("1", "2") or not value.strip():
            console.print(f"[yellow]Usage: {command} <1|2> <id>[/yellow]")
            return
        participant = self.orchestrator.participants[int(which) - 1]
        if command == "/model":
            participant.model = value.strip()
        else:
            participant.personality = value.strip()
        console.print(
            f"Participant {which}: {self.orchestrator.catalog.model_name(participant.model)}"
            f" ({participant.personality})"
        )

    def _list_catalog(self) -> None:
        catalog = self.orchestrator.catalog
        for model_id, name in catalog.models.items():
            console.print(f"  {model_id}  [dim]{name}[/dim]")
        console.print("Personalities: " + ", ".join(catalog.personalities))


async def _run_health_check(streamer: ChatStreamer, participants: list[Participant]) -> bool:
    """Ping both models and ask whether to continue if any fail."""
    console.print("\n[bold]Checking models...[/bold]")
    results = await run_health_checks(streamer, [p.model for p in participants])
    failed = [m for m, (ok, _) in results.items() if not ok]
    for model, (ok, err) in sorted(results.items()):
        if ok:
            console.print(f"  [green]OK  [/green] {model}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {model}: {short_err}")
    console.print()
    if not failed:
        return True
    return click.confirm("Start anyway?", default=False)


async def _run_session(
    orchestrator: Orchestrator,
    controls: ConsoleControls,
    health_check: bool,
) -> None:
    try:
        if health_check and not await _run_health_check(orchestrator.streamer, orchestrator.participants):
            return

        console.print(_HELP)
        console.print()
        await orchestrator.start_session()

        lines = _start_line_reader(sys.stdin)
        while True:
            line = await lines.get()
            if not line:
                # stdin closed: an automatic conversation keeps going until paused or failed
                await _wait_until_stopped(orchestrator)
                break
            if not await controls.handle(line):
                break
    finally:
        await orchestrator.wait_idle()
        await orchestrator.streamer.aclose()


def _start_line_reader(stream: TextIO) -> asyncio.Queue[str]:
    """Read lines from stream on a daemon thread and hand them to the running loop.

    An empty string marks end of input. A daemon thread blocked in readline
    does not hold up interpreter exit after Ctrl-C.
    """
    loop = asyncio.get_running_loop()
    lines: asyncio.Queue[str] = asyncio.Queue()

    def pump() -> None:
        while True:
            line = stream.readline()
            try:
                loop.call_soon_threadsafe(lines.put_nowait, line)
            except RuntimeError:
                # loop already closed
                return
            if not line:
                return

    threading.Thread(target=pump, name="stdin-reader", daemon=True).start()
    return lines


async def _wait_until_stopped(orchestrator: Orchestrator) -> None:
    """Wait while an automatic conversation keeps going on its own."""
    while orchestrator.state.mode is Mode.AUTO and orchestrator.state.running:
        await asyncio.sleep(0.2)
    await orchestrator.wait_idle()


@click.command()
@click.option("--model1", default=None, help="Model id for participant 1 (default: from config)")
@click.option("--model2", default=None, help="Model id for participant 2 (default: from config)")
@click.option("--personality1", default=None, help="Personality profile for participant 1")
@click.option("--personality2", default=None, help="Personality profile for participant 2")
@click.option("--color1", default=None, help="Display colour for participant 1")
@click.option("--color2", default=None, help="Display colour for participant 2")
@click.option("--topic", default="", help="Optional topic to open the conversation with")
@click.option("--manual", "manual_mode", is_flag=True, help="Advance turns only on Enter or typed text")
@click.option("--view", type=click.Choice([v.value for v in ViewMode]), default=None,
              help="Conversation view (default: from config)")
@click.option("--delay", type=float, default=None, help="Seconds between automatic turns (default: from config)")
@click.option("--max-turns", type=int, default=None, help="Pause automatically after this many turns")
@click.option("--backend", type=click.Choice(["proxy", "openai"]), default=None,
              help="Completion backend (default: from config)")
@click.option("--endpoint", default=None, help="Completion proxy URL (overrides config)")
@click.option("--output", "output_path", default=None, help="Directory for saved transcripts")
@click.option("--list-models", is_flag=True, help="List catalog models and personalities, then exit")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip pinging both models before starting")
def main(
    model1: str | None,
    model2: str | None,
    personality1: str | None,
    personality2: str | None,
    color1: str | None,
    color2: str | None,
    topic: str,
    manual_mode: bool,
    view: str | None,
    delay: float | None,
    max_turns: int | None,
    backend: str | None,
    endpoint: str | None,
    output_path: str | None,
    list_models: bool,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """AI Duet -- two language models talking to each other.

    \b
    Examples:
      duet --topic "Is math discovered or invented?"
      duet --manual --model1 openai/gpt-4o --model2 anthropic/claude-sonnet-4
      duet --personality1 skeptical --personality2 enthusiastic --max-turns 10
      duet --backend openai --view timeline
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    if endpoint:
        config.endpoint.url = endpoint

    catalog = Catalog.from_config(config)

    if list_models:
        for model_id, name in catalog.models.items():
            console.print(f"{model_id}  [dim]{name}[/dim]")
        console.print("Personalities: " + ", ".join(catalog.personalities))
        return

    participants = _build_participants(
        config, (model1, model2), (personality1, personality2), (color1, color2)
    )

    try:
        streamer = _build_streamer(config, backend or config.defaults.backend)
    except ProviderError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    printer = StreamPrinter(participants, catalog)

    def on_turn_complete(turn: Turn) -> None:
        printer.on_turn_complete(turn)
        if max_turns is not None and len(orchestrator.transcript) >= max_turns and orchestrator.state.running:
            orchestrator.toggle_running()
            console.print(f"[yellow]Paused after {max_turns} turns. /pause to continue.[/yellow]")

    mode = Mode.MANUAL if manual_mode else Mode(config.defaults.mode)
    orchestrator = Orchestrator(
        streamer=streamer,
        participants=participants,
        prompts=config.prompts,
        catalog=catalog,
        mode=mode,
        auto_delay_sec=delay if delay is not None else config.defaults.auto_delay_sec,
        on_chunk=printer.on_chunk,
        on_turn_complete=on_turn_complete,
        on_error=printer.on_error,
        on_reset=printer.reset,
    )
    orchestrator.topic = topic

    controls = ConsoleControls(
        orchestrator,
        view=ViewMode(view or config.defaults.view),
        output_dir=Path(output_path) if output_path else config.defaults.output_dir,
    )

    name1 = catalog.model_name(participants[0].model)
    name2 = catalog.model_name(participants[1].model)
    console.print(f"\n[bold cyan]AI Duet[/bold cyan] -- {name1} vs {name2} [{mode.value}]")
    if topic.strip():
        console.print(f"Topic: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]")

    try:
        asyncio.run(_run_session(orchestrator, controls, not skip_health_check))
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")


if __name__ == "__main__":
    main()
