"""Rich console rendering and plain-text export of the shared transcript."""

import logging
from datetime import date
from pathlib import Path

from rich.columns import Columns
from rich.console import Console, Group, RenderableType
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from duet.catalog import Catalog
from duet.models import Participant, Turn, ViewMode

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_TURN_SEPARATOR = "\n\n---\n\n"


def format_transcript(turns: list[Turn], catalog: Catalog) -> str:
    """Plain-text transcript: ``#<n> [<model name>]`` blocks, empty turns skipped."""
    visible = [t for t in turns if t.content]
    return _TURN_SEPARATOR.join(
        f"#{i} [{catalog.model_name(t.model or '')}]\n{t.content}"
        for i, t in enumerate(visible, start=1)
    )


def save_transcript(
    turns: list[Turn],
    catalog: Catalog,
    output_dir: Path,
    day: date | None = None,
) -> Path:
    """Write the transcript to ``chat-YYYY-MM-DD.txt`` in output_dir.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / f"chat-{(day or date.today()).isoformat()}.txt"
    filepath.write_text(format_transcript(turns, catalog), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath


def _turn_panel(turn: Turn, title: str, color: str) -> Panel:
    return Panel(
        Markdown(turn.content),
        title=title,
        title_align="left",
        border_style=color,
    )


def _thinking(label: str) -> Text:
    return Text(f"{label} is thinking...", style="dim italic")


def render_timeline(
    turns: list[Turn],
    participants: list[Participant],
    catalog: Catalog,
    thinking: int | None = None,
) -> RenderableType:
    """All non-empty turns in order, labelled ``#n · <model name>``."""
    parts: list[RenderableType] = [Rule("[bold]Conversation[/bold]")]
    for i, turn in enumerate((t for t in turns if t.content), start=1):
        color = participants[(turn.side or 1) - 1].color
        parts.append(_turn_panel(turn, f"#{i} · {catalog.model_name(turn.model)}", color))
    if thinking is not None:
        parts.append(_thinking(catalog.model_name(participants[thinking - 1].model)))
    return Group(*parts)


def render_split(
    turns: list[Turn],
    participants: list[Participant],
    catalog: Catalog,
    thinking: int | None = None,
) -> RenderableType:
    """One column per participant, turns numbered within their own column."""
    columns: list[RenderableType] = []
    for side, participant in enumerate(participants, start=1):
        lane = [t for t in turns if t.side == side and t.content]
        header = Text.assemble(("● ", participant.color), (catalog.model_name(participant.model), "bold"))
        body: list[RenderableType] = [header]
        body += [_turn_panel(t, f"#{i}", participant.color) for i, t in enumerate(lane, start=1)]
        if thinking == side:
            body.append(Text("Thinking...", style="dim italic"))
        columns.append(Group(*body))
    return Columns(columns, equal=True, expand=True)


def print_conversation(
    turns: list[Turn],
    participants: list[Participant],
    catalog: Catalog,
    view: ViewMode,
    thinking: int | None = None,
) -> None:
    """Print the whole conversation in the chosen view."""
    render = render_split if view is ViewMode.SPLIT else render_timeline
    console.print(render(turns, participants, catalog, thinking))


class StreamPrinter:
    """Echoes cumulative snapshots to the console as they arrive.

    Only the text past what was already printed for the current turn is
    written, so overwritten snapshots read as a continuous stream.
    """

    def __init__(self, participants: list[Participant], catalog: Catalog, out: Console = console) -> None:
        self._participants = participants
        self._catalog = catalog
        self._out = out
        self._author: int | None = None
        self._printed = 0

    def on_chunk(self, turn: Turn) -> None:
        if self._author is None:
            self._begin(turn)
        self._out.out(turn.content[self._printed:], end="", highlight=False)
        self._printed = len(turn.content)

    def on_turn_complete(self, turn: Turn) -> None:
        if self._author is None:
            self._begin(turn)
        self._out.out(turn.content[self._printed:], highlight=False)
        self._finish()

    def on_error(self, message: str) -> None:
        if self._author is not None:
            self._out.print()
        self._out.print(f"[bold red]Error:[/bold red] {escape(message)}")
        self._finish()

    def reset(self) -> None:
        """Forget the turn being echoed; its stream will not report again."""
        if self._author is not None:
            self._out.print()
        self._finish()

    def _begin(self, turn: Turn) -> None:
        participant = self._participants[(turn.side or turn.author or 1) - 1]
        label = self._catalog.model_name(turn.model or participant.model)
        self._out.print(Rule(f"[bold]{label}[/bold]", style=participant.color, align="left"))
        self._author = turn.author
        self._printed = 0

    def _finish(self) -> None:
        self._author = None
        self._printed = 0
