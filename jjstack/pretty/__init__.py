"""Pretty formatting utilities for CLI output.

`render_progress` projects a MergeModel onto text. It only reads the model,
so it can be called after any message, including while a command is running.
"""

import shutil
import sys
from typing import IO, Callable, List, Optional

import click
from wcwidth import wcswidth, wcwidth

from ..merge.model import MergeModel, Phase
from ..stack import Revision, Stack, SyncState
from ..util import first_line

# Graph characters for the revision stack (jj-inspired)
GRAPH_TRUNK = "◆"
GRAPH_PENDING = "○"
GRAPH_IN_PROGRESS = "◉"
GRAPH_SUCCESS = "✓"
GRAPH_ERROR = "✗"
GRAPH_LINE = "│"

SPINNER_FRAMES = ["⣾", "⣽", "⣻", "⢿", "⡿", "⣟", "⣯", "⣷"]

CHANGE_ID_WIDTH = 8
MIN_DESCRIPTION_WIDTH = 10

UrlFunc = Callable[[int], str]


def get_term_width() -> int:
    """Get terminal width, default to 80 if can't detect."""
    try:
        return shutil.get_terminal_size().columns
    except (OSError, ValueError):
        return 80


def header(text: str, use_emoji: bool = True) -> str:
    """Create a header with optional emoji."""
    width = get_term_width()

    h_line = "─" * (width - 2)
    v_line = "│"
    emoji = "🥞 " if use_emoji else ""

    result = [
        f"┌{h_line}┐",
        f"{v_line} {emoji}{text}{' ' * max(0, width - display_width(text) - display_width(emoji) - 3)}{v_line}",
        f"└{h_line}┘"
    ]

    return "\n".join(result)


def print_header(text: str, use_emoji: bool = True, file: Optional[IO[str]] = None) -> None:
    """Print a header to file (default stdout)."""
    click.echo(header(text, use_emoji), file=file)


def style(text: str, color: bool, **kwargs: object) -> str:
    """click.style that can be switched off."""
    return click.style(text, **kwargs) if color else text  # type: ignore[arg-type]


def muted(text: str, color: bool = True) -> str:
    return style(text, color, fg="bright_black")


def success(text: str, color: bool = True) -> str:
    return style(text, color, fg="green")


def error(text: str, color: bool = True) -> str:
    return style(text, color, fg="red")


def display_width(text: str) -> int:
    """Terminal cells taken by text; wide CJK and emoji count as two."""
    width = wcswidth(text)
    if width >= 0:
        return width
    # Non-printable characters make wcswidth give up; count them as zero
    return sum(max(wcwidth(ch), 0) for ch in text)


def _cut(text: str, cells: int) -> str:
    used = 0
    for i, ch in enumerate(text):
        used += max(wcwidth(ch), 0)
        if used > cells:
            return text[:i]
    return text


def truncate(text: str, max_width: int) -> str:
    """Truncate text to max_width terminal cells, ending in "..." when cut."""
    if max_width <= 0:
        return ""
    if display_width(text) <= max_width:
        return text
    if max_width <= 3:
        return _cut(text, max_width)
    return _cut(text, max_width - 3) + "..."


def spinner_view(frame: Optional[int]) -> str:
    """Spinner glyph for a frame; None renders a static in-progress marker."""
    if frame is None:
        return GRAPH_IN_PROGRESS
    return SPINNER_FRAMES[frame % len(SPINNER_FRAMES)]


def graph_symbol(rev: Revision, frame: Optional[int] = None, color: bool = True) -> str:
    """Symbol shown in the graph column for a revision."""
    if rev.is_immutable:
        return GRAPH_TRUNK
    if rev.state is SyncState.ERROR:
        return error(GRAPH_ERROR, color)
    if rev.state is SyncState.SUCCESS:
        return success(GRAPH_SUCCESS, color)
    if rev.state is SyncState.IN_PROGRESS:
        return style(spinner_view(frame), color, fg="yellow")
    if not rev.needs_sync:
        # Already up to date
        return success(GRAPH_SUCCESS, color)
    return GRAPH_PENDING


def render_revision(rev: Revision, url_for: UrlFunc, width: int, frame: Optional[int] = None,
                    show_connector: bool = True, color: bool = True) -> str:
    """Render a revision row plus its connector/status line."""
    parts: List[str] = []
    symbol = graph_symbol(rev, frame, color)

    if rev.is_immutable:
        parts.append(muted(symbol, color))
        parts.append("  ")
        parts.append(muted(rev.change.description, color))
    else:
        parts.append(symbol)
        parts.append("  ")
        change_id = rev.change_id[:CHANGE_ID_WIDTH]
        prefix = rev.change.short_id[:CHANGE_ID_WIDTH]
        if change_id.startswith(prefix):
            parts.append(style(prefix, color, fg="magenta", bold=True))
            parts.append(muted(change_id[len(prefix):], color))
        else:
            parts.append(style(change_id, color, fg="magenta"))
        parts.append("  ")

        pr_text = url_for(rev.pr_number) if rev.pr_number > 0 else "(no PR)"
        # symbol + three separators + change id + PR link
        fixed_width = 2 + 6 + CHANGE_ID_WIDTH + display_width(pr_text)
        available = max(MIN_DESCRIPTION_WIDTH, width - fixed_width)
        parts.append(truncate(first_line(rev.change.description), available))
        parts.append("  ")
        parts.append(muted(pr_text, color))
    parts.append("\n")

    if show_connector:
        parts.append(GRAPH_LINE)
    if rev.status_msg and rev.state in (SyncState.IN_PROGRESS, SyncState.ERROR):
        parts.append("  ")
        if rev.state is SyncState.ERROR:
            parts.append(error(rev.status_msg, color))
        else:
            parts.append(muted(rev.status_msg, color))
    parts.append("\n")
    return "".join(parts)


def render_stack(stack: Stack, url_for: UrlFunc, width: int, frame: Optional[int] = None,
                 color: bool = True) -> str:
    """Render every revision, newest at the top and trunk last."""
    last = len(stack.revisions) - 1
    return "".join(
        render_revision(rev, url_for, width, frame, show_connector=i < last, color=color)
        for i, rev in enumerate(stack.revisions)
    )


def render_progress(model: MergeModel, width: Optional[int] = None, animate: bool = True,
                    color: bool = True) -> str:
    """Project the current run state onto a progress view."""
    width = width or get_term_width()
    frame = model.spinner_frame if animate else None
    spin = style(spinner_view(frame), color, fg="yellow")

    def stack_view() -> str:
        return render_stack(model.stack, model.github.pull_request_url, width, frame, color)

    phase = model.phase
    if model.quit and phase not in (Phase.COMPLETE, Phase.ERROR):
        return stack_view() + "Merge cancelled, nothing was merged.\n"

    if phase is Phase.LOADING:
        return f"{spin} Loading stack and PRs...\n"
    if phase is Phase.CONFIRMATION:
        count = model.total()
        return stack_view() + f"\n{count} PR(s) will be merged (bottom to top).\n"
    if phase is Phase.SYNCING:
        return stack_view() + f"{spin} Syncing with remote (rebasing and pushing)...\n"
    if phase in (Phase.WAITING_FOR_MERGEABLE, Phase.MERGING):
        return stack_view() + "\n"
    if phase is Phase.SYNCING_AFTER_MERGE:
        return stack_view() + f"{spin} Rebasing and pushing remaining PRs onto updated trunk...\n"
    if phase is Phase.COMPLETE:
        return stack_view() + success(f"Successfully merged {model.merged_count} PR(s)!", color) + "\n"

    # Phase.ERROR
    out = stack_view() if model.stack.revisions else ""
    out += error("Merge failed", color) + "\n\n"
    if model.err is not None:
        out += error(str(model.err), color) + "\n"
    if model.merged_count:
        out += f"Merged {model.merged_count} PR(s) before the failure.\n"
    return out


class LiveDisplay:
    """Redraws a block of text in place on a terminal, or appends on change otherwise."""

    def __init__(self, file: Optional[IO[str]] = None, interactive: Optional[bool] = None):
        self.file = file if file is not None else sys.stdout
        if interactive is None:
            isatty = getattr(self.file, "isatty", None)
            interactive = bool(isatty and isatty())
        self.interactive = interactive
        self._last: Optional[str] = None
        self._lines = 0

    def update(self, text: str) -> None:
        if text == self._last:
            return
        if self.interactive and self._lines:
            # Move to the start of the previous block and clear it
            click.echo(f"\x1b[{self._lines}F\x1b[J", file=self.file, nl=False, color=True)
        click.echo(text, file=self.file, nl=False)
        self._last = text
        self._lines = text.count("\n")

    def reset(self) -> None:
        """Forget the last block, e.g. after something else wrote to the terminal."""
        self._last = None
        self._lines = 0
