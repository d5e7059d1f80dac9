"""Rich Console factory and theme for rentrepairs output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract.  In non-TTY environments
(tests, pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

REPAIR_THEME = Theme(
    {
        "rr.ok": "bold green",
        "rr.error": "bold red",
        "rr.warning": "bold yellow",
        "rr.op": "bold cyan",
        "rr.key": "dim",
        "rr.id": "bold blue",
        "rr.title": "bold",
        "rr.status.submitted": "cyan",
        "rr.status.in_review": "blue",
        "rr.status.assigned": "magenta",
        "rr.status.in_progress": "yellow",
        "rr.status.completed": "green",
        "rr.status.declined": "dim",
        "rr.status.escalated": "bold red",
        "rr.urgency.emergency": "bold red",
        "rr.urgency.critical": "red",
        "rr.urgency.high": "yellow",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=REPAIR_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    key = f"rr.status.{status}"
    return key if key in REPAIR_THEME.styles else ""


def style_for_urgency(urgency: str) -> str:
    key = f"rr.urgency.{urgency}"
    return key if key in REPAIR_THEME.styles else ""
