"""Command: store initialization (named init_cmd to avoid shadowing builtins)."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from rentrepairs.commands._base import RepairCommand
from rentrepairs.domain.assignment import FallbackPolicy

if TYPE_CHECKING:
    from rentrepairs.commands._context import AppContext

_INIT_EXAMPLES = """\
  rentrepairs init
  rentrepairs init /srv/repairs --max-assignments 5
  rentrepairs init . --fallback-policy none --system-user scheduler --default-user system"""


@click.command("init", cls=RepairCommand, examples=_INIT_EXAMPLES)
@click.argument("path", required=False, default=".")
@click.option(
    "--max-assignments",
    type=click.IntRange(min=1),
    default=None,
    help="Concurrent assignments per worker.",
)
@click.option(
    "--fallback-policy",
    type=click.Choice([p.value for p in FallbackPolicy]),
    default=None,
    help="When general workers may cover specialized requests.",
)
@click.option("--system-user", "system_users", multiple=True, help="System user id (repeatable).")
@click.option("--default-user", default=None, help="Acting user when --as is omitted.")
@click.pass_obj
def init_cmd(
    app: AppContext,
    path: str,
    max_assignments: int | None,
    fallback_policy: str | None,
    system_users: tuple[str, ...],
    default_user: str | None,
) -> None:
    """Initialize a new rentrepairs store."""
    from rentrepairs.services.init import InitService

    app.emit(
        InitService.init_store(
            Path(path).resolve(),
            sections={
                "assignment": {
                    "max_concurrent_assignments": max_assignments,
                    "fallback_policy": fallback_policy,
                },
                "authorization": {"system_users": list(system_users) or None},
                "cli": {"default_user": default_user},
            },
        )
    )
