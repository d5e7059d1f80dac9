"""Subcommand modules for rentrepairs.

Provides register_commands() which uses deferred imports to keep
``rentrepairs --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the command groups and standalone commands on the root group."""
    # --- Groups ---
    from rentrepairs.commands.property import property_group
    from rentrepairs.commands.request import request_group
    from rentrepairs.commands.worker import worker_group

    cli.add_command(property_group)
    cli.add_command(worker_group)
    cli.add_command(request_group)

    # --- Standalone commands ---
    from rentrepairs.commands.init_cmd import init_cmd

    cli.add_command(init_cmd)
