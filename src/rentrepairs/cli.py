"""Root CLI group for rentrepairs with global flags and command registration."""

from __future__ import annotations

import click

from rentrepairs import __version__
from rentrepairs.commands import register_commands
from rentrepairs.commands._context import AppContext
from rentrepairs.config.settings import RepairSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="rentrepairs")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output (ids only).")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug info.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.option("--sync", is_flag=True, help="Force synchronous event dispatch.")
@click.option("--as", "user", default=None, metavar="USER", help="Act as this user id.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
    sync: bool,
    user: str | None,
) -> None:
    """rentrepairs: rental property maintenance requests."""
    ctx.ensure_object(dict)
    # Unset flags stay None so env vars and rentrepairs.toml still apply.
    settings = RepairSettings.from_cli(
        config_path=config_path,
        json_output=json_output or None,
        quiet=quiet or None,
        verbose=verbose or None,
        log_json=log_json or None,
        sync=sync or None,
        user=user,
    )
    app = AppContext(settings)
    ctx.obj = app
    ctx.call_on_close(app.close)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
