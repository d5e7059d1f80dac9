"""AppContext: shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``.  Provides lazy store initialization, the acting user,
conflict retries, and centralized result emission (stdout/stderr routing
and exit codes).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import click

from rentrepairs.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from rentrepairs.config.settings import RepairSettings
    from rentrepairs.infrastructure.store import RepairStore
    from rentrepairs.services.result import ServiceResult

logger = logging.getLogger(__name__)

# Exit codes by ServiceError.kind; anything else exits 1.
EXIT_CODES: dict[str, int] = {"authorization": 3, "conflict": 4}


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The store is lazily initialized on first use so ``--help`` and
    ``--version`` never touch the database.
    """

    def __init__(self, settings: RepairSettings) -> None:
        self.settings = settings
        self._store: RepairStore | None = None

        from rentrepairs.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

        if settings.verbose:
            from rentrepairs.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def store(self) -> RepairStore:
        """The store instance (created lazily on first access)."""
        if self._store is None:
            from rentrepairs.infrastructure.store import RepairStore

            self._store = RepairStore(self.settings)
            self._store.init_event_bus(sync=self.settings.sync)
        return self._store

    @property
    def actor(self) -> str:
        """The acting user id from ``--as`` or ``[cli] default_user``."""
        user = self.settings.acting_user
        if not user:
            raise click.UsageError(
                "No acting user: pass --as USER or set [cli] default_user in rentrepairs.toml"
            )
        return user

    def run(self, call: Callable[[], ServiceResult]) -> ServiceResult:
        """Invoke *call*, retrying on optimistic-concurrency conflicts.

        Each attempt re-reads the aggregates, so a retry sees the winner's
        write. Other failures return immediately.
        """
        attempts = self.settings.cli.conflict_retries + 1
        result = call()
        for attempt in range(2, attempts + 1):
            if result.ok or result.error is None or result.error.kind != "conflict":
                break
            logger.info("%s hit a version conflict; retry %d/%d", result.op, attempt, attempts)
            result = call()
        return result

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: writes to stdout. Warnings go to stderr so they don't
          pollute piped output.
        * Failure: writes to stderr, exits 3 when forbidden, 4 on a version
          conflict, 1 otherwise.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # In JSON mode, warnings are already in the serialized payload.
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
            return
        click.echo(output, err=True)
        kind = result.error.kind if result.error else "error"
        raise SystemExit(EXIT_CODES.get(kind, 1))

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None
