"""WAL-backed event dispatch via pluggy.

Each domain event is written to the ``event_wal`` table before its hook
runs, so nothing is lost if the process exits mid-flight. ``drain()``
retries pending and failed events synchronously.

INVARIANT: Plugin failures are warnings, never errors.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select, update

from rentrepairs.infrastructure.database.schema import event_wal
from rentrepairs.services._helpers import now_iso

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from rentrepairs.domain.events import DomainEvent
    from rentrepairs.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class EventBus:
    """Persist-then-dispatch event delivery.

    Parameters:
        engine: SQLAlchemy engine with the ``event_wal`` table.
        plugin_manager: Loaded PluginManager for hook dispatch.
        sync: Run hooks inline (tests, ``--sync``); failures then surface
            as warnings on the calling operation.
        max_retries: Attempts before an event is marked ``dead_letter``.
        max_workers: Thread pool size for asynchronous dispatch.
    """

    def __init__(
        self,
        engine: Engine,
        plugin_manager: PluginManager,
        *,
        sync: bool = False,
        max_retries: int = 3,
        max_workers: int = 2,
    ) -> None:
        self._engine = engine
        self._pm = plugin_manager
        self._sync = sync
        self._max_retries = max_retries
        self._executor: ThreadPoolExecutor | None = (
            None if sync else ThreadPoolExecutor(max_workers=max_workers)
        )
        self._futures: list[Future[str | None]] = []

    @property
    def plugin_manager(self) -> PluginManager:
        return self._pm

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def publish(self, events: Iterable[DomainEvent]) -> list[str]:
        """Dispatch committed domain events. Returns warnings from sync hooks."""
        warnings: list[str] = []
        for event in events:
            _event_id, error = self.dispatch(event.hook_name, event.payload())
            if error is not None:
                warnings.append(f"Plugin hook {event.hook_name} failed: {error}")
        return warnings

    def dispatch(self, hook_name: str, payload: dict[str, Any]) -> tuple[int, str | None]:
        """Write *hook_name* to the WAL, then run it inline or in the pool.

        Returns the WAL row id and, in sync mode, the hook error if any.
        """
        event_id = self._write_wal(hook_name, payload)
        if self._sync:
            return event_id, self._execute_hook(event_id, hook_name, payload)
        assert self._executor is not None
        self._futures.append(
            self._executor.submit(self._execute_hook, event_id, hook_name, payload)
        )
        return event_id, None

    def drain(self) -> list[dict[str, Any]]:
        """Retry pending and failed events synchronously.

        Returns ``{id, hook_name, status}`` for each retried event.
        """
        self._wait_futures()

        with self._engine.connect() as conn:
            rows = conn.execute(
                select(event_wal.c.id, event_wal.c.hook_name, event_wal.c.payload)
                .where(event_wal.c.status.in_(["pending", "failed"]))
                .order_by(event_wal.c.id)
            ).fetchall()

        results: list[dict[str, Any]] = []
        for row in rows:
            self._execute_hook(row.id, row.hook_name, json.loads(row.payload))
            with self._engine.connect() as conn:
                status = conn.execute(
                    select(event_wal.c.status).where(event_wal.c.id == row.id)
                ).scalar_one()
            results.append({"id": row.id, "hook_name": row.hook_name, "status": status})
        return results

    def shutdown(self) -> None:
        """Wait for in-flight hooks and stop the pool."""
        self._wait_futures()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _write_wal(self, hook_name: str, payload: dict[str, Any]) -> int:
        with self._engine.begin() as conn:
            result = conn.execute(
                insert(event_wal).values(
                    hook_name=hook_name,
                    payload=json.dumps(payload),
                    status="pending",
                    retries=0,
                    created=now_iso(),
                )
            )
            assert result.lastrowid is not None
            return result.lastrowid

    def _execute_hook(self, event_id: int, hook_name: str, payload: dict[str, Any]) -> str | None:
        """Run one hook and record the outcome. Returns the error text on failure."""
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            self._mark_completed(event_id)
            return None

        try:
            hook_fn(**payload)
        except Exception as exc:
            logger.warning("Hook %s failed for event %d: %s", hook_name, event_id, exc)
            self._mark_failed(event_id, str(exc))
            return str(exc)
        self._mark_completed(event_id)
        return None

    def _mark_completed(self, event_id: int) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                update(event_wal)
                .where(event_wal.c.id == event_id)
                .values(status="completed", completed=now_iso())
            )

    def _mark_failed(self, event_id: int, error: str) -> None:
        """Increment retries; mark ``dead_letter`` once retries are exhausted."""
        with self._engine.begin() as conn:
            retries = conn.execute(
                select(event_wal.c.retries).where(event_wal.c.id == event_id)
            ).scalar_one()
            new_retries = retries + 1
            new_status = "dead_letter" if new_retries >= self._max_retries else "failed"
            conn.execute(
                update(event_wal)
                .where(event_wal.c.id == event_id)
                .values(
                    status=new_status,
                    error=error,
                    retries=new_retries,
                    completed=now_iso() if new_status == "dead_letter" else None,
                )
            )

    def _wait_futures(self) -> None:
        for future in self._futures:
            # Hook errors are recorded in the WAL by _execute_hook.
            future.result(timeout=30)
        self._futures.clear()
