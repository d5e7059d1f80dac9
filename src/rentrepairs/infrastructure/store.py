"""RepairStore: the single dependency injected into every service.

The store owns the database engine and the optional plugin event bus.
:meth:`RepairStore.transaction` yields a :class:`UnitOfWork` whose
repositories share one database transaction, so a worker and a request
changed together commit or roll back together. Domain events recorded by
the aggregates are collected only once the transaction has committed.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from rentrepairs.infrastructure.database.counters import next_sequential_id
from rentrepairs.infrastructure.database.engine import create_schema, init_database
from rentrepairs.infrastructure.principals import RepositoryPrincipalLookup
from rentrepairs.infrastructure.repositories.compiler import SpecificationCompiler
from rentrepairs.infrastructure.repositories.sql import (
    SqlPropertyRepository,
    SqlRequestRepository,
    SqlWorkerRepository,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

    from rentrepairs.config.settings import RepairSettings
    from rentrepairs.domain.events import DomainEvent
    from rentrepairs.domain.models import AggregateRoot
    from rentrepairs.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass
class UnitOfWork:
    """Repositories bound to one connection and transaction.

    ``events`` is filled after a successful commit; it stays empty when
    the transaction rolls back.
    """

    conn: Connection
    properties: SqlPropertyRepository
    workers: SqlWorkerRepository
    requests: SqlRequestRepository
    principals: RepositoryPrincipalLookup
    events: list[DomainEvent] = field(default_factory=list)
    _tracked: list[AggregateRoot] = field(default_factory=list, repr=False)

    @classmethod
    def bind(
        cls,
        conn: Connection,
        compiler: SpecificationCompiler,
        *,
        system_users: list[str],
        cap: int | None = None,
    ) -> UnitOfWork:
        tracked: list[AggregateRoot] = []
        return cls(
            conn=conn,
            properties=SqlPropertyRepository(conn, compiler, tracked),
            workers=SqlWorkerRepository(conn, compiler, tracked, cap=cap),
            requests=SqlRequestRepository(conn, compiler, tracked),
            principals=RepositoryPrincipalLookup(conn, system_users=system_users),
            _tracked=tracked,
        )

    def next_id(self, type_prefix: str) -> str:
        """Claim the next sequential id inside this transaction."""
        return next_sequential_id(self.conn, type_prefix)

    def collect_events(self) -> list[DomainEvent]:
        events: list[DomainEvent] = []
        for aggregate in self._tracked:
            events.extend(aggregate.pull_events())
        return events


class RepairStore:
    """Database access plus event bus, constructed once per process.

    Pass *engine* to run against an existing engine (tests use this for
    in-memory databases); otherwise the store initializes the SQLite file
    under ``{root}/{store.data_dir}``.
    """

    def __init__(self, settings: RepairSettings, *, engine: Engine | None = None) -> None:
        self._settings = settings
        if engine is None:
            engine = init_database(
                settings.root,
                data_dir=settings.store.data_dir,
                db_name=settings.store.db_name,
            )
        else:
            create_schema(engine)
        self._engine = engine
        self._compiler = SpecificationCompiler()
        self._event_bus: EventBus | None = None

    @property
    def root(self) -> Path:
        return self._settings.root

    @property
    def data_dir(self) -> Path:
        return self.root / self._settings.store.data_dir

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def settings(self) -> RepairSettings:
        return self._settings

    @property
    def compiler(self) -> SpecificationCompiler:
        return self._compiler

    @property
    def event_bus(self) -> EventBus | None:
        """The plugin event bus (None until :meth:`init_event_bus`)."""
        return self._event_bus

    def init_event_bus(self, *, sync: bool = False) -> EventBus:
        """Create the plugin manager, load plugins and wire the event bus."""
        from rentrepairs.plugins.builtins.audit_log import AuditLogPlugin
        from rentrepairs.plugins.event_bus import EventBus
        from rentrepairs.plugins.manager import PluginManager

        pm = PluginManager()
        if self._settings.events.plugins_enabled:
            pm.discover_and_load(local_dir=self.data_dir / "plugins")
        pm.register_plugin(AuditLogPlugin(), name="audit-log-builtin")

        self._event_bus = EventBus(
            self._engine,
            pm,
            sync=sync or self._settings.events.sync,
            max_retries=self._settings.events.max_retries,
        )
        return self._event_bus

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWork]:
        """One atomic unit of work across all aggregates.

        Commits when the block exits normally and rolls back on any
        exception. Events are collected into ``uow.events`` only after the
        commit succeeds.

        Usage::

            with store.transaction() as uow:
                request = uow.requests.get(request_id)
                worker = uow.workers.get(worker_id)
                assign_worker(worker, request, ...)
                uow.requests.update(request)
                uow.workers.update(worker)
            publish(uow.events)
        """
        with self._engine.begin() as conn:
            uow = UnitOfWork.bind(
                conn,
                self._compiler,
                system_users=self._settings.authorization.system_users,
                cap=self._settings.assignment.max_concurrent_assignments,
            )
            yield uow
        uow.events = uow.collect_events()

    @contextmanager
    def read(self) -> Iterator[UnitOfWork]:
        """A read-only unit of work; anything written is rolled back."""
        with self._engine.connect() as conn:
            yield UnitOfWork.bind(
                conn,
                self._compiler,
                system_users=self._settings.authorization.system_users,
                cap=self._settings.assignment.max_concurrent_assignments,
            )
            conn.rollback()

    def close(self) -> None:
        """Stop the event bus and release database connections."""
        if self._event_bus is not None:
            self._event_bus.shutdown()
            self._event_bus = None
        self._engine.dispose()
