"""SQLite repositories over SQLAlchemy Core.

Every repository is bound to the connection of one unit of work, so all
reads and writes made through it share a single transaction. Aggregates
are hydrated with ``model_validate``; pydantic coerces the stored text
(ISO timestamps, enum values, 0/1 flags) back into domain types.

Optimistic concurrency: ``update`` issues
``UPDATE ... WHERE id = :id AND version = :expected`` and raises
:class:`ConcurrencyConflictError` when no row matches.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from sqlalchemy import Table, delete, func, insert, select, update

from rentrepairs.domain.errors import ConcurrencyConflictError, NotFoundError
from rentrepairs.domain.models import AggregateRoot, Property, TenantRequest, Worker
from rentrepairs.domain.specifications import (
    PROPERTY,
    REQUEST,
    WORKER,
    Specification,
    property_by_code,
    worker_by_email,
)
from rentrepairs.infrastructure.database.schema import (
    properties,
    request_history,
    tenant_requests,
    tenants,
    to_iso,
    worker_assignments,
    workers,
)

if TYPE_CHECKING:
    from sqlalchemy import Connection, RowMapping

    from rentrepairs.infrastructure.repositories.compiler import SpecificationCompiler

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=AggregateRoot)


class SqlRepository(Generic[A]):
    """Shared get/find/count/add/update over one aggregate table."""

    aggregate: ClassVar[str]
    label: ClassVar[str]
    table: ClassVar[Table]
    model: ClassVar[type[AggregateRoot]]
    # Relations that update() rewrites; they must be loaded to save safely.
    persisted_relations: ClassVar[frozenset[str]] = frozenset()

    def __init__(
        self,
        conn: Connection,
        compiler: SpecificationCompiler,
        tracked: list[AggregateRoot] | None = None,
    ) -> None:
        self._conn = conn
        self._compiler = compiler
        self._tracked = tracked if tracked is not None else []

    # --- reads -----------------------------------------------------------

    def get(self, aggregate_id: str) -> A:
        row = (
            self._conn.execute(select(self.table).where(self.table.c.id == aggregate_id))
            .mappings()
            .first()
        )
        if row is None:
            raise NotFoundError(
                f"No {self.label} found with ID '{aggregate_id}'",
                aggregate=self.aggregate,
                id=aggregate_id,
            )
        relations = self._compiler.mapping(self.aggregate).relations
        return self._track(self._hydrate([row], relations)[0])

    def find(self, spec: Specification[Any], *, limit: int | None = None) -> list[A]:
        query = self._compiler.compile(spec)
        stmt = query.select()
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = self._conn.execute(stmt).mappings().all()
        return [self._track(agg) for agg in self._hydrate(rows, query.includes)]

    def count(self, spec: Specification[Any]) -> int:
        query = self._compiler.compile(spec)
        return int(self._conn.execute(query.count()).scalar_one())

    # --- writes ----------------------------------------------------------

    def add(self, aggregate: A) -> None:
        self._conn.execute(
            insert(self.table).values(id=aggregate.id, version=1, **self._row(aggregate))
        )
        aggregate.version = 1
        self._write_relations(aggregate)
        self._track(aggregate)
        logger.debug("Added %s %s", self.label, aggregate.id)

    def update(self, aggregate: A) -> None:
        partial = aggregate.unloaded_relations & self.persisted_relations
        if partial:
            msg = (
                f"{self.label} {aggregate.id} was loaded without "
                f"{', '.join(sorted(partial))} and cannot be saved"
            )
            raise ValueError(msg)
        result = self._conn.execute(
            update(self.table)
            .where(self.table.c.id == aggregate.id, self.table.c.version == aggregate.version)
            .values(version=aggregate.version + 1, **self._row(aggregate))
        )
        if result.rowcount == 0:
            exists = self._conn.execute(
                select(self.table.c.id).where(self.table.c.id == aggregate.id)
            ).first()
            if exists is None:
                raise NotFoundError(
                    f"No {self.label} found with ID '{aggregate.id}'",
                    aggregate=self.aggregate,
                    id=aggregate.id,
                )
            raise ConcurrencyConflictError(
                f"{self.label} {aggregate.id} was modified by someone else",
                aggregate=self.aggregate,
                id=aggregate.id,
                expected_version=aggregate.version,
            )
        aggregate.version += 1
        self._write_relations(aggregate)
        self._track(aggregate)
        logger.debug("Updated %s %s to version %d", self.label, aggregate.id, aggregate.version)

    # --- hooks -----------------------------------------------------------

    def _row(self, aggregate: A) -> dict[str, Any]:
        raise NotImplementedError

    def _write_relations(self, aggregate: A) -> None:
        """Persist child rows after the aggregate row is written."""

    def _hydrate(self, rows: Sequence[RowMapping], relations: frozenset[str]) -> list[A]:
        raise NotImplementedError

    def _track(self, aggregate: A) -> A:
        if not any(seen is aggregate for seen in self._tracked):
            self._tracked.append(aggregate)
        return aggregate

    def _build(self, data: dict[str, Any], unloaded: frozenset[str]) -> A:
        aggregate: A = self.model.model_validate(data)  # type: ignore[assignment]
        aggregate.mark_unloaded(unloaded)
        return aggregate


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class SqlPropertyRepository(SqlRepository[Property]):
    aggregate = PROPERTY
    label = "property"
    table = properties
    model = Property

    def get_by_code(self, code: str) -> Property:
        found = self.find(property_by_code(code), limit=1)
        if not found:
            raise NotFoundError(
                f"No property found with code '{code}'",
                aggregate=self.aggregate,
                field="code",
            )
        return found[0]

    def _row(self, aggregate: Property) -> dict[str, Any]:
        return {
            "code": aggregate.code,
            "name": aggregate.name,
            "address": aggregate.address,
            "city": aggregate.city,
            "manager_id": aggregate.manager_id,
            "is_active": int(aggregate.is_active),
            "created_at": to_iso(aggregate.created_at),
        }

    def _write_relations(self, aggregate: Property) -> None:
        # Tenants are append-only; insert the ones not stored yet.
        stored = set(
            self._conn.execute(
                select(tenants.c.id).where(tenants.c.property_id == aggregate.id)
            ).scalars()
        )
        for tenant in aggregate.tenants:
            if tenant.id in stored:
                continue
            self._conn.execute(
                insert(tenants).values(
                    id=tenant.id,
                    property_id=aggregate.id,
                    email=tenant.email,
                    unit=tenant.unit,
                    created_at=to_iso(tenant.created_at),
                )
            )

    def _hydrate(
        self, rows: Sequence[RowMapping], relations: frozenset[str]
    ) -> list[Property]:
        ids = [row["id"] for row in rows]
        tenant_rows: dict[str, list[dict[str, Any]]] = defaultdict(list)
        request_ids: dict[str, list[str]] = defaultdict(list)
        if ids and "tenants" in relations:
            stmt = select(tenants).where(tenants.c.property_id.in_(ids)).order_by(tenants.c.id)
            for trow in self._conn.execute(stmt).mappings():
                tenant_rows[trow["property_id"]].append(dict(trow))
        if ids and "requests" in relations:
            stmt = (
                select(tenant_requests.c.property_id, tenant_requests.c.id)
                .where(tenant_requests.c.property_id.in_(ids))
                .order_by(tenant_requests.c.id)
            )
            for prop_id, req_id in self._conn.execute(stmt):
                request_ids[prop_id].append(req_id)
        unloaded = frozenset({"tenants", "requests"}) - relations
        return [
            self._build(
                {
                    **row,
                    "tenants": tenant_rows[row["id"]],
                    "request_ids": request_ids[row["id"]],
                },
                unloaded,
            )
            for row in rows
        ]


# ---------------------------------------------------------------------------
# Workers
# ---------------------------------------------------------------------------


class SqlWorkerRepository(SqlRepository[Worker]):
    aggregate = WORKER
    label = "worker"
    table = workers
    model = Worker
    persisted_relations = frozenset({"assignments"})

    def __init__(
        self,
        conn: Connection,
        compiler: SpecificationCompiler,
        tracked: list[AggregateRoot] | None = None,
        *,
        cap: int | None = None,
    ) -> None:
        super().__init__(conn, compiler, tracked)
        self._cap = cap

    def get_by_email(self, email: str) -> Worker | None:
        found = self.find(worker_by_email(email), limit=1)
        return found[0] if found else None

    def _row(self, aggregate: Worker) -> dict[str, Any]:
        return {
            "email": aggregate.email,
            "name": aggregate.name,
            "specialization": aggregate.specialization.value,
            "is_active": int(aggregate.is_active),
            "available": int(aggregate.available),
            "created_at": to_iso(aggregate.created_at),
        }

    def _write_relations(self, aggregate: Worker) -> None:
        self._conn.execute(
            delete(worker_assignments).where(worker_assignments.c.worker_id == aggregate.id)
        )
        for position, request_id in enumerate(aggregate.assigned_request_ids):
            self._conn.execute(
                insert(worker_assignments).values(
                    worker_id=aggregate.id, request_id=request_id, position=position
                )
            )

    def _hydrate(
        self, rows: Sequence[RowMapping], relations: frozenset[str]
    ) -> list[Worker]:
        # Assignments are always loaded: availability and capacity depend on them.
        ids = [row["id"] for row in rows]
        assigned: dict[str, list[str]] = defaultdict(list)
        if ids:
            stmt = (
                select(worker_assignments.c.worker_id, worker_assignments.c.request_id)
                .where(worker_assignments.c.worker_id.in_(ids))
                .order_by(worker_assignments.c.worker_id, worker_assignments.c.position)
            )
            for worker_id, request_id in self._conn.execute(stmt):
                assigned[worker_id].append(request_id)
        loaded = [
            self._build({**row, "assigned_request_ids": assigned[row["id"]]}, frozenset())
            for row in rows
        ]
        if self._cap is not None:
            # The stored flag reflects the cap in force when it was last saved.
            for worker in loaded:
                worker.recompute_availability(self._cap)
        return loaded


# ---------------------------------------------------------------------------
# Tenant requests
# ---------------------------------------------------------------------------


class SqlRequestRepository(SqlRepository[TenantRequest]):
    aggregate = REQUEST
    label = "request"
    table = tenant_requests
    model = TenantRequest
    persisted_relations = frozenset({"history"})

    def _row(self, aggregate: TenantRequest) -> dict[str, Any]:
        return {
            "property_id": aggregate.property_id,
            "tenant_id": aggregate.tenant_id,
            "description": aggregate.description,
            "required_specialization": aggregate.required_specialization.value,
            "status": aggregate.status.value,
            "urgency": aggregate.urgency.value,
            "assigned_worker_id": aggregate.assigned_worker_id,
            "created_at": to_iso(aggregate.created_at),
            "assigned_at": to_iso(aggregate.assigned_at) if aggregate.assigned_at else None,
            "status_timestamps": json.dumps(
                {status.value: to_iso(at) for status, at in aggregate.status_timestamps.items()}
            ),
        }

    def _write_relations(self, aggregate: TenantRequest) -> None:
        # History is append-only; rows already stored keep their sequence numbers.
        stored = int(
            self._conn.execute(
                select(func.count())
                .select_from(request_history)
                .where(request_history.c.request_id == aggregate.id)
            ).scalar_one()
        )
        for seq, change in enumerate(aggregate.history[stored:], start=stored):
            self._conn.execute(
                insert(request_history).values(
                    request_id=aggregate.id,
                    seq=seq,
                    from_status=change.from_status.value,
                    to_status=change.to_status.value,
                    actor_id=change.actor_id,
                    reason=change.reason,
                    at=to_iso(change.at),
                )
            )

    def _hydrate(
        self, rows: Sequence[RowMapping], relations: frozenset[str]
    ) -> list[TenantRequest]:
        ids = [row["id"] for row in rows]
        history: dict[str, list[dict[str, Any]]] = defaultdict(list)
        if ids and "history" in relations:
            stmt = (
                select(request_history)
                .where(request_history.c.request_id.in_(ids))
                .order_by(request_history.c.request_id, request_history.c.seq)
            )
            for hrow in self._conn.execute(stmt).mappings():
                history[hrow["request_id"]].append(dict(hrow))
        unloaded = frozenset({"history"}) - relations
        return [
            self._build(
                {
                    **row,
                    "status_timestamps": json.loads(row["status_timestamps"]),
                    "history": history[row["id"]],
                },
                unloaded,
            )
            for row in rows
        ]
