"""SQLite database engine, schema, and ID counters via SQLAlchemy Core."""

from rentrepairs.infrastructure.database.counters import next_sequential_id
from rentrepairs.infrastructure.database.engine import (
    create_db_engine,
    create_schema,
    init_database,
)
from rentrepairs.infrastructure.database.schema import (
    event_wal,
    id_counters,
    metadata,
    properties,
    request_history,
    tenant_requests,
    tenants,
    worker_assignments,
    workers,
)

__all__ = [
    "create_db_engine",
    "create_schema",
    "event_wal",
    "id_counters",
    "init_database",
    "metadata",
    "next_sequential_id",
    "properties",
    "request_history",
    "tenant_requests",
    "tenants",
    "worker_assignments",
    "workers",
]
