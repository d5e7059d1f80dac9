"""SQLAlchemy Core table definitions for the rentrepairs database.

Timestamps are stored as UTC ISO-8601 text with microsecond precision so
that lexical order matches chronological order. Booleans are 0/1 integers.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

properties = Table(
    "properties",
    metadata,
    Column("id", Text, primary_key=True),  # PROP-NNNN
    Column("code", Text, nullable=False, unique=True),
    Column("name", Text, nullable=False),
    Column("address", Text, nullable=False),
    Column("city", Text, nullable=False),
    Column("manager_id", Text, nullable=False),
    Column("is_active", Integer, nullable=False, default=1, server_default="1"),
    Column("created_at", Text, nullable=False),
    Column("version", Integer, nullable=False, default=1, server_default="1"),
)

tenants = Table(
    "tenants",
    metadata,
    Column("id", Text, primary_key=True),  # TNT-NNNN
    Column("property_id", Text, ForeignKey("properties.id"), nullable=False),
    Column("email", Text, nullable=False),
    Column("unit", Text),
    Column("created_at", Text, nullable=False),
    UniqueConstraint("property_id", "email"),
)

workers = Table(
    "workers",
    metadata,
    Column("id", Text, primary_key=True),  # WRK-NNNN
    Column("email", Text, nullable=False, unique=True),
    Column("name", Text, nullable=False),
    Column("specialization", Text, nullable=False),
    Column("is_active", Integer, nullable=False, default=1, server_default="1"),
    Column("available", Integer, nullable=False, default=1, server_default="1"),
    Column("created_at", Text, nullable=False),
    Column("version", Integer, nullable=False, default=1, server_default="1"),
)

tenant_requests = Table(
    "tenant_requests",
    metadata,
    Column("id", Text, primary_key=True),  # REQ-NNNN
    Column("property_id", Text, ForeignKey("properties.id"), nullable=False),
    Column("tenant_id", Text, ForeignKey("tenants.id"), nullable=False),
    Column("description", Text, nullable=False),
    Column("required_specialization", Text, nullable=False),
    Column("status", Text, nullable=False),
    Column("urgency", Text, nullable=False),
    Column("assigned_worker_id", Text, ForeignKey("workers.id")),
    Column("created_at", Text, nullable=False),
    Column("assigned_at", Text),
    Column("status_timestamps", Text, nullable=False),  # JSON object
    Column("version", Integer, nullable=False, default=1, server_default="1"),
)

# Active assignments only; completed, declined and escalated requests are released.
worker_assignments = Table(
    "worker_assignments",
    metadata,
    Column("worker_id", Text, ForeignKey("workers.id"), nullable=False),
    Column("request_id", Text, ForeignKey("tenant_requests.id"), nullable=False),
    Column("position", Integer, nullable=False),
    PrimaryKeyConstraint("worker_id", "request_id"),
)

request_history = Table(
    "request_history",
    metadata,
    Column("request_id", Text, ForeignKey("tenant_requests.id"), nullable=False),
    Column("seq", Integer, nullable=False),
    Column("from_status", Text, nullable=False),
    Column("to_status", Text, nullable=False),
    Column("actor_id", Text, nullable=False),
    Column("reason", Text),
    Column("at", Text, nullable=False),
    PrimaryKeyConstraint("request_id", "seq"),
)

id_counters = Table(
    "id_counters",
    metadata,
    Column("type_prefix", Text, primary_key=True),
    Column("next_value", Integer, nullable=False, default=1, server_default="1"),
)

event_wal = Table(
    "event_wal",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("hook_name", Text, nullable=False),
    Column("payload", Text, nullable=False),  # JSON
    Column("status", Text, nullable=False),  # pending | completed | failed | dead_letter
    Column("error", Text),
    Column("retries", Integer, default=0, server_default="0"),
    Column("created", Text, nullable=False),
    Column("completed", Text),
)

Index("ix_requests_status", tenant_requests.c.status)
Index("ix_requests_property", tenant_requests.c.property_id)
Index("ix_requests_worker", tenant_requests.c.assigned_worker_id)
Index("ix_workers_specialization", workers.c.specialization)
Index("ix_event_wal_status", event_wal.c.status)


def to_iso(value: datetime) -> str:
    """Storage format for timestamps: UTC, fixed microsecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)
