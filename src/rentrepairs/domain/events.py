"""Domain events raised by aggregates.

Aggregates record events while they mutate; the unit of work collects them
and hands them to the event bus after the transaction commits. Each event's
fields map 1:1 to the keyword arguments of the pluggy hook named by
``hook_name``.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict


class DomainEvent(BaseModel):
    """Base class for immutable domain event records."""

    model_config = ConfigDict(frozen=True)

    hook_name: ClassVar[str] = ""

    occurred_at: str

    def payload(self) -> dict[str, Any]:
        """Hook keyword arguments, JSON-safe."""
        return self.model_dump(mode="json")


class PropertyRegistered(DomainEvent):
    hook_name = "post_property_registered"

    property_id: str
    code: str
    manager_id: str


class TenantRegistered(DomainEvent):
    hook_name = "post_tenant_registered"

    property_id: str
    tenant_id: str
    email: str


class WorkerRegistered(DomainEvent):
    hook_name = "post_worker_registered"

    worker_id: str
    email: str
    specialization: str


class WorkerSpecializationChanged(DomainEvent):
    """Audit record of an explicit specialization change."""

    hook_name = "post_worker_specialization_changed"

    worker_id: str
    old_specialization: str
    new_specialization: str
    changed_by: str


class RequestCreated(DomainEvent):
    hook_name = "post_request_created"

    request_id: str
    property_id: str
    tenant_id: str
    required_specialization: str
    urgency: str


class RequestStatusChanged(DomainEvent):
    hook_name = "post_request_status_changed"

    request_id: str
    from_status: str
    to_status: str
    actor_id: str
    reason: str | None = None


class WorkerAssigned(DomainEvent):
    hook_name = "post_worker_assigned"

    request_id: str
    worker_id: str
    actor_id: str


class WorkerUnassigned(DomainEvent):
    hook_name = "post_worker_unassigned"

    request_id: str
    worker_id: str
    actor_id: str
    reason: str | None = None
