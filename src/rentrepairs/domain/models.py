"""Aggregates: Property (with its Tenants), Worker and TenantRequest.

Aggregates are pydantic models. They enforce their own invariants in their
mutating methods and record :mod:`~rentrepairs.domain.events` as they go.
Repositories rehydrate them with ``model_validate`` and persist ``version``
for optimistic concurrency.

Operations spanning a worker and a request (assignment, release,
completion) live in :mod:`rentrepairs.domain.assignment`; the methods here
only touch their own aggregate.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from rentrepairs.domain.errors import (
    DomainValidationError,
    IllegalTransitionError,
    InvariantViolation,
    SpecializationConflictError,
    TerminalRequestError,
)
from rentrepairs.domain.events import (
    DomainEvent,
    PropertyRegistered,
    RequestCreated,
    RequestStatusChanged,
    TenantRegistered,
    WorkerAssigned,
    WorkerRegistered,
    WorkerSpecializationChanged,
    WorkerUnassigned,
)
from rentrepairs.domain.lifecycle import (
    ACTIVE_ASSIGNMENT_STATUSES,
    RequestStatus,
    Urgency,
    allowed_transitions,
    is_terminal,
    is_valid_transition,
)
from rentrepairs.domain.specializations import (
    Specialization,
    can_handle,
    determine_specialization,
)

MAX_DESCRIPTION_LENGTH = 2000

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_CODE_RE = re.compile(r"^[A-Z0-9][A-Z0-9-]{1,19}$")


def utc_now() -> datetime:
    return datetime.now(UTC)


def _require_text(value: str | None, field: str, *, aggregate: str) -> str:
    text = (value or "").strip()
    if not text:
        raise DomainValidationError(
            f"{field} must not be empty",
            code="FIELD_REQUIRED",
            aggregate=aggregate,
            field=field,
        )
    return text


def normalize_email(value: str, *, aggregate: str) -> str:
    email = _require_text(value, "email", aggregate=aggregate).lower()
    if not _EMAIL_RE.match(email):
        raise DomainValidationError(
            f"Invalid email address: {value!r}",
            code="INVALID_EMAIL",
            aggregate=aggregate,
            field="email",
        )
    return email


# ---------------------------------------------------------------------------
# Aggregate root base
# ---------------------------------------------------------------------------


class AggregateRoot(BaseModel):
    """Identity, version and pending events shared by every aggregate."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    version: int = 0

    _events: list[DomainEvent] = PrivateAttr(default_factory=list)
    # Relations a repository left unhydrated; such an aggregate is read-only.
    _unloaded: frozenset[str] = PrivateAttr(default_factory=frozenset)

    @property
    def unloaded_relations(self) -> frozenset[str]:
        return self._unloaded

    def mark_unloaded(self, relations: frozenset[str]) -> None:
        self._unloaded = relations

    def record(self, event: DomainEvent) -> None:
        self._events.append(event)

    def pull_events(self) -> list[DomainEvent]:
        """Return and clear the events recorded since the last pull."""
        events, self._events = self._events, []
        return events


# ---------------------------------------------------------------------------
# Property / Tenant
# ---------------------------------------------------------------------------


class Tenant(BaseModel):
    """A tenant living at a property. Entity inside the Property aggregate."""

    id: str
    property_id: str
    email: str
    unit: str | None = None
    created_at: datetime


class Property(AggregateRoot):
    """A rental property: consistency boundary for request creation."""

    code: str
    name: str
    address: str
    city: str
    manager_id: str
    is_active: bool = True
    created_at: datetime
    tenants: list[Tenant] = Field(default_factory=list)
    request_ids: list[str] = Field(default_factory=list)

    @classmethod
    def register(
        cls,
        property_id: str,
        *,
        code: str,
        name: str,
        address: str,
        city: str,
        manager_id: str,
        at: datetime,
    ) -> Self:
        normalized_code = _require_text(code, "code", aggregate="property").upper()
        if not _CODE_RE.match(normalized_code):
            raise DomainValidationError(
                f"Invalid property code: {code!r}",
                code="INVALID_PROPERTY_CODE",
                aggregate="property",
                field="code",
            )
        prop = cls(
            id=property_id,
            code=normalized_code,
            name=_require_text(name, "name", aggregate="property"),
            address=_require_text(address, "address", aggregate="property"),
            city=_require_text(city, "city", aggregate="property"),
            manager_id=_require_text(manager_id, "manager_id", aggregate="property"),
            created_at=at,
        )
        prop.record(
            PropertyRegistered(
                occurred_at=at.isoformat(),
                property_id=prop.id,
                code=prop.code,
                manager_id=prop.manager_id,
            )
        )
        return prop

    def get_tenant(self, tenant_id: str) -> Tenant | None:
        return next((t for t in self.tenants if t.id == tenant_id), None)

    def _ensure_active(self, operation: str) -> None:
        if not self.is_active:
            raise InvariantViolation(
                f"Property {self.id} is inactive; cannot {operation}",
                code="PROPERTY_INACTIVE",
                rule="property_active",
                aggregate="property",
                id=self.id,
            )

    def add_tenant(
        self,
        tenant_id: str,
        *,
        email: str,
        unit: str | None = None,
        at: datetime,
    ) -> Tenant:
        self._ensure_active("register tenants")
        normalized = normalize_email(email, aggregate="tenant")
        if any(t.email == normalized for t in self.tenants):
            raise InvariantViolation(
                f"Tenant {normalized} is already registered at {self.code}",
                code="DUPLICATE_TENANT",
                rule="tenant_email_unique",
                aggregate="property",
                id=self.id,
                field="email",
            )
        tenant = Tenant(
            id=tenant_id,
            property_id=self.id,
            email=normalized,
            unit=(unit or "").strip() or None,
            created_at=at,
        )
        self.tenants.append(tenant)
        self.record(
            TenantRegistered(
                occurred_at=at.isoformat(),
                property_id=self.id,
                tenant_id=tenant.id,
                email=tenant.email,
            )
        )
        return tenant

    def file_request(
        self,
        request_id: str,
        *,
        tenant_id: str,
        description: str,
        urgency: Urgency = Urgency.NORMAL,
        category_hint: str | None = None,
        at: datetime,
    ) -> TenantRequest:
        """Create a request owned by this property.

        Raises:
            InvariantViolation: The property is inactive, or the tenant does
                not live here.
            DomainValidationError: The description is empty or too long.
        """
        self._ensure_active("accept requests")
        if self.get_tenant(tenant_id) is None:
            raise InvariantViolation(
                f"Tenant {tenant_id} does not belong to property {self.id}",
                code="TENANT_NOT_OF_PROPERTY",
                rule="tenant_of_property",
                aggregate="property",
                id=self.id,
                field="tenant_id",
            )
        request = TenantRequest.create(
            request_id,
            property_id=self.id,
            tenant_id=tenant_id,
            description=description,
            urgency=urgency,
            category_hint=category_hint,
            at=at,
        )
        self.request_ids.append(request.id)
        return request

    def deactivate(self) -> None:
        self.is_active = False


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------


class Worker(AggregateRoot):
    """A maintenance worker with exactly one trade specialization."""

    email: str
    name: str
    specialization: Specialization
    is_active: bool = True
    available: bool = True
    created_at: datetime
    assigned_request_ids: list[str] = Field(default_factory=list)

    @classmethod
    def register(
        cls,
        worker_id: str,
        *,
        email: str,
        name: str,
        specialization: Specialization,
        at: datetime,
    ) -> Self:
        worker = cls(
            id=worker_id,
            email=normalize_email(email, aggregate="worker"),
            name=_require_text(name, "name", aggregate="worker"),
            specialization=specialization,
            created_at=at,
        )
        worker.record(
            WorkerRegistered(
                occurred_at=at.isoformat(),
                worker_id=worker.id,
                email=worker.email,
                specialization=worker.specialization.value,
            )
        )
        return worker

    @property
    def active_assignment_count(self) -> int:
        return len(self.assigned_request_ids)

    def has_capacity(self, cap: int) -> bool:
        return self.active_assignment_count < cap

    def recompute_availability(self, cap: int) -> None:
        self.available = self.is_active and self.has_capacity(cap)

    def take_assignment(self, request_id: str, *, cap: int) -> None:
        if request_id in self.assigned_request_ids:
            return
        if not (self.is_active and self.has_capacity(cap)):
            raise InvariantViolation(
                f"Worker {self.id} cannot take another assignment",
                code="WORKER_AT_CAPACITY",
                rule="worker_capacity",
                aggregate="worker",
                id=self.id,
            )
        self.assigned_request_ids.append(request_id)
        self.recompute_availability(cap)

    def release_assignment(self, request_id: str, *, cap: int) -> None:
        if request_id not in self.assigned_request_ids:
            raise InvariantViolation(
                f"Worker {self.id} is not assigned to {request_id}",
                code="NOT_ASSIGNED",
                rule="assignment_symmetry",
                aggregate="worker",
                id=self.id,
            )
        self.assigned_request_ids.remove(request_id)
        self.recompute_availability(cap)

    def change_specialization(
        self,
        new: Specialization,
        *,
        changed_by: str,
        active_requirements: Iterable[Specialization] = (),
        allow_general: bool = False,
        at: datetime,
    ) -> bool:
        """Audited specialization change. Returns False when nothing changed.

        Every request the worker is still working on must remain coverable
        by *new*.
        """
        if new == self.specialization:
            return False
        orphaned = sorted(
            {
                req.value
                for req in active_requirements
                if not can_handle(new, req, allow_general=allow_general)
            }
        )
        if orphaned:
            raise SpecializationConflictError(
                f"Worker {self.id} has active assignments requiring {', '.join(orphaned)}",
                rule="specialization_covers_assignments",
                aggregate="worker",
                id=self.id,
                field="specialization",
            )
        old = self.specialization
        self.specialization = new
        self.record(
            WorkerSpecializationChanged(
                occurred_at=at.isoformat(),
                worker_id=self.id,
                old_specialization=old.value,
                new_specialization=new.value,
                changed_by=changed_by,
            )
        )
        return True

    def deactivate(self, *, cap: int) -> None:
        self.is_active = False
        self.recompute_availability(cap)

    def activate(self, *, cap: int) -> None:
        self.is_active = True
        self.recompute_availability(cap)


# ---------------------------------------------------------------------------
# TenantRequest
# ---------------------------------------------------------------------------


class StatusChange(BaseModel):
    """One recorded status transition."""

    model_config = ConfigDict(frozen=True)

    from_status: RequestStatus
    to_status: RequestStatus
    actor_id: str
    reason: str | None = None
    at: datetime


class TenantRequest(AggregateRoot):
    """A maintenance request filed by a tenant against a property."""

    property_id: str
    tenant_id: str
    description: str
    required_specialization: Specialization = Field(frozen=True)
    status: RequestStatus = RequestStatus.SUBMITTED
    urgency: Urgency = Urgency.NORMAL
    assigned_worker_id: str | None = None
    created_at: datetime
    assigned_at: datetime | None = None
    status_timestamps: dict[RequestStatus, datetime] = Field(default_factory=dict)
    history: list[StatusChange] = Field(default_factory=list)

    @classmethod
    def create(
        cls,
        request_id: str,
        *,
        property_id: str,
        tenant_id: str,
        description: str,
        urgency: Urgency = Urgency.NORMAL,
        category_hint: str | None = None,
        at: datetime,
    ) -> Self:
        text = _require_text(description, "description", aggregate="request")
        if len(text) > MAX_DESCRIPTION_LENGTH:
            raise DomainValidationError(
                f"Description exceeds {MAX_DESCRIPTION_LENGTH} characters",
                code="DESCRIPTION_TOO_LONG",
                aggregate="request",
                field="description",
            )
        request = cls(
            id=request_id,
            property_id=property_id,
            tenant_id=tenant_id,
            description=text,
            required_specialization=determine_specialization(text, category_hint),
            urgency=urgency,
            created_at=at,
            status_timestamps={RequestStatus.SUBMITTED: at},
        )
        request.record(
            RequestCreated(
                occurred_at=at.isoformat(),
                request_id=request.id,
                property_id=property_id,
                tenant_id=tenant_id,
                required_specialization=request.required_specialization.value,
                urgency=urgency.value,
            )
        )
        return request

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    @property
    def has_active_assignment(self) -> bool:
        return self.status in ACTIVE_ASSIGNMENT_STATUSES

    def is_overdue(self, now: datetime) -> bool:
        if self.is_terminal:
            return False
        age_hours = (now - self.created_at).total_seconds() / 3600
        return age_hours > self.urgency.expected_resolution_hours

    def ensure_mutable(self) -> None:
        if self.is_terminal:
            raise TerminalRequestError(
                f"Request {self.id} is {self.status.value} and can no longer change",
                rule="terminal_immutable",
                aggregate="request",
                id=self.id,
                field="status",
            )

    def ensure_can_transition(self, target: RequestStatus) -> None:
        """Raise unless *target* is a legal successor of the current status."""
        self.ensure_mutable()
        if not is_valid_transition(self.status, target):
            raise IllegalTransitionError(
                f"Cannot move request {self.id} from {self.status.value} to {target.value}",
                rule="status_graph",
                aggregate="request",
                id=self.id,
                field="status",
                allowed=[s.value for s in allowed_transitions(self.status)],
            )

    def _apply(
        self,
        target: RequestStatus,
        *,
        actor_id: str,
        reason: str | None,
        at: datetime,
    ) -> None:
        previous = self.status
        self.status = target
        self.status_timestamps.setdefault(target, at)
        self.history.append(
            StatusChange(
                from_status=previous,
                to_status=target,
                actor_id=actor_id,
                reason=reason,
                at=at,
            )
        )
        self.record(
            RequestStatusChanged(
                occurred_at=at.isoformat(),
                request_id=self.id,
                from_status=previous.value,
                to_status=target.value,
                actor_id=actor_id,
                reason=reason,
            )
        )

    def transition_to(
        self,
        target: RequestStatus,
        *,
        actor_id: str,
        reason: str | None = None,
        at: datetime,
    ) -> str | None:
        """Move to *target*, clearing the worker when leaving the assigned set.

        Returns the id of the worker released by the move, if any. Assignment
        itself goes through :meth:`mark_assigned`.
        """
        self.ensure_can_transition(target)
        if target == RequestStatus.ASSIGNED:
            raise InvariantViolation(
                f"Request {self.id} needs a worker to become assigned",
                code="ASSIGNMENT_REQUIRED",
                rule="assigned_has_worker",
                aggregate="request",
                id=self.id,
            )
        released: str | None = None
        if target in (RequestStatus.DECLINED, RequestStatus.ESCALATED):
            released = self.assigned_worker_id
            self.assigned_worker_id = None
            self.assigned_at = None
        self._apply(target, actor_id=actor_id, reason=reason, at=at)
        if released is not None:
            self.record(
                WorkerUnassigned(
                    occurred_at=at.isoformat(),
                    request_id=self.id,
                    worker_id=released,
                    actor_id=actor_id,
                    reason=target.value,
                )
            )
        return released

    def mark_assigned(self, worker_id: str, *, actor_id: str, at: datetime) -> None:
        """Attach *worker_id* and move to ``assigned``.

        A request still in ``submitted`` passes through ``in_review`` first;
        both transitions are recorded.
        """
        if self.status == RequestStatus.SUBMITTED:
            self.ensure_can_transition(RequestStatus.IN_REVIEW)
            self._apply(
                RequestStatus.IN_REVIEW,
                actor_id=actor_id,
                reason="reviewed on assignment",
                at=at,
            )
        self.ensure_can_transition(RequestStatus.ASSIGNED)
        self.assigned_worker_id = worker_id
        self.assigned_at = at
        self._apply(RequestStatus.ASSIGNED, actor_id=actor_id, reason=None, at=at)
        self.record(
            WorkerAssigned(
                occurred_at=at.isoformat(),
                request_id=self.id,
                worker_id=worker_id,
                actor_id=actor_id,
            )
        )

    def replace_worker(self, worker_id: str, *, actor_id: str, at: datetime) -> str:
        """Swap the assigned worker without changing status. Returns the old id."""
        self.ensure_mutable()
        if not self.has_active_assignment or self.assigned_worker_id is None:
            raise InvariantViolation(
                f"Request {self.id} has no active assignment to replace",
                code="NOT_REASSIGNABLE",
                rule="reassign_requires_assignment",
                aggregate="request",
                id=self.id,
            )
        previous = self.assigned_worker_id
        self.assigned_worker_id = worker_id
        self.assigned_at = at
        self.record(
            WorkerUnassigned(
                occurred_at=at.isoformat(),
                request_id=self.id,
                worker_id=previous,
                actor_id=actor_id,
                reason="reassigned",
            )
        )
        self.record(
            WorkerAssigned(
                occurred_at=at.isoformat(),
                request_id=self.id,
                worker_id=worker_id,
                actor_id=actor_id,
            )
        )
        return previous
