"""Request status lifecycle and urgency levels.

Status graph::

    submitted   -> in_review, declined
    in_review   -> assigned, declined, escalated
    assigned    -> in_progress, declined, escalated
    in_progress -> completed, escalated
    escalated   -> in_review
    completed   -> (terminal)
    declined    -> (terminal)

INVARIANT: a request has an assigned worker if and only if its status is in
:data:`ASSIGNED_STATUSES`.
"""

from __future__ import annotations

from enum import StrEnum

from rentrepairs.domain.errors import DomainValidationError


class RequestStatus(StrEnum):
    """Lifecycle states of a tenant request."""

    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DECLINED = "declined"
    ESCALATED = "escalated"


class Urgency(StrEnum):
    """How quickly a request must be resolved."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"
    EMERGENCY = "emergency"

    @property
    def expected_resolution_hours(self) -> int:
        return RESOLUTION_HOURS[self]

    @property
    def requires_immediate_attention(self) -> bool:
        return self in (Urgency.CRITICAL, Urgency.EMERGENCY)


RESOLUTION_HOURS: dict[Urgency, int] = {
    Urgency.EMERGENCY: 2,
    Urgency.CRITICAL: 4,
    Urgency.HIGH: 24,
    Urgency.NORMAL: 72,
    Urgency.LOW: 168,
}

REQUEST_TRANSITIONS: dict[RequestStatus, list[RequestStatus]] = {
    RequestStatus.SUBMITTED: [RequestStatus.IN_REVIEW, RequestStatus.DECLINED],
    RequestStatus.IN_REVIEW: [
        RequestStatus.ASSIGNED,
        RequestStatus.DECLINED,
        RequestStatus.ESCALATED,
    ],
    RequestStatus.ASSIGNED: [
        RequestStatus.IN_PROGRESS,
        RequestStatus.DECLINED,
        RequestStatus.ESCALATED,
    ],
    RequestStatus.IN_PROGRESS: [RequestStatus.COMPLETED, RequestStatus.ESCALATED],
    RequestStatus.ESCALATED: [RequestStatus.IN_REVIEW],
    RequestStatus.COMPLETED: [],
    RequestStatus.DECLINED: [],
}

TERMINAL_STATUSES: frozenset[RequestStatus] = frozenset(
    {RequestStatus.COMPLETED, RequestStatus.DECLINED}
)
ASSIGNED_STATUSES: frozenset[RequestStatus] = frozenset(
    {RequestStatus.ASSIGNED, RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED}
)
OPEN_STATUSES: frozenset[RequestStatus] = frozenset(RequestStatus) - TERMINAL_STATUSES
# Statuses in which the assigned worker is still occupied by the request.
ACTIVE_ASSIGNMENT_STATUSES: frozenset[RequestStatus] = frozenset(
    {RequestStatus.ASSIGNED, RequestStatus.IN_PROGRESS}
)


def is_valid_transition(current: RequestStatus, target: RequestStatus) -> bool:
    """Check if transitioning from *current* to *target* is allowed."""
    return target in REQUEST_TRANSITIONS.get(current, [])


def allowed_transitions(current: RequestStatus) -> list[RequestStatus]:
    """Return the successors of *current* in the status graph."""
    return list(REQUEST_TRANSITIONS.get(current, []))


def is_terminal(status: RequestStatus) -> bool:
    return status in TERMINAL_STATUSES


def parse_urgency(value: str | Urgency | None) -> Urgency:
    """Parse an urgency level; missing input means :attr:`Urgency.NORMAL`."""
    if value is None:
        return Urgency.NORMAL
    if isinstance(value, Urgency):
        return value
    try:
        return Urgency(value.strip().lower())
    except ValueError:
        raise DomainValidationError(
            f"Unknown urgency: {value!r}",
            code="UNKNOWN_URGENCY",
            field="urgency",
            allowed=[u.value for u in Urgency],
        ) from None


def parse_status(value: str | RequestStatus) -> RequestStatus:
    if isinstance(value, RequestStatus):
        return value
    try:
        return RequestStatus(value.strip().lower().replace("-", "_"))
    except ValueError:
        raise DomainValidationError(
            f"Unknown status: {value!r}",
            code="UNKNOWN_STATUS",
            field="status",
            allowed=[s.value for s in RequestStatus],
        ) from None
