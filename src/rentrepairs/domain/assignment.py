"""Worker assignment eligibility and the operations spanning two aggregates.

Every function here validates all rules before mutating anything, so a
rejected call leaves both the worker and the request untouched. Making the
combined change durable is the unit of work's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, NoReturn

from rentrepairs.domain.errors import AssignmentRejectedError, InvariantViolation
from rentrepairs.domain.lifecycle import RequestStatus
from rentrepairs.domain.models import TenantRequest, Worker
from rentrepairs.domain.specializations import Specialization, can_handle


class AssignmentRejection(StrEnum):
    INACTIVE = "inactive"
    AT_CAPACITY = "at_capacity"
    SPECIALIZATION_MISMATCH = "specialization_mismatch"
    REQUEST_NOT_ASSIGNABLE = "request_not_assignable"
    ALREADY_ASSIGNED = "already_assigned"


class FallbackPolicy(StrEnum):
    """When a general-maintenance worker may cover a specialized request."""

    NONE = "none"
    GENERAL_WHEN_NO_MATCH = "general_when_no_match"
    GENERAL_ALWAYS = "general_always"

    def allows_general(self, *, exact_match_available: bool) -> bool:
        if self == FallbackPolicy.GENERAL_ALWAYS:
            return True
        if self == FallbackPolicy.GENERAL_WHEN_NO_MATCH:
            return not exact_match_available
        return False


ASSIGNABLE_STATUSES: frozenset[RequestStatus] = frozenset(
    {RequestStatus.SUBMITTED, RequestStatus.IN_REVIEW}
)


@dataclass(frozen=True)
class AssignmentCheck:
    eligible: bool
    reason: AssignmentRejection | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.eligible


def _check_worker(
    worker: Worker,
    required: Specialization,
    *,
    cap: int,
    allow_general: bool,
) -> AssignmentCheck:
    if not worker.is_active:
        return AssignmentCheck(False, AssignmentRejection.INACTIVE, f"Worker {worker.id} is inactive")
    if not worker.has_capacity(cap):
        return AssignmentCheck(
            False,
            AssignmentRejection.AT_CAPACITY,
            f"Worker {worker.id} already has {worker.active_assignment_count} of {cap} assignments",
        )
    if not can_handle(worker.specialization, required, allow_general=allow_general):
        return AssignmentCheck(
            False,
            AssignmentRejection.SPECIALIZATION_MISMATCH,
            f"Worker {worker.id} ({worker.specialization.value}) cannot handle "
            f"{required.value} work",
        )
    return AssignmentCheck(True)


def _check_request(request: TenantRequest) -> AssignmentCheck:
    if request.assigned_worker_id is not None:
        return AssignmentCheck(
            False,
            AssignmentRejection.ALREADY_ASSIGNED,
            f"Request {request.id} is already assigned to {request.assigned_worker_id}",
        )
    if request.status not in ASSIGNABLE_STATUSES:
        return AssignmentCheck(
            False,
            AssignmentRejection.REQUEST_NOT_ASSIGNABLE,
            f"Request {request.id} is {request.status.value}",
        )
    return AssignmentCheck(True)


def check_assignment(
    worker: Worker,
    request: TenantRequest,
    *,
    cap: int,
    allow_general: bool = False,
) -> AssignmentCheck:
    """Evaluate every eligibility rule for assigning *worker* to *request*."""
    request_check = _check_request(request)
    if not request_check:
        return request_check
    return _check_worker(
        worker, request.required_specialization, cap=cap, allow_general=allow_general
    )


def can_be_assigned(
    worker: Worker,
    request: TenantRequest,
    *,
    cap: int,
    allow_general: bool = False,
) -> bool:
    return check_assignment(worker, request, cap=cap, allow_general=allow_general).eligible


def _reject(check: AssignmentCheck, request: TenantRequest, **detail: Any) -> NoReturn:
    if check.reason is None:
        raise InvariantViolation(
            f"Assignment to {request.id} was refused without a reason",
            rule="assignment_eligibility",
            aggregate="request",
            id=request.id,
        )
    raise AssignmentRejectedError(
        check.message,
        reason=check.reason.value,
        rule="assignment_eligibility",
        aggregate="request",
        id=request.id,
        **detail,
    )


def ensure_assignable(request: TenantRequest) -> None:
    """Raise unless *request* is open for its first worker."""
    request.ensure_mutable()
    check = _check_request(request)
    if not check:
        _reject(check, request)


def ensure_reassignable(request: TenantRequest) -> None:
    """Raise unless *request* currently holds a worker that could be swapped."""
    request.ensure_mutable()
    if not request.has_active_assignment:
        raise AssignmentRejectedError(
            f"Request {request.id} is {request.status.value}",
            reason=AssignmentRejection.REQUEST_NOT_ASSIGNABLE.value,
            rule="reassign_requires_assignment",
            aggregate="request",
            id=request.id,
        )


def assign_worker(
    worker: Worker,
    request: TenantRequest,
    *,
    cap: int,
    actor_id: str,
    allow_general: bool = False,
    at: datetime,
) -> None:
    """Assign *worker* to *request*, updating both sides.

    Raises:
        AssignmentRejectedError: An eligibility rule failed; ``reason`` names
            the :class:`AssignmentRejection`.
    """
    check = check_assignment(worker, request, cap=cap, allow_general=allow_general)
    if not check:
        _reject(check, request, worker_id=worker.id)
    request.mark_assigned(worker.id, actor_id=actor_id, at=at)
    worker.take_assignment(request.id, cap=cap)


def _ensure_holder(worker: Worker | None, request: TenantRequest) -> Worker:
    if worker is None or worker.id != request.assigned_worker_id:
        raise InvariantViolation(
            f"Request {request.id} is held by {request.assigned_worker_id}, "
            f"not {worker.id if worker else None}",
            code="WORKER_MISMATCH",
            rule="assignment_symmetry",
            aggregate="request",
            id=request.id,
        )
    if request.id not in worker.assigned_request_ids:
        raise InvariantViolation(
            f"Worker {worker.id} does not list {request.id} as active",
            code="NOT_ASSIGNED",
            rule="assignment_symmetry",
            aggregate="worker",
            id=worker.id,
        )
    return worker


def release_assignment(worker: Worker, request: TenantRequest, *, cap: int) -> None:
    """Remove *request* from *worker*'s active assignments."""
    worker.release_assignment(request.id, cap=cap)


def transition_request(
    request: TenantRequest,
    target: RequestStatus,
    *,
    worker: Worker | None = None,
    cap: int,
    actor_id: str,
    reason: str | None = None,
    at: datetime,
) -> None:
    """Move *request* to *target*, freeing its worker when the move requires it.

    Declining or escalating an assigned request unassigns the worker;
    completing it frees the worker's slot while the request keeps the
    worker's id. *worker* must be the assigned worker in those cases.
    """
    request.ensure_can_transition(target)
    frees_worker = request.has_active_assignment and target in (
        RequestStatus.DECLINED,
        RequestStatus.ESCALATED,
        RequestStatus.COMPLETED,
    )
    holder = _ensure_holder(worker, request) if frees_worker else None
    request.transition_to(target, actor_id=actor_id, reason=reason, at=at)
    if holder is not None:
        release_assignment(holder, request, cap=cap)


def reassign_worker(
    request: TenantRequest,
    current: Worker | None,
    replacement: Worker,
    *,
    cap: int,
    actor_id: str,
    allow_general: bool = False,
    at: datetime,
) -> Worker:
    """Hand an assigned request over from *current* to *replacement*.

    Returns the released worker.
    """
    ensure_reassignable(request)
    holder = _ensure_holder(current, request)
    if replacement.id == holder.id:
        raise AssignmentRejectedError(
            f"Request {request.id} is already assigned to {holder.id}",
            reason=AssignmentRejection.ALREADY_ASSIGNED.value,
            aggregate="request",
            id=request.id,
            worker_id=replacement.id,
        )
    check = _check_worker(
        replacement, request.required_specialization, cap=cap, allow_general=allow_general
    )
    if not check:
        _reject(check, request, worker_id=replacement.id)
    request.replace_worker(replacement.id, actor_id=actor_id, at=at)
    release_assignment(holder, request, cap=cap)
    replacement.take_assignment(request.id, cap=cap)
    return holder
