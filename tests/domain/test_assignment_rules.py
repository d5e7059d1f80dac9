"""Tests for assignment eligibility and cross-aggregate operations."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from rentrepairs.domain.assignment import (
    AssignmentRejection,
    FallbackPolicy,
    assign_worker,
    can_be_assigned,
    check_assignment,
    reassign_worker,
    transition_request,
)
from rentrepairs.domain.errors import (
    AssignmentRejectedError,
    InvariantViolation,
    TerminalRequestError,
)
from rentrepairs.domain.lifecycle import RequestStatus
from rentrepairs.domain.models import TenantRequest, Worker
from rentrepairs.domain.specializations import Specialization

AT = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
CAP = 2


def _worker(
    worker_id: str = "WRK-0001",
    specialization: Specialization = Specialization.PLUMBING,
) -> Worker:
    return Worker.register(
        worker_id,
        email=f"{worker_id.lower()}@example.com",
        name=worker_id,
        specialization=specialization,
        at=AT,
    )


def _request(
    request_id: str = "REQ-0001", description: str = "Leaking kitchen tap"
) -> TenantRequest:
    return TenantRequest.create(
        request_id,
        property_id="PROP-0001",
        tenant_id="TNT-0001",
        description=description,
        at=AT,
    )


def _assigned() -> tuple[Worker, TenantRequest]:
    worker, request = _worker(), _request()
    assign_worker(worker, request, cap=CAP, actor_id="mgr-1", at=AT)
    return worker, request


class TestFallbackPolicy:
    def test_none(self) -> None:
        assert not FallbackPolicy.NONE.allows_general(exact_match_available=False)

    def test_when_no_match(self) -> None:
        policy = FallbackPolicy.GENERAL_WHEN_NO_MATCH
        assert policy.allows_general(exact_match_available=False)
        assert not policy.allows_general(exact_match_available=True)

    def test_always(self) -> None:
        assert FallbackPolicy.GENERAL_ALWAYS.allows_general(exact_match_available=True)


class TestEligibility:
    def test_exact_match_is_eligible(self) -> None:
        assert can_be_assigned(_worker(), _request(), cap=CAP)

    def test_specialization_mismatch(self) -> None:
        electrician = _worker(specialization=Specialization.ELECTRICAL)
        check = check_assignment(electrician, _request(), cap=CAP)
        assert not check
        assert check.reason == AssignmentRejection.SPECIALIZATION_MISMATCH

    def test_general_needs_fallback(self) -> None:
        general = _worker(specialization=Specialization.GENERAL)
        assert not can_be_assigned(general, _request(), cap=CAP)
        assert can_be_assigned(general, _request(), cap=CAP, allow_general=True)

    def test_at_capacity(self) -> None:
        worker = _worker()
        worker.take_assignment("REQ-0098", cap=CAP)
        worker.take_assignment("REQ-0099", cap=CAP)
        check = check_assignment(worker, _request(), cap=CAP)
        assert check.reason == AssignmentRejection.AT_CAPACITY

    def test_inactive(self) -> None:
        worker = _worker()
        worker.deactivate(cap=CAP)
        assert check_assignment(worker, _request(), cap=CAP).reason == AssignmentRejection.INACTIVE

    def test_stale_availability_flag_is_ignored(self) -> None:
        worker = _worker()
        worker.available = False
        assert check_assignment(worker, _request(), cap=CAP).eligible

    def test_request_not_assignable(self) -> None:
        request = _request()
        request.transition_to(RequestStatus.DECLINED, actor_id="mgr-1", at=AT)
        check = check_assignment(_worker(), request, cap=CAP)
        assert check.reason == AssignmentRejection.REQUEST_NOT_ASSIGNABLE


class TestAssignWorker:
    def test_updates_both_sides(self) -> None:
        worker, request = _assigned()
        assert request.status == RequestStatus.ASSIGNED
        assert request.assigned_worker_id == worker.id
        assert worker.assigned_request_ids == [request.id]

    def test_availability_recomputed_at_cap(self) -> None:
        worker = _worker()
        for n in range(CAP):
            assign_worker(worker, _request(f"REQ-000{n + 1}"), cap=CAP, actor_id="m", at=AT)
        assert not worker.available

    def test_mismatch_rejected_without_mutation(self) -> None:
        electrician = _worker("WRK-0002", Specialization.ELECTRICAL)
        request = _request()
        with pytest.raises(AssignmentRejectedError) as exc_info:
            assign_worker(electrician, request, cap=CAP, actor_id="mgr-1", at=AT)
        assert exc_info.value.reason == "specialization_mismatch"
        assert exc_info.value.detail["worker_id"] == "WRK-0002"
        assert request.status == RequestStatus.SUBMITTED
        assert request.assigned_worker_id is None
        assert request.history == []
        assert electrician.assigned_request_ids == []

    def test_already_assigned(self) -> None:
        _, request = _assigned()
        with pytest.raises(AssignmentRejectedError) as exc_info:
            assign_worker(_worker("WRK-0002"), request, cap=CAP, actor_id="mgr-1", at=AT)
        assert exc_info.value.reason == "already_assigned"


class TestTransitionRequest:
    def test_complete_frees_slot_keeps_worker(self) -> None:
        worker, request = _assigned()
        transition_request(
            request, RequestStatus.IN_PROGRESS, worker=worker, cap=CAP, actor_id="w", at=AT
        )
        assert worker.assigned_request_ids == [request.id]
        transition_request(
            request, RequestStatus.COMPLETED, worker=worker, cap=CAP, actor_id="w", at=AT
        )
        assert request.status == RequestStatus.COMPLETED
        assert request.assigned_worker_id == worker.id
        assert worker.assigned_request_ids == []
        assert worker.available

    def test_decline_releases_worker(self) -> None:
        worker, request = _assigned()
        transition_request(
            request, RequestStatus.DECLINED, worker=worker, cap=CAP, actor_id="mgr-1", at=AT
        )
        assert request.status == RequestStatus.DECLINED
        assert request.assigned_worker_id is None
        assert worker.assigned_request_ids == []

    def test_release_needs_the_holder(self) -> None:
        _, request = _assigned()
        other = _worker("WRK-0002")
        with pytest.raises(InvariantViolation) as exc_info:
            transition_request(
                request, RequestStatus.ESCALATED, worker=other, cap=CAP, actor_id="m", at=AT
            )
        assert exc_info.value.code == "WORKER_MISMATCH"
        assert request.status == RequestStatus.ASSIGNED

    def test_terminal_cannot_move(self) -> None:
        worker, request = _assigned()
        transition_request(
            request, RequestStatus.DECLINED, worker=worker, cap=CAP, actor_id="m", at=AT
        )
        with pytest.raises(TerminalRequestError):
            transition_request(request, RequestStatus.IN_REVIEW, cap=CAP, actor_id="m", at=AT)


class TestReassignWorker:
    def test_moves_assignment(self) -> None:
        current, request = _assigned()
        replacement = _worker("WRK-0002")
        history_before = list(request.history)
        reassign_worker(request, current, replacement, cap=CAP, actor_id="mgr-1", at=AT)
        assert request.assigned_worker_id == "WRK-0002"
        assert request.status == RequestStatus.ASSIGNED
        assert request.history == history_before
        assert current.assigned_request_ids == []
        assert replacement.assigned_request_ids == [request.id]

    def test_same_worker_rejected(self) -> None:
        current, request = _assigned()
        with pytest.raises(AssignmentRejectedError) as exc_info:
            reassign_worker(request, current, current, cap=CAP, actor_id="mgr-1", at=AT)
        assert exc_info.value.reason == "already_assigned"

    def test_ineligible_replacement_leaves_state(self) -> None:
        current, request = _assigned()
        electrician = _worker("WRK-0002", Specialization.ELECTRICAL)
        with pytest.raises(AssignmentRejectedError):
            reassign_worker(request, current, electrician, cap=CAP, actor_id="mgr-1", at=AT)
        assert request.assigned_worker_id == current.id
        assert current.assigned_request_ids == [request.id]

    def test_requires_active_assignment(self) -> None:
        with pytest.raises(AssignmentRejectedError) as exc_info:
            reassign_worker(_request(), None, _worker(), cap=CAP, actor_id="mgr-1", at=AT)
        assert exc_info.value.reason == "request_not_assignable"
