"""Tests for the request authorization policy."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from rentrepairs.domain.authorization import (
    Principal,
    RequestAction,
    Role,
    action_for_transition,
    authorize,
    authorize_management,
    is_authorized,
)
from rentrepairs.domain.errors import AuthorizationError
from rentrepairs.domain.lifecycle import RequestStatus
from rentrepairs.domain.models import TenantRequest

AT = datetime(2026, 3, 1, tzinfo=UTC)

MANAGER = Principal("mgr-1", frozenset({Role.MANAGER}))
SYSTEM = Principal("system", frozenset({Role.SYSTEM}))
FILER = Principal("ana@example.com", frozenset({Role.TENANT}), tenant_id="TNT-0001")
NEIGHBOUR = Principal("eve@example.com", frozenset({Role.TENANT}), tenant_id="TNT-0002")
ASSIGNED_WORKER = Principal("bo@example.com", frozenset({Role.WORKER}), worker_id="WRK-0001")
OTHER_WORKER = Principal("cy@example.com", frozenset({Role.WORKER}), worker_id="WRK-0002")
STRANGER = Principal("nobody")


@pytest.fixture
def request_() -> TenantRequest:
    request = TenantRequest.create(
        "REQ-0001",
        property_id="PROP-0001",
        tenant_id="TNT-0001",
        description="Leaking kitchen tap",
        at=AT,
    )
    request.mark_assigned("WRK-0001", actor_id="mgr-1", at=AT)
    return request


class TestActionForTransition:
    def test_review_vs_resume(self) -> None:
        assert (
            action_for_transition(RequestStatus.SUBMITTED, RequestStatus.IN_REVIEW)
            == RequestAction.REVIEW
        )
        assert (
            action_for_transition(RequestStatus.ESCALATED, RequestStatus.IN_REVIEW)
            == RequestAction.RESUME_REVIEW
        )

    def test_work_actions(self) -> None:
        assert (
            action_for_transition(RequestStatus.ASSIGNED, RequestStatus.IN_PROGRESS)
            == RequestAction.START
        )
        assert (
            action_for_transition(RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED)
            == RequestAction.COMPLETE
        )


class TestIsAuthorized:
    def test_only_tenants_submit(self) -> None:
        assert is_authorized(FILER, RequestAction.SUBMIT)
        assert not is_authorized(MANAGER, RequestAction.SUBMIT)
        assert not is_authorized(ASSIGNED_WORKER, RequestAction.SUBMIT)

    @pytest.mark.parametrize(
        "action",
        [RequestAction.REVIEW, RequestAction.DECLINE, RequestAction.ESCALATE, RequestAction.ASSIGN],
    )
    def test_manager_actions(self, action: RequestAction, request_: TenantRequest) -> None:
        assert is_authorized(MANAGER, action, request_)
        assert is_authorized(SYSTEM, action, request_)
        assert not is_authorized(FILER, action, request_)
        assert not is_authorized(ASSIGNED_WORKER, action, request_)

    @pytest.mark.parametrize("action", [RequestAction.START, RequestAction.COMPLETE])
    def test_worker_actions(self, action: RequestAction, request_: TenantRequest) -> None:
        assert is_authorized(ASSIGNED_WORKER, action, request_)
        assert is_authorized(MANAGER, action, request_)
        assert not is_authorized(OTHER_WORKER, action, request_)
        assert not is_authorized(FILER, action, request_)

    def test_view(self, request_: TenantRequest) -> None:
        assert is_authorized(FILER, RequestAction.VIEW, request_)
        assert is_authorized(ASSIGNED_WORKER, RequestAction.VIEW, request_)
        assert is_authorized(MANAGER, RequestAction.VIEW, request_)
        assert not is_authorized(NEIGHBOUR, RequestAction.VIEW, request_)
        assert not is_authorized(STRANGER, RequestAction.VIEW, request_)


class TestAuthorize:
    def test_raises_authorization_error(self, request_: TenantRequest) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            authorize(FILER, RequestAction.DECLINE, request_)
        err = exc_info.value
        assert err.kind == "authorization"
        assert err.code == "FORBIDDEN"
        assert err.detail["rule"] == "authorize_decline"
        assert err.detail["id"] == "REQ-0001"

    def test_management(self) -> None:
        authorize_management(MANAGER, property_id="PROP-0001", operation="register tenants")
        with pytest.raises(AuthorizationError):
            authorize_management(FILER, property_id="PROP-0001", operation="register tenants")
