"""Who may do what to a request.

Identity comes from outside the core: a :class:`PrincipalLookup` resolves a
user id into a :class:`Principal` that states the user's relationship to one
property (manager, tenant, assigned worker). The policy below only reads
those relationships.

Graph legality is always checked before authorization, so an illegal move
reports ``INVALID_TRANSITION`` even for an unauthorized caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from rentrepairs.domain.errors import AuthorizationError
from rentrepairs.domain.lifecycle import RequestStatus

if TYPE_CHECKING:
    from rentrepairs.domain.models import TenantRequest


class Role(StrEnum):
    TENANT = "tenant"
    MANAGER = "manager"
    WORKER = "worker"
    SYSTEM = "system"


class RequestAction(StrEnum):
    SUBMIT = "submit"
    VIEW = "view"
    REVIEW = "review"
    ASSIGN = "assign"
    REASSIGN = "reassign"
    START = "start"
    COMPLETE = "complete"
    DECLINE = "decline"
    ESCALATE = "escalate"
    RESUME_REVIEW = "resume_review"


@dataclass(frozen=True)
class Principal:
    """An acting user as seen from one property.

    Attributes:
        user_id: External user identifier.
        roles: Roles held toward the property in question.
        tenant_id: Tenant record of this user at the property, if any.
        worker_id: Worker record of this user, if any.
    """

    user_id: str
    roles: frozenset[Role] = frozenset()
    tenant_id: str | None = None
    worker_id: str | None = None

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    @property
    def is_system(self) -> bool:
        return Role.SYSTEM in self.roles


class PrincipalLookup(Protocol):
    """Resolves a user id into its relationships with a property."""

    def lookup(self, user_id: str, *, property_id: str) -> Principal: ...


MANAGER_ACTIONS: frozenset[RequestAction] = frozenset(
    {
        RequestAction.REVIEW,
        RequestAction.ASSIGN,
        RequestAction.REASSIGN,
        RequestAction.DECLINE,
        RequestAction.ESCALATE,
        RequestAction.RESUME_REVIEW,
    }
)
WORKER_ACTIONS: frozenset[RequestAction] = frozenset(
    {RequestAction.START, RequestAction.COMPLETE}
)


def action_for_transition(current: RequestStatus, target: RequestStatus) -> RequestAction:
    """Map a status move to the action that authorizes it."""
    if target == RequestStatus.IN_REVIEW:
        if current == RequestStatus.ESCALATED:
            return RequestAction.RESUME_REVIEW
        return RequestAction.REVIEW
    return {
        RequestStatus.ASSIGNED: RequestAction.ASSIGN,
        RequestStatus.IN_PROGRESS: RequestAction.START,
        RequestStatus.COMPLETED: RequestAction.COMPLETE,
        RequestStatus.DECLINED: RequestAction.DECLINE,
        RequestStatus.ESCALATED: RequestAction.ESCALATE,
    }[target]


def is_authorized(
    principal: Principal,
    action: RequestAction,
    request: TenantRequest | None = None,
) -> bool:
    if principal.is_system:
        return True
    is_manager = principal.has_role(Role.MANAGER)
    if action == RequestAction.SUBMIT:
        return principal.has_role(Role.TENANT) and principal.tenant_id is not None
    if action in MANAGER_ACTIONS:
        return is_manager
    is_assigned_worker = (
        request is not None
        and principal.worker_id is not None
        and principal.worker_id == request.assigned_worker_id
    )
    if action in WORKER_ACTIONS:
        return is_manager or is_assigned_worker
    if action == RequestAction.VIEW:
        is_filer = (
            request is not None
            and principal.tenant_id is not None
            and principal.tenant_id == request.tenant_id
        )
        return is_manager or is_filer or is_assigned_worker
    return False


def authorize(
    principal: Principal,
    action: RequestAction,
    request: TenantRequest | None = None,
) -> None:
    """Raise :class:`AuthorizationError` unless *principal* may perform *action*."""
    if is_authorized(principal, action, request):
        return
    raise AuthorizationError(
        f"User {principal.user_id} may not {action.value} "
        + (f"request {request.id}" if request is not None else "this request"),
        rule=f"authorize_{action.value}",
        aggregate="request",
        id=request.id if request is not None else None,
        user_id=principal.user_id,
    )


def authorize_management(principal: Principal, *, property_id: str, operation: str) -> None:
    """Property-level administration: the property's manager or the system."""
    if principal.is_system or principal.has_role(Role.MANAGER):
        return
    raise AuthorizationError(
        f"User {principal.user_id} may not {operation} for property {property_id}",
        rule="authorize_management",
        aggregate="property",
        id=property_id,
        user_id=principal.user_id,
    )
