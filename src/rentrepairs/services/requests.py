"""RequestService: filing requests and moving them through their lifecycle.

Every transition runs the same pipeline inside one unit of work:

    LOAD → GRAPH CHECK → AUTHORIZE → APPLY → PERSIST → PUBLISH

Graph legality comes first so that an illegal move is reported as
``INVALID_TRANSITION`` regardless of who attempted it. When a move frees
the assigned worker, the worker is saved in the same transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from rentrepairs.domain.assignment import transition_request
from rentrepairs.domain.authorization import RequestAction, action_for_transition, authorize
from rentrepairs.domain.errors import DomainError, DomainValidationError, IllegalTransitionError
from rentrepairs.domain.lifecycle import RequestStatus, Urgency, parse_status, parse_urgency
from rentrepairs.domain.models import TenantRequest, Worker
from rentrepairs.domain.specializations import (
    Specialization,
    parse_specialization,
    try_parse_specialization,
)
from rentrepairs.domain.specifications import (
    REQUEST,
    everything,
    open_requests,
    overdue_requests,
    pending_requests,
    request_by_property,
    request_by_specialization,
    request_by_status,
    request_by_tenant,
    request_by_urgency,
    request_by_worker,
)
from rentrepairs.infrastructure.repositories.compiler import UnsupportedSpecificationError
from rentrepairs.services._helpers import combine_filters
from rentrepairs.services.base import BaseService
from rentrepairs.services.contracts import (
    ListResultData,
    dump_validated,
    request_data,
    request_summary,
    worker_data,
)
from rentrepairs.services.result import ServiceResult
from rentrepairs.services.telemetry import trace_span, traced

# Statuses each entry point starts from; both review moves target in_review.
_REVIEW_FROM = RequestStatus.SUBMITTED
_RESUME_FROM = RequestStatus.ESCALATED


class RequestService(BaseService):
    """Request submission, status transitions, and request queries."""

    # ------------------------------------------------------------------
    # Submission and lookup
    # ------------------------------------------------------------------

    @traced
    def submit_request(
        self,
        property_ref: str,
        *,
        description: str,
        actor_id: str,
        urgency: str | Urgency | None = None,
        category_hint: str | None = None,
        tenant_id: str | None = None,
    ) -> ServiceResult:
        """File a request against a property on behalf of the acting tenant.

        A system user may file on behalf of *tenant_id*; for everyone else
        the tenant is derived from the acting user.
        """
        op = "submit_request"
        warnings: list[str] = []
        try:
            level = parse_urgency(urgency)
            with self._store.transaction() as uow:
                prop = self._load_property(uow, property_ref)
                principal = self._principal(uow, actor_id, prop.id)
                authorize(principal, RequestAction.SUBMIT)
                filer = principal.tenant_id
                if principal.is_system and tenant_id is not None:
                    filer = tenant_id.upper()
                if filer is None:
                    raise DomainValidationError(
                        "A tenant is required to file a request",
                        code="FIELD_REQUIRED",
                        aggregate="request",
                        field="tenant_id",
                    )
                request = prop.file_request(
                    uow.next_id("REQ-"),
                    tenant_id=filer,
                    description=description,
                    urgency=level,
                    category_hint=category_hint,
                    at=self._clock(),
                )
                uow.requests.add(request)
        except DomainError as exc:
            return self._failure(op, exc)

        if category_hint and try_parse_specialization(category_hint) is None:
            warnings.append(
                f"Category hint {category_hint!r} not recognized; "
                f"classified as {request.required_specialization.value}"
            )
        self._publish(uow.events, warnings)
        return ServiceResult(ok=True, op=op, data=request_data(request), warnings=warnings)

    @traced
    def get_request(self, request_id: str, *, actor_id: str) -> ServiceResult:
        """Show a request to its tenant, its worker, its manager or the system."""
        op = "get_request"
        try:
            with self._store.read() as uow:
                request = uow.requests.get(request_id.upper())
                principal = self._principal(uow, actor_id, request.property_id)
                authorize(principal, RequestAction.VIEW, request)
        except DomainError as exc:
            return self._failure(op, exc)
        return ServiceResult(ok=True, op=op, data=request_data(request))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(
        self,
        op: str,
        request_id: str,
        target: RequestStatus,
        *,
        actor_id: str,
        reason: str | None = None,
        expected_from: RequestStatus | None = None,
    ) -> ServiceResult:
        warnings: list[str] = []
        worker: Worker | None = None
        try:
            with self._store.transaction() as uow:
                request = uow.requests.get(request_id.upper())
                request.ensure_can_transition(target)
                if expected_from is not None and request.status != expected_from:
                    raise IllegalTransitionError(
                        f"{op} applies to {expected_from.value} requests; "
                        f"{request.id} is {request.status.value}",
                        rule="status_graph",
                        aggregate="request",
                        id=request.id,
                        field="status",
                    )
                principal = self._principal(uow, actor_id, request.property_id)
                authorize(principal, action_for_transition(request.status, target), request)

                if request.has_active_assignment and request.assigned_worker_id is not None:
                    worker = uow.workers.get(request.assigned_worker_id)
                with trace_span("apply") as span:
                    transition_request(
                        request,
                        target,
                        worker=worker,
                        cap=self._cap,
                        actor_id=actor_id,
                        reason=reason,
                        at=self._clock(),
                    )
                    if span:
                        span.annotate("status", target.value)
                uow.requests.update(request)
                # Only a move that releases the slot changes the worker.
                if worker is not None and request.id not in worker.assigned_request_ids:
                    uow.workers.update(worker)
                else:
                    worker = None
        except DomainError as exc:
            return self._failure(op, exc)

        self._publish(uow.events, warnings)
        data: dict[str, Any] = request_data(request)
        if worker is not None:
            data["released_worker"] = worker_data(worker)
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    @traced
    def begin_review(self, request_id: str, *, actor_id: str) -> ServiceResult:
        return self._transition(
            "begin_review",
            request_id,
            RequestStatus.IN_REVIEW,
            actor_id=actor_id,
            expected_from=_REVIEW_FROM,
        )

    @traced
    def resume_review(
        self, request_id: str, *, actor_id: str, reason: str | None = None
    ) -> ServiceResult:
        """Bring an escalated request back into review."""
        return self._transition(
            "resume_review",
            request_id,
            RequestStatus.IN_REVIEW,
            actor_id=actor_id,
            reason=reason,
            expected_from=_RESUME_FROM,
        )

    @traced
    def start_work(self, request_id: str, *, actor_id: str) -> ServiceResult:
        return self._transition(
            "start_work", request_id, RequestStatus.IN_PROGRESS, actor_id=actor_id
        )

    @traced
    def complete(
        self, request_id: str, *, actor_id: str, reason: str | None = None
    ) -> ServiceResult:
        """Close the request. The worker's slot is freed; the request keeps its worker."""
        return self._transition(
            "complete", request_id, RequestStatus.COMPLETED, actor_id=actor_id, reason=reason
        )

    @traced
    def decline(
        self, request_id: str, *, actor_id: str, reason: str | None = None
    ) -> ServiceResult:
        return self._transition(
            "decline", request_id, RequestStatus.DECLINED, actor_id=actor_id, reason=reason
        )

    @traced
    def escalate(
        self, request_id: str, *, actor_id: str, reason: str | None = None
    ) -> ServiceResult:
        return self._transition(
            "escalate", request_id, RequestStatus.ESCALATED, actor_id=actor_id, reason=reason
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _run_query(self, op: str, spec: Any, *, limit: int | None) -> ServiceResult:
        try:
            with self._store.read() as uow, trace_span("find") as span:
                found: list[TenantRequest] = uow.requests.find(spec, limit=limit)
                if span:
                    span.annotate("count", len(found))
        except (DomainError, UnsupportedSpecificationError) as exc:
            return self._failure(op, exc)
        items = [request_summary(r) for r in found]
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                ListResultData, {"count": len(items), "filter": spec.name, "items": items}
            ),
        )

    @traced
    def list_requests(
        self,
        *,
        statuses: Sequence[str | RequestStatus] = (),
        property_ref: str | None = None,
        tenant_id: str | None = None,
        worker_id: str | None = None,
        specialization: str | Specialization | None = None,
        urgencies: Sequence[str | Urgency] = (),
        open_only: bool = False,
        pending_only: bool = False,
        limit: int | None = None,
    ) -> ServiceResult:
        """List requests matching every given filter, newest first."""
        op = "list_requests"
        try:
            status_filter = (
                request_by_status(*(parse_status(s) for s in statuses)) if statuses else None
            )
            urgency_filter = (
                request_by_urgency(*(parse_urgency(u) for u in urgencies)) if urgencies else None
            )
            spec_filter = None
            if specialization is not None:
                wanted = (
                    specialization
                    if isinstance(specialization, Specialization)
                    else parse_specialization(specialization)
                )
                spec_filter = request_by_specialization(wanted)
            property_filter = None
            if property_ref is not None:
                with self._store.read() as uow:
                    property_filter = request_by_property(
                        self._load_property(uow, property_ref).id
                    )
        except DomainError as exc:
            return self._failure(op, exc)

        spec = combine_filters(
            everything(REQUEST),
            [
                pending_requests() if pending_only else None,
                open_requests() if open_only else None,
                status_filter,
                property_filter,
                request_by_tenant(tenant_id.upper()) if tenant_id else None,
                request_by_worker(worker_id.upper()) if worker_id else None,
                spec_filter,
                urgency_filter,
            ],
        )
        if not spec.ordering:
            spec = spec.ordered_by("created_at", descending=True)
        return self._run_query(op, spec, limit=limit)

    @traced
    def overdue(
        self,
        *,
        now: datetime | None = None,
        property_ref: str | None = None,
        limit: int | None = None,
    ) -> ServiceResult:
        """Open requests past their urgency's expected resolution time, oldest first."""
        op = "overdue"
        spec = overdue_requests(now or self._clock())
        if property_ref is not None:
            try:
                with self._store.read() as uow:
                    spec = spec & request_by_property(self._load_property(uow, property_ref).id)
            except DomainError as exc:
                return self._failure(op, exc)
        return self._run_query(op, spec, limit=limit)
