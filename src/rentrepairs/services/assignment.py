"""AssignmentService: matching workers to requests.

Candidates come from the specification engine: exact-specialization
workers with spare capacity first, then general-maintenance workers when
the configured :class:`FallbackPolicy` allows them. The worker and the
request are saved in one unit of work; a failure saving either rolls both
back.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rentrepairs.domain.assignment import (
    FallbackPolicy,
    assign_worker,
    ensure_assignable,
    ensure_reassignable,
    reassign_worker,
)
from rentrepairs.domain.authorization import RequestAction, authorize
from rentrepairs.domain.errors import DomainError, InvariantViolation
from rentrepairs.domain.specializations import Specialization
from rentrepairs.domain.specifications import eligible_workers, general_fallback_workers
from rentrepairs.services.base import BaseService
from rentrepairs.services.contracts import (
    CandidatesResultData,
    candidate_data,
    dump_validated,
    request_data,
    worker_data,
)
from rentrepairs.services.result import ServiceResult
from rentrepairs.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from rentrepairs.domain.models import TenantRequest, Worker
    from rentrepairs.infrastructure.store import UnitOfWork


class AssignmentService(BaseService):
    """Finds eligible workers and assigns or reassigns them."""

    # ------------------------------------------------------------------
    # Candidate search
    # ------------------------------------------------------------------

    def _allow_general(self, uow: UnitOfWork, required: Specialization) -> bool:
        """Evaluate the fallback policy against the current worker pool."""
        policy = self._fallback_policy
        if required == Specialization.GENERAL or policy == FallbackPolicy.NONE:
            return False
        exact = uow.workers.count(eligible_workers(required, self._cap))
        return policy.allows_general(exact_match_available=exact > 0)

    def _candidates(
        self, uow: UnitOfWork, request: TenantRequest
    ) -> tuple[list[Worker], list[Worker]]:
        required = request.required_specialization
        with trace_span("exact") as span:
            exact = uow.workers.find(eligible_workers(required, self._cap))
            if span:
                span.annotate("count", len(exact))
        fallback: list[Worker] = []
        if required != Specialization.GENERAL and self._fallback_policy.allows_general(
            exact_match_available=bool(exact)
        ):
            with trace_span("general_fallback") as span:
                fallback = uow.workers.find(general_fallback_workers(self._cap))
                if span:
                    span.annotate("count", len(fallback))
        return exact, fallback

    @traced
    def find_eligible_workers(self, request_id: str, *, actor_id: str) -> ServiceResult:
        """Workers who could take *request_id* now, best candidates first."""
        op = "find_eligible_workers"
        try:
            with self._store.read() as uow:
                request = uow.requests.get(request_id.upper())
                principal = self._principal(uow, actor_id, request.property_id)
                authorize(principal, RequestAction.ASSIGN, request)
                exact, fallback = self._candidates(uow, request)
        except DomainError as exc:
            return self._failure(op, exc)

        items = [candidate_data(w, match="exact") for w in exact]
        items += [candidate_data(w, match="general_fallback") for w in fallback]
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                CandidatesResultData,
                {
                    "request_id": request.id,
                    "required_specialization": request.required_specialization.value,
                    "fallback_policy": self._fallback_policy.value,
                    "fallback_used": bool(fallback),
                    "count": len(items),
                    "items": items,
                },
            ),
        )

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    @traced
    def assign_worker(
        self,
        request_id: str,
        worker_id: str | None = None,
        *,
        actor_id: str,
    ) -> ServiceResult:
        """Assign a worker to a submitted or in-review request.

        With no *worker_id* the best eligible candidate is chosen.
        A submitted request is reviewed on the way; both transitions are
        recorded.
        """
        op = "assign_worker"
        warnings: list[str] = []
        try:
            with self._store.transaction() as uow:
                request = uow.requests.get(request_id.upper())
                ensure_assignable(request)
                principal = self._principal(uow, actor_id, request.property_id)
                authorize(principal, RequestAction.ASSIGN, request)

                if worker_id is None:
                    exact, fallback = self._candidates(uow, request)
                    if not (exact or fallback):
                        raise InvariantViolation(
                            f"No eligible worker for {request.required_specialization.value} "
                            f"request {request.id}",
                            code="NO_ELIGIBLE_WORKER",
                            rule="assignment_eligibility",
                            aggregate="request",
                            id=request.id,
                        )
                    worker = (exact or fallback)[0]
                else:
                    worker = uow.workers.get(worker_id.upper())

                allow_general = self._allow_general(uow, request.required_specialization)
                assign_worker(
                    worker,
                    request,
                    cap=self._cap,
                    actor_id=actor_id,
                    allow_general=allow_general,
                    at=self._clock(),
                )
                if worker.specialization != request.required_specialization:
                    warnings.append(
                        f"Assigned general worker {worker.id} to "
                        f"{request.required_specialization.value} work"
                    )
                uow.requests.update(request)
                uow.workers.update(worker)
        except DomainError as exc:
            return self._failure(op, exc)

        self._publish(uow.events, warnings)
        return ServiceResult(
            ok=True,
            op=op,
            data={"request": request_data(request), "worker": worker_data(worker)},
            warnings=warnings,
        )

    @traced
    def reassign_worker(self, request_id: str, worker_id: str, *, actor_id: str) -> ServiceResult:
        """Hand an assigned or in-progress request to another worker.

        The status is unchanged and no history entry is written; the swap is
        visible through the ``WorkerUnassigned`` and ``WorkerAssigned`` events.
        """
        op = "reassign_worker"
        warnings: list[str] = []
        try:
            with self._store.transaction() as uow:
                request = uow.requests.get(request_id.upper())
                ensure_reassignable(request)
                principal = self._principal(uow, actor_id, request.property_id)
                authorize(principal, RequestAction.REASSIGN, request)

                current = (
                    uow.workers.get(request.assigned_worker_id)
                    if request.has_active_assignment and request.assigned_worker_id
                    else None
                )
                replacement = uow.workers.get(worker_id.upper())
                previous = reassign_worker(
                    request,
                    current,
                    replacement,
                    cap=self._cap,
                    actor_id=actor_id,
                    allow_general=self._allow_general(uow, request.required_specialization),
                    at=self._clock(),
                )
                uow.requests.update(request)
                uow.workers.update(previous)
                uow.workers.update(replacement)
        except DomainError as exc:
            return self._failure(op, exc)

        self._publish(uow.events, warnings)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "request": request_data(request),
                "previous_worker": worker_data(previous),
                "worker": worker_data(replacement),
            },
            warnings=warnings,
        )
