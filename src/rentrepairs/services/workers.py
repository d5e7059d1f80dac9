"""WorkerService: the worker registry and audited specialization changes."""

from __future__ import annotations

from rentrepairs.domain.assignment import FallbackPolicy
from rentrepairs.domain.errors import (
    AuthorizationError,
    DomainError,
    InvariantViolation,
    NotFoundError,
)
from rentrepairs.domain.lifecycle import ACTIVE_ASSIGNMENT_STATUSES
from rentrepairs.domain.models import Worker
from rentrepairs.domain.specializations import Specialization, parse_specialization
from rentrepairs.domain.specifications import (
    WORKER,
    active_workers,
    available_workers,
    everything,
    request_by_status,
    request_by_worker,
    worker_by_specialization,
)
from rentrepairs.infrastructure.store import UnitOfWork
from rentrepairs.services._helpers import combine_filters
from rentrepairs.services.base import BaseService
from rentrepairs.services.contracts import ListResultData, dump_validated, worker_data
from rentrepairs.services.result import ServiceResult
from rentrepairs.services.telemetry import trace_span, traced


class WorkerService(BaseService):
    """Registers workers and manages their specialization and activity."""

    @staticmethod
    def _authorize_registry(uow: UnitOfWork, actor_id: str, operation: str) -> None:
        # The registry is shared across properties: any manager or the system.
        if uow.principals.is_system(actor_id) or uow.principals.manages_any_property(actor_id):
            return
        raise AuthorizationError(
            f"User {actor_id} may not {operation}",
            rule="authorize_worker_registry",
            aggregate="worker",
            user_id=actor_id,
        )

    @staticmethod
    def _load_worker(uow: UnitOfWork, ref: str) -> Worker:
        """Resolve *ref* as a worker id, falling back to an email address."""
        if "@" in ref:
            worker = uow.workers.get_by_email(ref)
            if worker is None:
                raise NotFoundError(
                    f"No worker found with email '{ref}'", aggregate="worker", field="email"
                )
            return worker
        return uow.workers.get(ref.upper())

    @traced
    def register_worker(
        self,
        *,
        email: str,
        name: str,
        specialization: str | Specialization,
        actor_id: str,
    ) -> ServiceResult:
        op = "register_worker"
        warnings: list[str] = []
        try:
            spec = (
                specialization
                if isinstance(specialization, Specialization)
                else parse_specialization(specialization)
            )
            with self._store.transaction() as uow:
                self._authorize_registry(uow, actor_id, "register workers")
                worker = Worker.register(
                    uow.next_id("WRK-"),
                    email=email,
                    name=name,
                    specialization=spec,
                    at=self._clock(),
                )
                if uow.workers.get_by_email(worker.email) is not None:
                    raise InvariantViolation(
                        f"A worker with email {worker.email} already exists",
                        code="DUPLICATE_WORKER",
                        rule="worker_email_unique",
                        aggregate="worker",
                        field="email",
                    )
                uow.workers.add(worker)
        except DomainError as exc:
            return self._failure(op, exc)

        self._publish(uow.events, warnings)
        return ServiceResult(ok=True, op=op, data=worker_data(worker), warnings=warnings)

    @traced
    def change_specialization(
        self,
        worker_ref: str,
        specialization: str | Specialization,
        *,
        actor_id: str,
    ) -> ServiceResult:
        """Audited specialization change.

        Rejected with ``SPECIALIZATION_CONFLICT`` when a request the worker is
        assigned to or working on would no longer be covered.
        """
        op = "change_specialization"
        warnings: list[str] = []
        try:
            new = (
                specialization
                if isinstance(specialization, Specialization)
                else parse_specialization(specialization)
            )
            with self._store.transaction() as uow:
                self._authorize_registry(uow, actor_id, "change worker specializations")
                worker = self._load_worker(uow, worker_ref)
                held = request_by_status(*sorted(ACTIVE_ASSIGNMENT_STATUSES))
                active = uow.requests.find(request_by_worker(worker.id) & held)
                changed = worker.change_specialization(
                    new,
                    changed_by=actor_id,
                    active_requirements=[r.required_specialization for r in active],
                    allow_general=self._fallback_policy != FallbackPolicy.NONE,
                    at=self._clock(),
                )
                if changed:
                    uow.workers.update(worker)
                else:
                    warnings.append(f"Worker {worker.id} already has specialization {new.value}")
        except DomainError as exc:
            return self._failure(op, exc)

        self._publish(uow.events, warnings)
        return ServiceResult(ok=True, op=op, data=worker_data(worker), warnings=warnings)

    def _set_active(self, op: str, worker_ref: str, *, active: bool, actor_id: str) -> ServiceResult:
        warnings: list[str] = []
        try:
            with self._store.transaction() as uow:
                self._authorize_registry(uow, actor_id, f"{op.split('_')[0]} workers")
                worker = self._load_worker(uow, worker_ref)
                if worker.is_active == active:
                    warnings.append(
                        f"Worker {worker.id} is already {'active' if active else 'inactive'}"
                    )
                elif active:
                    worker.activate(cap=self._cap)
                    uow.workers.update(worker)
                else:
                    worker.deactivate(cap=self._cap)
                    uow.workers.update(worker)
                    if worker.assigned_request_ids:
                        warnings.append(
                            f"Worker {worker.id} keeps {worker.active_assignment_count} "
                            "active assignment(s); reassign them"
                        )
        except DomainError as exc:
            return self._failure(op, exc)
        return ServiceResult(ok=True, op=op, data=worker_data(worker), warnings=warnings)

    @traced
    def deactivate_worker(self, worker_ref: str, *, actor_id: str) -> ServiceResult:
        """Take a worker out of the assignment pool. Existing assignments stay."""
        return self._set_active("deactivate_worker", worker_ref, active=False, actor_id=actor_id)

    @traced
    def activate_worker(self, worker_ref: str, *, actor_id: str) -> ServiceResult:
        return self._set_active("activate_worker", worker_ref, active=True, actor_id=actor_id)

    @traced
    def get_worker(self, worker_ref: str) -> ServiceResult:
        op = "get_worker"
        try:
            with self._store.read() as uow:
                worker = self._load_worker(uow, worker_ref)
        except DomainError as exc:
            return self._failure(op, exc)
        return ServiceResult(ok=True, op=op, data=worker_data(worker))

    @traced
    def list_workers(
        self,
        *,
        specialization: str | Specialization | None = None,
        active_only: bool = False,
        available_only: bool = False,
    ) -> ServiceResult:
        op = "list_workers"
        try:
            spec_filter = None
            if specialization is not None:
                wanted = (
                    specialization
                    if isinstance(specialization, Specialization)
                    else parse_specialization(specialization)
                )
                spec_filter = worker_by_specialization(wanted)
        except DomainError as exc:
            return self._failure(op, exc)

        spec = combine_filters(
            everything(WORKER).ordered_by("email"),
            [
                active_workers() if active_only else None,
                available_workers(self._cap) if available_only else None,
                spec_filter,
            ],
        )
        with self._store.read() as uow, trace_span("find") as span:
            found = uow.workers.find(spec)
            if span:
                span.annotate("count", len(found))

        items = [worker_data(w) for w in found]
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                ListResultData, {"count": len(items), "filter": spec.name, "items": items}
            ),
        )
