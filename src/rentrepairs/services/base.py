"""BaseService: foundation for all rentrepairs services.

Every service receives a :class:`RepairStore` at construction time and owns
its transaction boundaries via ``self._store.transaction()``. Domain
exceptions are translated into failed :class:`ServiceResult` objects here;
events are published only after the unit of work has committed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from rentrepairs.domain.assignment import FallbackPolicy
from rentrepairs.domain.authorization import Principal, PrincipalLookup
from rentrepairs.domain.errors import DomainError, NotFoundError
from rentrepairs.domain.models import Property, utc_now
from rentrepairs.infrastructure.repositories.compiler import UnsupportedSpecificationError
from rentrepairs.services._helpers import is_property_id
from rentrepairs.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from rentrepairs.domain.events import DomainEvent
    from rentrepairs.infrastructure.store import RepairStore, UnitOfWork

logger = logging.getLogger(__name__)


class BaseService:
    """Shared plumbing for service-layer classes.

    Args:
        store: Database access and event bus.
        principals: Identity lookup; defaults to the store-backed lookup of
            each unit of work.
        clock: Source of "now" (injected by tests).

    Usage::

        class RequestService(BaseService):
            def start_work(self, request_id: str, *, actor_id: str) -> ServiceResult:
                with self._store.transaction() as uow:
                    ...
    """

    def __init__(
        self,
        store: RepairStore,
        *,
        principals: PrincipalLookup | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._principals = principals
        self._clock = clock

    # --- configuration shortcuts ---------------------------------------

    @property
    def _cap(self) -> int:
        return self._store.settings.assignment.max_concurrent_assignments

    @property
    def _fallback_policy(self) -> FallbackPolicy:
        return self._store.settings.assignment.fallback_policy

    # --- helpers --------------------------------------------------------

    def _principal(self, uow: UnitOfWork, user_id: str, property_id: str) -> Principal:
        lookup = self._principals or uow.principals
        return lookup.lookup(user_id, property_id=property_id)

    @staticmethod
    def _load_property(uow: UnitOfWork, ref: str) -> Property:
        """Resolve *ref* as a property id first, then as a property code."""
        if is_property_id(ref):
            try:
                return uow.properties.get(ref.upper())
            except NotFoundError:
                logger.debug("No property with id %s; trying it as a code", ref)
        return uow.properties.get_by_code(ref)

    def _publish(self, events: Iterable[DomainEvent], warnings: list[str]) -> None:
        """Hand committed events to the plugin bus. No-op without a bus.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        bus = self._store.event_bus
        if bus is None:
            return
        try:
            warnings.extend(bus.publish(events))
        except Exception:
            logger.warning("Event dispatch failed", exc_info=True)
            warnings.append("Event dispatch failed; events remain in the WAL")

    @staticmethod
    def _failure(op: str, exc: DomainError | UnsupportedSpecificationError) -> ServiceResult:
        if isinstance(exc, UnsupportedSpecificationError):
            error = ServiceError(
                code="UNSUPPORTED_QUERY",
                kind="validation",
                message=str(exc),
                detail={"aggregate": exc.aggregate, "node": exc.node},
            )
        else:
            error = ServiceError(
                code=exc.code,
                kind=exc.kind,  # type: ignore[arg-type]
                message=exc.message,
                detail=exc.detail,
            )
        logger.debug("%s rejected: %s %s", op, error.code, error.message)
        return ServiceResult(ok=False, op=op, error=error)
