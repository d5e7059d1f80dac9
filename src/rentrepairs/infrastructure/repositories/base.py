"""Repository contracts.

Services depend on these protocols only; :mod:`.sql` provides the SQLite
implementation. ``update`` enforces optimistic concurrency: it succeeds only
if the stored version still equals the aggregate's version.
"""

from __future__ import annotations

from typing import Any, Protocol, TypeVar

from rentrepairs.domain.models import Property, TenantRequest, Worker
from rentrepairs.domain.specifications import Specification

A = TypeVar("A")


class Repository(Protocol[A]):
    def get(self, aggregate_id: str) -> A:
        """Load one aggregate. Raises ``NotFoundError`` when missing."""
        ...

    def add(self, aggregate: A) -> None: ...

    def update(self, aggregate: A) -> None:
        """Persist changes. Raises ``ConcurrencyConflictError`` on a stale version."""
        ...

    def find(self, spec: Specification[Any], *, limit: int | None = None) -> list[A]: ...

    def count(self, spec: Specification[Any]) -> int: ...


class PropertyRepository(Repository[Property], Protocol):
    def get_by_code(self, code: str) -> Property: ...


class WorkerRepository(Repository[Worker], Protocol):
    def get_by_email(self, email: str) -> Worker | None: ...


class RequestRepository(Repository[TenantRequest], Protocol):
    pass
