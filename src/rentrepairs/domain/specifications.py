"""Composable query specifications over aggregates.

A :class:`Specification` is an immutable expression tree plus ordering and
includes. It is evaluated in memory via :meth:`Specification.is_satisfied_by`
and translated to a store-native query by an infrastructure compiler that
knows each aggregate's field-to-column mapping.

Composition (``&``, ``|``, ``~``) flattens nested conjunctions and
disjunctions, so ``(a & b) & c`` and ``a & (b & c)`` build the same tree.
In-memory evaluation short-circuits left to right.

Comparison semantics are shared with the SQL compiler: ordering comparisons
against a missing (``None``) value are false, ``ne`` treats ``None`` as
different from any non-``None`` value.

Named constructors for each aggregate live at the bottom of this module.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Generic, TypeVar

from rentrepairs.domain.errors import DomainValidationError
from rentrepairs.domain.lifecycle import OPEN_STATUSES, RequestStatus, Urgency
from rentrepairs.domain.specializations import Specialization

REQUEST = "request"
WORKER = "worker"
PROPERTY = "property"

# ---------------------------------------------------------------------------
# Expression nodes
# ---------------------------------------------------------------------------


class Expr:
    """Base class for specification expression nodes."""

    def evaluate(self, candidate: Any) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Always(Expr):
    """Constant expression; ``TRUE`` matches every candidate."""

    value: bool = True

    def evaluate(self, candidate: Any) -> bool:
        return self.value


TRUE = Always(True)
FALSE = Always(False)


_ORDERING_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "lt": operator.lt,
    "le": operator.le,
    "gt": operator.gt,
    "ge": operator.ge,
}

COMPARISON_OPS: frozenset[str] = frozenset({"eq", "ne", "in", *_ORDERING_OPS})


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def resolve_field(candidate: Any, name: str) -> Any:
    """Read a (possibly dotted) attribute path from *candidate*."""
    value = candidate
    for part in name.split("."):
        value = getattr(value, part)
    return value


@dataclass(frozen=True)
class Comparison(Expr):
    """``field <op> value`` over one aggregate attribute."""

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in COMPARISON_OPS:
            msg = f"Unknown comparison operator: {self.op!r}"
            raise ValueError(msg)

    def evaluate(self, candidate: Any) -> bool:
        actual = _plain(resolve_field(candidate, self.field))
        if self.op == "in":
            return actual in {_plain(v) for v in self.value}
        expected = _plain(self.value)
        if self.op == "eq":
            return actual == expected
        if self.op == "ne":
            return actual != expected
        if actual is None or expected is None:
            return False
        return _ORDERING_OPS[self.op](actual, expected)


@dataclass(frozen=True)
class And(Expr):
    operands: tuple[Expr, ...]

    @classmethod
    def of(cls, *exprs: Expr) -> Expr:
        flat: list[Expr] = []
        for expr in exprs:
            if expr == TRUE:
                continue
            if isinstance(expr, And):
                flat.extend(expr.operands)
            else:
                flat.append(expr)
        if not flat:
            return TRUE
        if len(flat) == 1:
            return flat[0]
        return cls(tuple(flat))

    def evaluate(self, candidate: Any) -> bool:
        return all(op.evaluate(candidate) for op in self.operands)


@dataclass(frozen=True)
class Or(Expr):
    operands: tuple[Expr, ...]

    @classmethod
    def of(cls, *exprs: Expr) -> Expr:
        flat: list[Expr] = []
        for expr in exprs:
            if expr == FALSE:
                continue
            if isinstance(expr, Or):
                flat.extend(expr.operands)
            else:
                flat.append(expr)
        if not flat:
            return FALSE
        if len(flat) == 1:
            return flat[0]
        return cls(tuple(flat))

    def evaluate(self, candidate: Any) -> bool:
        return any(op.evaluate(candidate) for op in self.operands)


@dataclass(frozen=True)
class Not(Expr):
    operand: Expr

    def evaluate(self, candidate: Any) -> bool:
        return not self.operand.evaluate(candidate)


@dataclass(frozen=True)
class Predicate(Expr):
    """Opaque Python predicate. Evaluable in memory only; no store translates it."""

    name: str
    fn: Callable[[Any], bool] = field(compare=False)

    def evaluate(self, candidate: Any) -> bool:
        return bool(self.fn(candidate))


# Comparison helpers -------------------------------------------------------


def eq(name: str, value: Any) -> Comparison:
    return Comparison(name, "eq", value)


def ne(name: str, value: Any) -> Comparison:
    return Comparison(name, "ne", value)


def lt(name: str, value: Any) -> Comparison:
    return Comparison(name, "lt", value)


def le(name: str, value: Any) -> Comparison:
    return Comparison(name, "le", value)


def gt(name: str, value: Any) -> Comparison:
    return Comparison(name, "gt", value)


def ge(name: str, value: Any) -> Comparison:
    return Comparison(name, "ge", value)


def in_(name: str, values: Iterable[Any]) -> Comparison:
    return Comparison(name, "in", tuple(values))


def predicate(name: str, fn: Callable[[Any], bool]) -> Predicate:
    return Predicate(name, fn)


# ---------------------------------------------------------------------------
# Specification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Ordering:
    field: str
    descending: bool = False


T = TypeVar("T")


@dataclass(frozen=True)
class Specification(Generic[T]):
    """A named, composable predicate with ordering and includes.

    Attributes:
        aggregate: Aggregate type the specification applies to
            (``"request"``, ``"worker"`` or ``"property"``).
        expression: Predicate tree.
        name: Human-readable description, composed alongside the tree.
        ordering: Sort keys applied by repositories, in priority order.
        includes: Related collections a repository should load eagerly.
    """

    aggregate: str
    expression: Expr = TRUE
    name: str = "all"
    ordering: tuple[Ordering, ...] = ()
    includes: frozenset[str] = frozenset()

    def is_satisfied_by(self, candidate: T) -> bool:
        """Evaluate the predicate against *candidate*. Pure."""
        return self.expression.evaluate(candidate)

    def filter(self, candidates: Iterable[T]) -> list[T]:
        """Return matching candidates, sorted by :attr:`ordering`."""
        matched = [c for c in candidates if self.is_satisfied_by(c)]
        for order in reversed(self.ordering):
            matched.sort(
                key=lambda c, f=order.field: _sort_key(resolve_field(c, f)),
                reverse=order.descending,
            )
        return matched

    # --- composition -------------------------------------------------

    def _check_same_aggregate(self, other: Specification[Any]) -> None:
        if other.aggregate != self.aggregate:
            msg = (
                f"Cannot compose a {self.aggregate!r} specification "
                f"with a {other.aggregate!r} specification"
            )
            raise TypeError(msg)

    def and_(self, other: Specification[T]) -> Specification[T]:
        self._check_same_aggregate(other)
        return Specification(
            aggregate=self.aggregate,
            expression=And.of(self.expression, other.expression),
            name=f"({self.name} and {other.name})",
            ordering=self.ordering or other.ordering,
            includes=self.includes | other.includes,
        )

    def or_(self, other: Specification[T]) -> Specification[T]:
        self._check_same_aggregate(other)
        return Specification(
            aggregate=self.aggregate,
            expression=Or.of(self.expression, other.expression),
            name=f"({self.name} or {other.name})",
            ordering=self.ordering or other.ordering,
            includes=self.includes | other.includes,
        )

    def not_(self) -> Specification[T]:
        return replace(self, expression=Not(self.expression), name=f"not {self.name}")

    def __and__(self, other: object) -> Specification[T]:
        if not isinstance(other, Specification):
            return NotImplemented
        return self.and_(other)

    def __or__(self, other: object) -> Specification[T]:
        if not isinstance(other, Specification):
            return NotImplemented
        return self.or_(other)

    def __invert__(self) -> Specification[T]:
        return self.not_()

    # --- ordering / includes -------------------------------------------

    def ordered_by(self, field_name: str, *, descending: bool = False) -> Specification[T]:
        """Return a copy sorted by *field_name* (appended after existing keys)."""
        return replace(self, ordering=(*self.ordering, Ordering(field_name, descending)))

    def replace_ordering(self, *orderings: Ordering) -> Specification[T]:
        return replace(self, ordering=tuple(orderings))

    def including(self, *relations: str) -> Specification[T]:
        return replace(self, includes=self.includes | frozenset(relations))


def _sort_key(value: Any) -> tuple[bool, Any]:
    # None sorts first, like SQLite's NULLS FIRST default for ascending order.
    value = _plain(value)
    return (value is not None, value)


def spec_for(aggregate: str, expression: Expr, name: str) -> Specification[Any]:
    return Specification(aggregate=aggregate, expression=expression, name=name)


def everything(aggregate: str) -> Specification[Any]:
    return Specification(aggregate=aggregate)


# ---------------------------------------------------------------------------
# TenantRequest specifications
# ---------------------------------------------------------------------------


def request_by_status(*statuses: RequestStatus) -> Specification[Any]:
    if not statuses:
        raise DomainValidationError(
            "request_by_status needs at least one status", aggregate=REQUEST, field="status"
        )
    names = ",".join(s.value for s in statuses)
    expr = eq("status", statuses[0]) if len(statuses) == 1 else in_("status", statuses)
    return spec_for(REQUEST, expr, f"status in [{names}]").ordered_by(
        "created_at", descending=True
    )


def request_by_property(property_id: str) -> Specification[Any]:
    return spec_for(REQUEST, eq("property_id", property_id), f"property={property_id}")


def request_by_tenant(tenant_id: str) -> Specification[Any]:
    return spec_for(REQUEST, eq("tenant_id", tenant_id), f"tenant={tenant_id}")


def request_by_worker(worker_id: str) -> Specification[Any]:
    return spec_for(REQUEST, eq("assigned_worker_id", worker_id), f"worker={worker_id}")


def request_by_specialization(specialization: Specialization) -> Specification[Any]:
    return spec_for(
        REQUEST,
        eq("required_specialization", specialization),
        f"requires {specialization.value}",
    )


def request_by_urgency(*urgencies: Urgency) -> Specification[Any]:
    names = ",".join(u.value for u in urgencies)
    return spec_for(REQUEST, in_("urgency", urgencies), f"urgency in [{names}]")


def open_requests() -> Specification[Any]:
    return spec_for(REQUEST, in_("status", sorted(OPEN_STATUSES)), "open")


def pending_requests() -> Specification[Any]:
    """Requests waiting for a manager: submitted or in review, oldest first."""
    return request_by_status(RequestStatus.SUBMITTED, RequestStatus.IN_REVIEW).replace_ordering(
        Ordering("created_at")
    )


def overdue_requests(now: datetime) -> Specification[Any]:
    """Open requests older than their urgency's expected resolution time."""
    per_urgency = [
        And.of(
            eq("urgency", urgency),
            lt("created_at", now - timedelta(hours=urgency.expected_resolution_hours)),
        )
        for urgency in Urgency
    ]
    return (open_requests() & spec_for(REQUEST, Or.of(*per_urgency), "past due")).ordered_by(
        "created_at"
    )


def requests_created_between(start: datetime, end: datetime) -> Specification[Any]:
    return spec_for(
        REQUEST,
        And.of(ge("created_at", start), le("created_at", end)),
        f"created {start.isoformat()}..{end.isoformat()}",
    ).ordered_by("created_at", descending=True)


# ---------------------------------------------------------------------------
# Worker specifications
# ---------------------------------------------------------------------------


def active_workers() -> Specification[Any]:
    return spec_for(WORKER, eq("is_active", True), "active").ordered_by("email")


def worker_by_email(email: str) -> Specification[Any]:
    return spec_for(WORKER, eq("email", email.strip().lower()), f"email={email}")


def worker_by_specialization(specialization: Specialization) -> Specification[Any]:
    return active_workers() & spec_for(
        WORKER, eq("specialization", specialization), f"specialization={specialization.value}"
    )


def available_workers(cap: int) -> Specification[Any]:
    """Active workers below *cap*; the stored availability flag may predate the cap."""
    return active_workers() & worker_has_capacity(cap)


def worker_has_capacity(cap: int) -> Specification[Any]:
    return spec_for(WORKER, lt("active_assignment_count", cap), f"assignments<{cap}")


def eligible_workers(specialization: Specialization, cap: int) -> Specification[Any]:
    """Exact-match workers able to take one more assignment, least busy first."""
    return (
        worker_by_specialization(specialization) & worker_has_capacity(cap)
    ).replace_ordering(Ordering("active_assignment_count"), Ordering("email"))


def general_fallback_workers(cap: int) -> Specification[Any]:
    return eligible_workers(Specialization.GENERAL, cap)


# ---------------------------------------------------------------------------
# Property specifications
# ---------------------------------------------------------------------------


def property_by_code(code: str) -> Specification[Any]:
    return spec_for(PROPERTY, eq("code", code.strip().upper()), f"code={code}").including(
        "tenants"
    )


def active_properties() -> Specification[Any]:
    return spec_for(PROPERTY, eq("is_active", True), "active").ordered_by("code")


def properties_in_city(city: str) -> Specification[Any]:
    return spec_for(PROPERTY, eq("city", city), f"city={city}").ordered_by("code")


def property_by_manager(manager_id: str) -> Specification[Any]:
    return spec_for(PROPERTY, eq("manager_id", manager_id), f"manager={manager_id}").ordered_by(
        "code"
    )
