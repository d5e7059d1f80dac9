"""Translate domain specifications into SQLAlchemy Core clauses.

Each aggregate exposes a fixed set of queryable fields. Anything the store
cannot express (opaque predicates, unknown fields, includes or ordering
keys) raises :class:`UnsupportedSpecificationError` while compiling, before
a statement is ever executed.

Nullable columns are guarded so SQL three-valued logic never leaks: every
compiled comparison is strictly true or false, matching in-memory
evaluation even under ``Not``.
"""

from __future__ import annotations

import operator
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    ColumnElement,
    Select,
    Table,
    and_,
    false,
    func,
    not_,
    or_,
    select,
    true,
)

from rentrepairs.domain.specifications import (
    PROPERTY,
    REQUEST,
    WORKER,
    Always,
    And,
    Comparison,
    Expr,
    Not,
    Or,
    Predicate,
    Specification,
)
from rentrepairs.infrastructure.database.schema import (
    properties,
    tenant_requests,
    to_iso,
    worker_assignments,
    workers,
)


_ORDERING_OPS = {
    "lt": operator.lt,
    "le": operator.le,
    "gt": operator.gt,
    "ge": operator.ge,
}


class UnsupportedSpecificationError(ValueError):
    """A specification uses something the SQL store cannot translate."""

    def __init__(self, message: str, *, aggregate: str, node: str) -> None:
        super().__init__(message)
        self.aggregate = aggregate
        self.node = node


@dataclass(frozen=True)
class AggregateMapping:
    table: Table
    fields: Mapping[str, ColumnElement[Any]]
    relations: frozenset[str]


def _active_assignment_count() -> ColumnElement[int]:
    return (
        select(func.count())
        .select_from(worker_assignments)
        .where(worker_assignments.c.worker_id == workers.c.id)
        .scalar_subquery()
    )


def _columns(table: Table, *names: str) -> dict[str, ColumnElement[Any]]:
    return {name: table.c[name] for name in names}


DEFAULT_MAPPINGS: dict[str, AggregateMapping] = {
    REQUEST: AggregateMapping(
        table=tenant_requests,
        fields=_columns(
            tenant_requests,
            "id",
            "property_id",
            "tenant_id",
            "description",
            "required_specialization",
            "status",
            "urgency",
            "assigned_worker_id",
            "created_at",
            "assigned_at",
        ),
        relations=frozenset({"history"}),
    ),
    WORKER: AggregateMapping(
        table=workers,
        fields={
            **_columns(
                workers, "id", "email", "name", "specialization", "is_active", "available"
            ),
            "active_assignment_count": _active_assignment_count(),
        },
        relations=frozenset({"assignments"}),
    ),
    PROPERTY: AggregateMapping(
        table=properties,
        fields=_columns(
            properties, "id", "code", "name", "city", "manager_id", "is_active", "created_at"
        ),
        relations=frozenset({"tenants", "requests"}),
    ),
}


def to_db_value(value: Any) -> Any:
    """Convert a domain value into its stored representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return to_iso(value)
    return value


@dataclass(frozen=True)
class CompiledQuery:
    """A specification translated for one aggregate table."""

    table: Table
    where: ColumnElement[bool]
    order_by: tuple[ColumnElement[Any], ...]
    includes: frozenset[str]

    def select(self, *columns: Any) -> Select[Any]:
        stmt = select(*(columns or (self.table,))).where(self.where)
        return stmt.order_by(*self.order_by, self.table.c.id)

    def count(self) -> Select[Any]:
        return select(func.count()).select_from(self.table).where(self.where)


class SpecificationCompiler:
    """Compile :class:`Specification` trees into SQLAlchemy clauses."""

    def __init__(self, mappings: Mapping[str, AggregateMapping] | None = None) -> None:
        self._mappings = dict(mappings or DEFAULT_MAPPINGS)

    def mapping(self, aggregate: str) -> AggregateMapping:
        try:
            return self._mappings[aggregate]
        except KeyError:
            raise UnsupportedSpecificationError(
                f"No store mapping for aggregate {aggregate!r}",
                aggregate=aggregate,
                node="aggregate",
            ) from None

    def compile(self, spec: Specification[Any]) -> CompiledQuery:
        """Compile *spec*, raising on any node the store cannot evaluate."""
        mapping = self.mapping(spec.aggregate)
        unknown = spec.includes - mapping.relations
        if unknown:
            raise UnsupportedSpecificationError(
                f"Unknown include(s) for {spec.aggregate}: {', '.join(sorted(unknown))}",
                aggregate=spec.aggregate,
                node="include",
            )
        order_by: list[ColumnElement[Any]] = []
        for ordering in spec.ordering:
            column = self._column(spec.aggregate, mapping, ordering.field)
            order_by.append(column.desc() if ordering.descending else column.asc())
        return CompiledQuery(
            table=mapping.table,
            where=self.compile_expression(spec.aggregate, spec.expression),
            order_by=tuple(order_by),
            includes=spec.includes,
        )

    def compile_expression(self, aggregate: str, expr: Expr) -> ColumnElement[bool]:
        mapping = self.mapping(aggregate)
        return self._compile(aggregate, mapping, expr)

    def _column(
        self, aggregate: str, mapping: AggregateMapping, name: str
    ) -> ColumnElement[Any]:
        try:
            return mapping.fields[name]
        except KeyError:
            raise UnsupportedSpecificationError(
                f"Field {name!r} is not queryable on {aggregate}",
                aggregate=aggregate,
                node=f"field:{name}",
            ) from None

    def _compile(
        self, aggregate: str, mapping: AggregateMapping, expr: Expr
    ) -> ColumnElement[bool]:
        if isinstance(expr, Always):
            return true() if expr.value else false()
        if isinstance(expr, And):
            return and_(*(self._compile(aggregate, mapping, op) for op in expr.operands))
        if isinstance(expr, Or):
            return or_(*(self._compile(aggregate, mapping, op) for op in expr.operands))
        if isinstance(expr, Not):
            return not_(self._compile(aggregate, mapping, expr.operand))
        if isinstance(expr, Comparison):
            return self._comparison(self._column(aggregate, mapping, expr.field), expr)
        if isinstance(expr, Predicate):
            raise UnsupportedSpecificationError(
                f"Predicate {expr.name!r} can only be evaluated in memory",
                aggregate=aggregate,
                node=f"predicate:{expr.name}",
            )
        raise UnsupportedSpecificationError(
            f"Unsupported expression node: {type(expr).__name__}",
            aggregate=aggregate,
            node=type(expr).__name__,
        )

    @staticmethod
    def _comparison(column: ColumnElement[Any], expr: Comparison) -> ColumnElement[bool]:
        nullable = bool(getattr(column, "nullable", False))
        if expr.op == "in":
            values = [to_db_value(v) for v in expr.value]
            clause = column.in_(values)
            return and_(column.is_not(None), clause) if nullable else clause

        value = to_db_value(expr.value)
        if expr.op == "eq":
            if value is None:
                return column.is_(None)
            return and_(column.is_not(None), column == value) if nullable else column == value
        if expr.op == "ne":
            if value is None:
                return column.is_not(None)
            return or_(column.is_(None), column != value) if nullable else column != value
        if value is None:
            return false()
        clause = _ORDERING_OPS[expr.op](column, value)
        return and_(column.is_not(None), clause) if nullable else clause
