"""Shared service-layer helper functions."""

from __future__ import annotations

import functools
import operator
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from rentrepairs.domain.specifications import Specification


def now_iso() -> str:
    """Current UTC time as ISO 8601 (audit trails, event WAL)."""
    return datetime.now(UTC).isoformat()


def is_property_id(ref: str) -> bool:
    """Whether *ref* is a property id (``PROP-0001``) rather than a code."""
    return ref.upper().startswith("PROP-") and ref[5:].isdigit()


def combine_filters(
    base: Specification[Any], filters: Iterable[Specification[Any] | None]
) -> Specification[Any]:
    """AND the non-None *filters* together, or return *base* when there are none."""
    chosen = [f for f in filters if f is not None]
    if not chosen:
        return base
    return functools.reduce(operator.and_, chosen)
