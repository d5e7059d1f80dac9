"""Domain error taxonomy.

Four kinds of rejection leave the core, each distinguishable by callers:

- ``validation``: malformed input, rejected before anything is applied.
- ``invariant``: an aggregate rule would be broken (illegal transition,
  ineligible worker, mutation of a terminal request).
- ``authorization``: the acting principal lacks the required relationship.
- ``conflict``: a stale version was written; the caller may retry.

``not_found`` is added for lookups by id.

Every error carries a stable ``code`` and a ``detail`` dict naming the rule,
aggregate, id and field involved.
"""

from __future__ import annotations

from typing import Any, ClassVar


class DomainError(Exception):
    """Base class for every rejection raised by the domain core."""

    kind: ClassVar[str] = "invariant"
    default_code: ClassVar[str] = "DOMAIN_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        **detail: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.detail: dict[str, Any] = {k: v for k, v in detail.items() if v is not None}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class DomainValidationError(DomainError):
    """Malformed input to a constructor or command."""

    kind = "validation"
    default_code = "VALIDATION_FAILED"


class InvariantViolation(DomainError):
    """An operation would break an aggregate invariant."""

    kind = "invariant"
    default_code = "INVARIANT_VIOLATION"


class IllegalTransitionError(InvariantViolation):
    """Target status is not a successor of the current status.

    Valid UI/API input never reaches this; it signals a programming or data
    error in the caller.
    """

    default_code = "INVALID_TRANSITION"


class TerminalRequestError(InvariantViolation):
    """A completed or declined request cannot be mutated."""

    default_code = "REQUEST_TERMINAL"


class AssignmentRejectedError(InvariantViolation):
    """A worker failed an assignment eligibility rule."""

    default_code = "ASSIGNMENT_REJECTED"

    def __init__(self, message: str, *, reason: str, **detail: Any) -> None:
        super().__init__(message, reason=reason, **detail)
        self.reason = reason


class SpecializationConflictError(InvariantViolation):
    """A specialization change would orphan an active assignment."""

    default_code = "SPECIALIZATION_CONFLICT"


class AuthorizationError(DomainError):
    """The acting principal may not perform the attempted operation."""

    kind = "authorization"
    default_code = "FORBIDDEN"


class ConcurrencyConflictError(DomainError):
    """An aggregate was modified since it was read."""

    kind = "conflict"
    default_code = "CONCURRENCY_CONFLICT"


class NotFoundError(DomainError):
    """No aggregate exists with the requested identifier."""

    kind = "not_found"
    default_code = "NOT_FOUND"
