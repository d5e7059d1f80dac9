"""ServiceResult and ServiceError: the universal service contract.

INVARIANT: All service-layer methods return ServiceResult.
The CLI and any embedding application consume this type.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ErrorKind = Literal["validation", "invariant", "authorization", "conflict", "not_found", "error"]


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult.

    ``kind`` lets callers tell rejections apart: retry on ``conflict``,
    re-prompt on ``validation``, report ``authorization`` as forbidden.
    """

    model_config = {"frozen": True}

    code: str
    message: str
    kind: ErrorKind = "error"
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Universal return type for all service operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"assign_worker"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (timing spans, counts).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None
