"""Typed payload contracts for service results.

Service payloads are validated against these models before they leave the
service layer, so a renamed key fails fast in tests instead of silently
breaking CLI output.
"""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict

from rentrepairs.domain.models import Property, TenantRequest, Worker

T = TypeVar("T", bound=BaseModel)


def dump_validated(model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a JSON-safe dict."""
    return model_cls.model_validate(data).model_dump(mode="json")


class TenantData(BaseModel):
    id: str
    email: str
    unit: str | None = None


class PropertyData(BaseModel):
    id: str
    code: str
    name: str
    address: str
    city: str
    manager_id: str
    is_active: bool
    version: int
    tenants: list[TenantData] = []
    request_count: int = 0


class WorkerData(BaseModel):
    id: str
    email: str
    name: str
    specialization: str
    is_active: bool
    available: bool
    active_assignments: list[str]
    version: int


class StatusChangeData(BaseModel):
    from_status: str
    to_status: str
    actor_id: str
    reason: str | None = None
    at: str


class RequestData(BaseModel):
    id: str
    property_id: str
    tenant_id: str
    description: str
    required_specialization: str
    status: str
    urgency: str
    assigned_worker_id: str | None = None
    created_at: str
    assigned_at: str | None = None
    version: int
    history: list[StatusChangeData] = []


class CandidateData(BaseModel):
    """One worker offered for an assignment."""

    model_config = ConfigDict(extra="forbid")

    worker_id: str
    email: str
    name: str
    specialization: str
    active_assignments: int
    match: Literal["exact", "general_fallback"]


class CandidatesResultData(BaseModel):
    request_id: str
    required_specialization: str
    fallback_policy: str
    fallback_used: bool
    count: int
    items: list[CandidateData]


class ListResultData(BaseModel):
    count: int
    filter: str
    items: list[dict[str, Any]]


def property_data(prop: Property) -> dict[str, Any]:
    raw = prop.model_dump(mode="json")
    raw["request_count"] = len(prop.request_ids)
    return dump_validated(PropertyData, raw)


def worker_data(worker: Worker) -> dict[str, Any]:
    raw = worker.model_dump(mode="json")
    raw["active_assignments"] = list(worker.assigned_request_ids)
    return dump_validated(WorkerData, raw)


def request_data(request: TenantRequest) -> dict[str, Any]:
    return dump_validated(RequestData, request.model_dump(mode="json"))


def candidate_data(worker: Worker, *, match: str) -> dict[str, Any]:
    return dump_validated(
        CandidateData,
        {
            "worker_id": worker.id,
            "email": worker.email,
            "name": worker.name,
            "specialization": worker.specialization.value,
            "active_assignments": worker.active_assignment_count,
            "match": match,
        },
    )


def request_summary(request: TenantRequest) -> dict[str, Any]:
    """List-view payload: the request without its status history."""
    data = request_data(request)
    del data["history"]
    return data
