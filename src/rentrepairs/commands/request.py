"""Command group: maintenance requests, their lifecycle, and assignment."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rentrepairs.commands._base import RepairGroup
from rentrepairs.domain.lifecycle import RequestStatus, Urgency
from rentrepairs.services.assignment import AssignmentService
from rentrepairs.services.requests import RequestService

if TYPE_CHECKING:
    from rentrepairs.commands._context import AppContext

_REQUEST_EXAMPLES = """\
  rentrepairs --as ana@example.com request submit ELM-12 "Leaking kitchen tap"
  rentrepairs --as mgr-1 request review REQ-0001
  rentrepairs --as mgr-1 request candidates REQ-0001
  rentrepairs --as mgr-1 request assign REQ-0001 WRK-0001
  rentrepairs --as bo@example.com request start REQ-0001
  rentrepairs --as bo@example.com request complete REQ-0001
  rentrepairs request list --open --property ELM-12"""

_URGENCIES = [u.value for u in Urgency]
_STATUSES = [s.value for s in RequestStatus]


@click.group("request", cls=RepairGroup, examples=_REQUEST_EXAMPLES)
@click.pass_obj
def request_group(app: AppContext) -> None:
    """Submit maintenance requests and move them through their lifecycle."""


# ── Submission and lookup ─────────────────────────────────────────────


@request_group.command(
    examples="""\
  rentrepairs --as ana@example.com request submit ELM-12 "Leaking kitchen tap"
  rentrepairs --as ana@example.com request submit ELM-12 "No power in bedroom" --urgency high
  rentrepairs --as system request submit ELM-12 "Broken hinge" --tenant TNT-0001 --category carpentry"""
)
@click.argument("property_ref")
@click.argument("description")
@click.option("--urgency", type=click.Choice(_URGENCIES), default=None, help="Default: normal.")
@click.option("--category", "category_hint", default=None, help="Trade category hint.")
@click.option("--tenant", "tenant_id", default=None, help="File for this tenant (system only).")
@click.pass_obj
def submit(
    app: AppContext,
    property_ref: str,
    description: str,
    urgency: str | None,
    category_hint: str | None,
    tenant_id: str | None,
) -> None:
    """File a maintenance request against PROPERTY_REF."""
    app.emit(
        RequestService(app.store).submit_request(
            property_ref,
            description=description,
            actor_id=app.actor,
            urgency=urgency,
            category_hint=category_hint,
            tenant_id=tenant_id,
        )
    )


@request_group.command()
@click.argument("request_id")
@click.pass_obj
def show(app: AppContext, request_id: str) -> None:
    """Show a request and its status history."""
    app.emit(RequestService(app.store).get_request(request_id, actor_id=app.actor))


@request_group.command(
    "list",
    examples="""\
  rentrepairs request list --open
  rentrepairs request list --status assigned --status in_progress --worker WRK-0001
  rentrepairs request list --pending --property ELM-12
  rentrepairs --json request list --urgency emergency --limit 5""",
)
@click.option("--status", "statuses", multiple=True, type=click.Choice(_STATUSES))
@click.option("--urgency", "urgencies", multiple=True, type=click.Choice(_URGENCIES))
@click.option("--property", "property_ref", default=None, help="Property id or code.")
@click.option("--tenant", "tenant_id", default=None, help="Filing tenant id.")
@click.option("--worker", "worker_id", default=None, help="Assigned worker id.")
@click.option("--specialization", default=None, help="Required specialization.")
@click.option("--open", "open_only", is_flag=True, help="Exclude completed and declined.")
@click.option("--pending", "pending_only", is_flag=True, help="Awaiting review or assignment.")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Max results.")
@click.pass_obj
def list_cmd(
    app: AppContext,
    statuses: tuple[str, ...],
    urgencies: tuple[str, ...],
    property_ref: str | None,
    tenant_id: str | None,
    worker_id: str | None,
    specialization: str | None,
    open_only: bool,
    pending_only: bool,
    limit: int | None,
) -> None:
    """List requests matching all given filters."""
    app.emit(
        RequestService(app.store).list_requests(
            statuses=statuses,
            urgencies=urgencies,
            property_ref=property_ref,
            tenant_id=tenant_id,
            worker_id=worker_id,
            specialization=specialization,
            open_only=open_only,
            pending_only=pending_only,
            limit=limit,
        )
    )


@request_group.command()
@click.option("--property", "property_ref", default=None, help="Property id or code.")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Max results.")
@click.pass_obj
def overdue(app: AppContext, property_ref: str | None, limit: int | None) -> None:
    """Open requests past the resolution time of their urgency."""
    app.emit(RequestService(app.store).overdue(property_ref=property_ref, limit=limit))


# ── Lifecycle ─────────────────────────────────────────────────────────


@request_group.command()
@click.argument("request_id")
@click.pass_obj
def review(app: AppContext, request_id: str) -> None:
    """Take a submitted request into review (manager)."""
    svc = RequestService(app.store)
    app.emit(app.run(lambda: svc.begin_review(request_id, actor_id=app.actor)))


@request_group.command()
@click.argument("request_id")
@click.option("--reason", default=None, help="Recorded in the status history.")
@click.pass_obj
def resume(app: AppContext, request_id: str, reason: str | None) -> None:
    """Return an escalated request to review (manager)."""
    svc = RequestService(app.store)
    app.emit(app.run(lambda: svc.resume_review(request_id, actor_id=app.actor, reason=reason)))


@request_group.command()
@click.argument("request_id")
@click.pass_obj
def start(app: AppContext, request_id: str) -> None:
    """Start work on an assigned request (assigned worker or manager)."""
    svc = RequestService(app.store)
    app.emit(app.run(lambda: svc.start_work(request_id, actor_id=app.actor)))


@request_group.command()
@click.argument("request_id")
@click.option("--note", "reason", default=None, help="Completion note.")
@click.pass_obj
def complete(app: AppContext, request_id: str, reason: str | None) -> None:
    """Mark a request in progress as completed (assigned worker or manager)."""
    svc = RequestService(app.store)
    app.emit(app.run(lambda: svc.complete(request_id, actor_id=app.actor, reason=reason)))


@request_group.command()
@click.argument("request_id")
@click.option("--reason", default=None, help="Why the request is declined.")
@click.pass_obj
def decline(app: AppContext, request_id: str, reason: str | None) -> None:
    """Decline a request; an assigned worker is released (manager)."""
    svc = RequestService(app.store)
    app.emit(app.run(lambda: svc.decline(request_id, actor_id=app.actor, reason=reason)))


@request_group.command()
@click.argument("request_id")
@click.option("--reason", default=None, help="Why the request is escalated.")
@click.pass_obj
def escalate(app: AppContext, request_id: str, reason: str | None) -> None:
    """Escalate a request; an assigned worker is released (manager)."""
    svc = RequestService(app.store)
    app.emit(app.run(lambda: svc.escalate(request_id, actor_id=app.actor, reason=reason)))


# ── Assignment ────────────────────────────────────────────────────────


@request_group.command()
@click.argument("request_id")
@click.pass_obj
def candidates(app: AppContext, request_id: str) -> None:
    """List workers eligible for a request, best first."""
    app.emit(AssignmentService(app.store).find_eligible_workers(request_id, actor_id=app.actor))


@request_group.command(
    examples="""\
  rentrepairs --as mgr-1 request assign REQ-0001 WRK-0002
  rentrepairs --as mgr-1 request assign REQ-0001        # best candidate"""
)
@click.argument("request_id")
@click.argument("worker_id", required=False, default=None)
@click.pass_obj
def assign(app: AppContext, request_id: str, worker_id: str | None) -> None:
    """Assign WORKER_ID (or the best candidate) to a request (manager)."""
    svc = AssignmentService(app.store)
    app.emit(app.run(lambda: svc.assign_worker(request_id, worker_id, actor_id=app.actor)))


@request_group.command()
@click.argument("request_id")
@click.argument("worker_id")
@click.pass_obj
def reassign(app: AppContext, request_id: str, worker_id: str) -> None:
    """Hand an assigned request over to WORKER_ID (manager)."""
    svc = AssignmentService(app.store)
    app.emit(app.run(lambda: svc.reassign_worker(request_id, worker_id, actor_id=app.actor)))
