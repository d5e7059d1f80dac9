"""Command group: the worker registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rentrepairs.commands._base import RepairGroup
from rentrepairs.domain.specializations import Specialization
from rentrepairs.services.workers import WorkerService

if TYPE_CHECKING:
    from rentrepairs.commands._context import AppContext

_WORKER_EXAMPLES = """\
  rentrepairs --as mgr-1 worker register bo@example.com --name "Bo Pipes" --specialization plumbing
  rentrepairs --as mgr-1 worker specialize WRK-0001 general
  rentrepairs worker list --specialization plumbing --available
  rentrepairs worker show bo@example.com"""

_SPECIALIZATION_HELP = "One of: " + ", ".join(s.value for s in Specialization) + "."


@click.group("worker", cls=RepairGroup, examples=_WORKER_EXAMPLES)
@click.pass_obj
def worker_group(app: AppContext) -> None:
    """Register and manage maintenance workers."""


@worker_group.command(
    examples="""\
  rentrepairs --as mgr-1 worker register bo@example.com --name "Bo Pipes" --specialization plumbing
  rentrepairs --as system worker register cy@example.com --name Cy --specialization 'Appliance Repair'"""
)
@click.argument("email")
@click.option("--name", required=True, help="Worker's name.")
@click.option("--specialization", required=True, help=_SPECIALIZATION_HELP)
@click.pass_obj
def register(app: AppContext, email: str, name: str, specialization: str) -> None:
    """Register a worker with one specialization."""
    app.emit(
        WorkerService(app.store).register_worker(
            email=email, name=name, specialization=specialization, actor_id=app.actor
        )
    )


@worker_group.command()
@click.argument("worker_ref")
@click.argument("specialization")
@click.pass_obj
def specialize(app: AppContext, worker_ref: str, specialization: str) -> None:
    """Change a worker's specialization (audited).

    Rejected while the worker holds a request the new specialization
    cannot cover.
    """
    svc = WorkerService(app.store)
    app.emit(
        app.run(lambda: svc.change_specialization(worker_ref, specialization, actor_id=app.actor))
    )


@worker_group.command()
@click.argument("worker_ref")
@click.pass_obj
def deactivate(app: AppContext, worker_ref: str) -> None:
    """Remove a worker from the assignment pool."""
    svc = WorkerService(app.store)
    app.emit(app.run(lambda: svc.deactivate_worker(worker_ref, actor_id=app.actor)))


@worker_group.command()
@click.argument("worker_ref")
@click.pass_obj
def activate(app: AppContext, worker_ref: str) -> None:
    """Return a worker to the assignment pool."""
    svc = WorkerService(app.store)
    app.emit(app.run(lambda: svc.activate_worker(worker_ref, actor_id=app.actor)))


@worker_group.command()
@click.argument("worker_ref")
@click.pass_obj
def show(app: AppContext, worker_ref: str) -> None:
    """Show a worker by id or email."""
    app.emit(WorkerService(app.store).get_worker(worker_ref))


@worker_group.command("list")
@click.option("--specialization", default=None, help=_SPECIALIZATION_HELP)
@click.option("--active", "active_only", is_flag=True, help="Active workers only.")
@click.option("--available", "available_only", is_flag=True, help="Available workers only.")
@click.pass_obj
def list_cmd(
    app: AppContext, specialization: str | None, active_only: bool, available_only: bool
) -> None:
    """List workers."""
    app.emit(
        WorkerService(app.store).list_workers(
            specialization=specialization,
            active_only=active_only,
            available_only=available_only,
        )
    )
