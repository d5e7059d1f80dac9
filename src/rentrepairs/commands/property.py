"""Command group: properties and their tenants."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rentrepairs.commands._base import RepairGroup
from rentrepairs.services.properties import PropertyService

if TYPE_CHECKING:
    from rentrepairs.commands._context import AppContext

_PROPERTY_EXAMPLES = """\
  rentrepairs --as mgr-1 property register --code ELM-12 --name "Elm Court" \\
      --address "12 Elm St" --city Springfield --manager mgr-1
  rentrepairs --as mgr-1 property add-tenant ELM-12 ana@example.com --unit 3B
  rentrepairs property show ELM-12
  rentrepairs property list --city Springfield --active"""


@click.group("property", cls=RepairGroup, examples=_PROPERTY_EXAMPLES)
@click.pass_obj
def property_group(app: AppContext) -> None:
    """Register properties and tenants."""


@property_group.command(
    examples="""\
  rentrepairs --as mgr-1 property register --code ELM-12 --name "Elm Court" \\
      --address "12 Elm St" --city Springfield --manager mgr-1"""
)
@click.option("--code", required=True, help="Short unique code (e.g. ELM-12).")
@click.option("--name", required=True, help="Display name.")
@click.option("--address", required=True, help="Street address.")
@click.option("--city", required=True, help="City.")
@click.option("--manager", "manager_id", default=None, help="Manager user id (default: you).")
@click.pass_obj
def register(
    app: AppContext,
    code: str,
    name: str,
    address: str,
    city: str,
    manager_id: str | None,
) -> None:
    """Register a new property."""
    actor = app.actor
    app.emit(
        PropertyService(app.store).register_property(
            code=code,
            name=name,
            address=address,
            city=city,
            manager_id=manager_id or actor,
            actor_id=actor,
        )
    )


@property_group.command(
    "add-tenant",
    examples="""\
  rentrepairs --as mgr-1 property add-tenant ELM-12 ana@example.com --unit 3B""",
)
@click.argument("property_ref")
@click.argument("email")
@click.option("--unit", default=None, help="Unit or apartment number.")
@click.pass_obj
def add_tenant(app: AppContext, property_ref: str, email: str, unit: str | None) -> None:
    """Register a tenant at PROPERTY_REF (id or code)."""
    svc = PropertyService(app.store)
    app.emit(
        app.run(
            lambda: svc.register_tenant(property_ref, email=email, unit=unit, actor_id=app.actor)
        )
    )


@property_group.command()
@click.argument("property_ref")
@click.pass_obj
def show(app: AppContext, property_ref: str) -> None:
    """Show a property with its tenants."""
    app.emit(PropertyService(app.store).get_property(property_ref))


@property_group.command("list")
@click.option("--active", "active_only", is_flag=True, help="Active properties only.")
@click.option("--city", default=None, help="Filter by city.")
@click.option("--manager", "manager_id", default=None, help="Filter by manager user id.")
@click.pass_obj
def list_cmd(
    app: AppContext, active_only: bool, city: str | None, manager_id: str | None
) -> None:
    """List properties."""
    app.emit(
        PropertyService(app.store).list_properties(
            active_only=active_only, city=city, manager_id=manager_id
        )
    )


@property_group.command()
@click.argument("property_ref")
@click.pass_obj
def deactivate(app: AppContext, property_ref: str) -> None:
    """Stop accepting new requests at a property."""
    svc = PropertyService(app.store)
    app.emit(app.run(lambda: svc.deactivate_property(property_ref, actor_id=app.actor)))
