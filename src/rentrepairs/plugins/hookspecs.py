"""Pluggy hook specifications for rentrepairs domain events.

One hook per domain event; keyword arguments mirror the event's fields
(see :mod:`rentrepairs.domain.events`). Hooks run after the unit of work
that raised the event has committed.
"""

from __future__ import annotations

import pluggy

hookspec = pluggy.HookspecMarker("rentrepairs")
hookimpl = pluggy.HookimplMarker("rentrepairs")


class RentRepairsHookSpec:
    """Hook specifications for the rentrepairs plugin system."""

    @hookspec
    def post_property_registered(
        self,
        occurred_at: str,
        property_id: str,
        code: str,
        manager_id: str,
    ) -> None:
        """Called after a property is registered."""

    @hookspec
    def post_tenant_registered(
        self,
        occurred_at: str,
        property_id: str,
        tenant_id: str,
        email: str,
    ) -> None:
        """Called after a tenant joins a property."""

    @hookspec
    def post_worker_registered(
        self,
        occurred_at: str,
        worker_id: str,
        email: str,
        specialization: str,
    ) -> None:
        """Called after a worker is registered."""

    @hookspec
    def post_worker_specialization_changed(
        self,
        occurred_at: str,
        worker_id: str,
        old_specialization: str,
        new_specialization: str,
        changed_by: str,
    ) -> None:
        """Called after an audited specialization change."""

    @hookspec
    def post_request_created(
        self,
        occurred_at: str,
        request_id: str,
        property_id: str,
        tenant_id: str,
        required_specialization: str,
        urgency: str,
    ) -> None:
        """Called after a tenant files a request."""

    @hookspec
    def post_request_status_changed(
        self,
        occurred_at: str,
        request_id: str,
        from_status: str,
        to_status: str,
        actor_id: str,
        reason: str | None,
    ) -> None:
        """Called after every recorded status transition."""

    @hookspec
    def post_worker_assigned(
        self,
        occurred_at: str,
        request_id: str,
        worker_id: str,
        actor_id: str,
    ) -> None:
        """Called after a worker is attached to a request."""

    @hookspec
    def post_worker_unassigned(
        self,
        occurred_at: str,
        request_id: str,
        worker_id: str,
        actor_id: str,
        reason: str | None,
    ) -> None:
        """Called after a worker is released from a request."""
