"""Built-in audit log plugin.

Emits one structured log line per request lifecycle event under the
``rentrepairs.audit`` logger, so ``--log-json`` yields a machine-readable
audit trail without any extra transport.
"""

from __future__ import annotations

import structlog

from rentrepairs.plugins.hookspecs import hookimpl


class AuditLogPlugin:
    """Log assignment and status events."""

    def __init__(self, logger_name: str = "rentrepairs.audit") -> None:
        self._log = structlog.get_logger(logger_name)

    @hookimpl
    def post_request_created(
        self,
        occurred_at: str,
        request_id: str,
        property_id: str,
        tenant_id: str,
        required_specialization: str,
        urgency: str,
    ) -> None:
        self._log.info(
            "request_created",
            request_id=request_id,
            property_id=property_id,
            tenant_id=tenant_id,
            specialization=required_specialization,
            urgency=urgency,
            at=occurred_at,
        )

    @hookimpl
    def post_request_status_changed(
        self,
        occurred_at: str,
        request_id: str,
        from_status: str,
        to_status: str,
        actor_id: str,
        reason: str | None,
    ) -> None:
        self._log.info(
            "request_status_changed",
            request_id=request_id,
            from_status=from_status,
            to_status=to_status,
            actor=actor_id,
            reason=reason,
            at=occurred_at,
        )

    @hookimpl
    def post_worker_assigned(
        self,
        occurred_at: str,
        request_id: str,
        worker_id: str,
        actor_id: str,
    ) -> None:
        self._log.info(
            "worker_assigned",
            request_id=request_id,
            worker_id=worker_id,
            actor=actor_id,
            at=occurred_at,
        )

    @hookimpl
    def post_worker_unassigned(
        self,
        occurred_at: str,
        request_id: str,
        worker_id: str,
        actor_id: str,
        reason: str | None,
    ) -> None:
        self._log.info(
            "worker_unassigned",
            request_id=request_id,
            worker_id=worker_id,
            actor=actor_id,
            reason=reason,
            at=occurred_at,
        )

    @hookimpl
    def post_worker_specialization_changed(
        self,
        occurred_at: str,
        worker_id: str,
        old_specialization: str,
        new_specialization: str,
        changed_by: str,
    ) -> None:
        self._log.info(
            "worker_specialization_changed",
            worker_id=worker_id,
            old=old_specialization,
            new=new_specialization,
            changed_by=changed_by,
            at=occurred_at,
        )
