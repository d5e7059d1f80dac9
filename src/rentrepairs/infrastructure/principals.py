"""Default :class:`~rentrepairs.domain.authorization.PrincipalLookup`.

Relationships are read from stored data: the property's ``manager_id``,
tenant rows of that property, and the worker registry. Tenants and workers
are matched by record id or by email. Configured system user ids receive
the system role everywhere.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from sqlalchemy import or_, select

from rentrepairs.domain.authorization import Principal, Role
from rentrepairs.infrastructure.database.schema import properties, tenants, workers

if TYPE_CHECKING:
    from sqlalchemy import Connection


class RepositoryPrincipalLookup:
    def __init__(self, conn: Connection, *, system_users: Iterable[str] = ()) -> None:
        self._conn = conn
        self._system_users = frozenset(system_users)

    def lookup(self, user_id: str, *, property_id: str) -> Principal:
        roles: set[Role] = set()
        if user_id in self._system_users:
            roles.add(Role.SYSTEM)

        manager_id = self._conn.execute(
            select(properties.c.manager_id).where(properties.c.id == property_id)
        ).scalar_one_or_none()
        if manager_id is not None and manager_id == user_id:
            roles.add(Role.MANAGER)

        email = user_id.strip().lower()
        tenant_id = self._conn.execute(
            select(tenants.c.id).where(
                tenants.c.property_id == property_id,
                or_(tenants.c.id == user_id, tenants.c.email == email),
            )
        ).scalar_one_or_none()
        if tenant_id is not None:
            roles.add(Role.TENANT)

        worker_id = self._conn.execute(
            select(workers.c.id).where(or_(workers.c.id == user_id, workers.c.email == email))
        ).scalar_one_or_none()
        if worker_id is not None:
            roles.add(Role.WORKER)

        return Principal(
            user_id=user_id,
            roles=frozenset(roles),
            tenant_id=tenant_id,
            worker_id=worker_id,
        )

    def is_system(self, user_id: str) -> bool:
        return user_id in self._system_users

    def manages_any_property(self, user_id: str) -> bool:
        return (
            self._conn.execute(
                select(properties.c.id).where(properties.c.manager_id == user_id).limit(1)
            ).first()
            is not None
        )
