"""PropertyService: property registration, tenants, and lookups."""

from __future__ import annotations

from rentrepairs.domain.authorization import authorize_management
from rentrepairs.domain.errors import AuthorizationError, DomainError, InvariantViolation
from rentrepairs.domain.models import Property
from rentrepairs.domain.specifications import (
    PROPERTY,
    active_properties,
    everything,
    properties_in_city,
    property_by_code,
    property_by_manager,
)
from rentrepairs.services._helpers import combine_filters
from rentrepairs.services.base import BaseService
from rentrepairs.services.contracts import ListResultData, dump_validated, property_data
from rentrepairs.services.result import ServiceResult
from rentrepairs.services.telemetry import trace_span, traced


class PropertyService(BaseService):
    """Registers properties and their tenants."""

    @traced
    def register_property(
        self,
        *,
        code: str,
        name: str,
        address: str,
        city: str,
        manager_id: str,
        actor_id: str,
    ) -> ServiceResult:
        """Register a property managed by *manager_id*.

        Only the future manager or a system user may register it.
        """
        op = "register_property"
        warnings: list[str] = []
        try:
            with self._store.transaction() as uow:
                if actor_id != manager_id and not uow.principals.is_system(actor_id):
                    raise AuthorizationError(
                        f"User {actor_id} may not register a property for {manager_id}",
                        rule="authorize_management",
                        aggregate="property",
                        user_id=actor_id,
                    )
                prop = Property.register(
                    uow.next_id("PROP-"),
                    code=code,
                    name=name,
                    address=address,
                    city=city,
                    manager_id=manager_id,
                    at=self._clock(),
                )
                if uow.properties.count(property_by_code(prop.code)):
                    raise InvariantViolation(
                        f"Property code {prop.code} is already registered",
                        code="DUPLICATE_PROPERTY_CODE",
                        rule="property_code_unique",
                        aggregate="property",
                        field="code",
                    )
                uow.properties.add(prop)
        except DomainError as exc:
            return self._failure(op, exc)

        self._publish(uow.events, warnings)
        return ServiceResult(ok=True, op=op, data=property_data(prop), warnings=warnings)

    @traced
    def register_tenant(
        self,
        property_ref: str,
        *,
        email: str,
        unit: str | None = None,
        actor_id: str,
    ) -> ServiceResult:
        op = "register_tenant"
        warnings: list[str] = []
        try:
            with self._store.transaction() as uow:
                prop = self._load_property(uow, property_ref)
                principal = self._principal(uow, actor_id, prop.id)
                authorize_management(principal, property_id=prop.id, operation="register tenants")
                tenant = prop.add_tenant(
                    uow.next_id("TNT-"), email=email, unit=unit, at=self._clock()
                )
                uow.properties.update(prop)
        except DomainError as exc:
            return self._failure(op, exc)

        self._publish(uow.events, warnings)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "tenant": tenant.model_dump(mode="json", exclude={"created_at"}),
                "property": property_data(prop),
            },
            warnings=warnings,
        )

    @traced
    def deactivate_property(self, property_ref: str, *, actor_id: str) -> ServiceResult:
        """Stop accepting new requests at a property. Open requests are untouched."""
        op = "deactivate_property"
        warnings: list[str] = []
        try:
            with self._store.transaction() as uow:
                prop = self._load_property(uow, property_ref)
                principal = self._principal(uow, actor_id, prop.id)
                authorize_management(principal, property_id=prop.id, operation="deactivate")
                if not prop.is_active:
                    warnings.append(f"Property {prop.code} is already inactive")
                else:
                    prop.deactivate()
                    uow.properties.update(prop)
        except DomainError as exc:
            return self._failure(op, exc)

        return ServiceResult(ok=True, op=op, data=property_data(prop), warnings=warnings)

    @traced
    def get_property(self, property_ref: str) -> ServiceResult:
        op = "get_property"
        try:
            with self._store.read() as uow:
                prop = self._load_property(uow, property_ref)
                if prop.unloaded_relations:
                    prop = uow.properties.get(prop.id)
        except DomainError as exc:
            return self._failure(op, exc)
        return ServiceResult(ok=True, op=op, data=property_data(prop))

    @traced
    def list_properties(
        self,
        *,
        active_only: bool = False,
        city: str | None = None,
        manager_id: str | None = None,
    ) -> ServiceResult:
        op = "list_properties"
        spec = combine_filters(
            everything(PROPERTY).ordered_by("code"),
            [
                active_properties() if active_only else None,
                properties_in_city(city) if city else None,
                property_by_manager(manager_id) if manager_id else None,
            ],
        ).including("tenants", "requests")

        with self._store.read() as uow, trace_span("find") as span:
            found = uow.properties.find(spec)
            if span:
                span.annotate("count", len(found))

        items = [property_data(p) for p in found]
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                ListResultData, {"count": len(items), "filter": spec.name, "items": items}
            ),
        )
