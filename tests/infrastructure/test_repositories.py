"""Tests for the SQL repositories, the unit of work and principal lookup."""

from __future__ import annotations

from typing import Any

import pytest

from rentrepairs.domain.assignment import assign_worker
from rentrepairs.domain.authorization import Role
from rentrepairs.domain.errors import ConcurrencyConflictError, NotFoundError
from rentrepairs.domain.events import RequestStatusChanged, WorkerRegistered
from rentrepairs.domain.lifecycle import RequestStatus
from rentrepairs.domain.models import Worker, utc_now
from rentrepairs.domain.specializations import Specialization
from rentrepairs.domain.specifications import everything, property_by_code
from rentrepairs.infrastructure.store import RepairStore
from tests.conftest import MANAGER, PLUMBER_EMAIL, TENANT_EMAIL, assign, submit_request


class TestRoundTrip:
    def test_property_with_tenants(self, store: RepairStore, world: dict[str, Any]) -> None:
        with store.read() as uow:
            prop = uow.properties.get(world["property_id"])
        assert prop.code == "ELM-12"
        assert [t.email for t in prop.tenants] == [TENANT_EMAIL]
        assert prop.version == 2  # registered, then a tenant added

    def test_get_by_code_is_case_insensitive(
        self, store: RepairStore, world: dict[str, Any]
    ) -> None:
        with store.read() as uow:
            assert uow.properties.get_by_code("elm-12").id == world["property_id"]

    def test_get_by_code_missing(self, store: RepairStore) -> None:
        with store.read() as uow, pytest.raises(NotFoundError):
            uow.properties.get_by_code("NOPE-1")

    def test_request_history_and_timestamps(
        self, store: RepairStore, world: dict[str, Any]
    ) -> None:
        request_id = submit_request(store)["id"]
        assign(store, request_id, world["plumber_id"])
        with store.read() as uow:
            request = uow.requests.get(request_id)
            worker = uow.workers.get(world["plumber_id"])
        assert request.status == RequestStatus.ASSIGNED
        assert [c.to_status for c in request.history] == [
            RequestStatus.IN_REVIEW,
            RequestStatus.ASSIGNED,
        ]
        assert set(request.status_timestamps) == {
            RequestStatus.SUBMITTED,
            RequestStatus.IN_REVIEW,
            RequestStatus.ASSIGNED,
        }
        assert worker.assigned_request_ids == [request_id]

    def test_get_missing(self, store: RepairStore) -> None:
        with store.read() as uow, pytest.raises(NotFoundError) as exc_info:
            uow.requests.get("REQ-9999")
        assert exc_info.value.kind == "not_found"


class TestOptimisticConcurrency:
    def test_stale_version_conflicts(self, store: RepairStore, world: dict[str, Any]) -> None:
        with store.read() as uow:
            stale = uow.workers.get(world["plumber_id"])
        with store.transaction() as uow:
            fresh = uow.workers.get(world["plumber_id"])
            fresh.deactivate(cap=3)
            uow.workers.update(fresh)

        stale.change_specialization(Specialization.GENERAL, changed_by=MANAGER, at=utc_now())
        with pytest.raises(ConcurrencyConflictError) as exc_info, store.transaction() as uow:
            uow.workers.update(stale)
        assert exc_info.value.kind == "conflict"
        assert exc_info.value.detail["expected_version"] == stale.version

        with store.read() as uow:
            stored = uow.workers.get(world["plumber_id"])
        assert stored.specialization == Specialization.PLUMBING
        assert not stored.is_active

    def test_racing_assignments_on_one_worker(
        self, store: RepairStore, world: dict[str, Any]
    ) -> None:
        first = submit_request(store)["id"]
        second = submit_request(store, "Blocked shower drain")["id"]
        with store.read() as uow:
            worker_a, request_a = uow.workers.get(world["plumber_id"]), uow.requests.get(first)
        with store.read() as uow:
            worker_b, request_b = uow.workers.get(world["plumber_id"]), uow.requests.get(second)

        with store.transaction() as uow:
            assign_worker(worker_a, request_a, cap=1, actor_id=MANAGER, at=utc_now())
            uow.requests.update(request_a)
            uow.workers.update(worker_a)

        # The stale copy still shows a free slot, so only the version check stops it.
        with pytest.raises(ConcurrencyConflictError), store.transaction() as uow:
            assign_worker(worker_b, request_b, cap=1, actor_id=MANAGER, at=utc_now())
            uow.requests.update(request_b)
            uow.workers.update(worker_b)

        with store.read() as uow:
            worker = uow.workers.get(world["plumber_id"])
            loser = uow.requests.get(second)
        assert worker.assigned_request_ids == [first]
        assert loser.status == RequestStatus.SUBMITTED
        assert loser.assigned_worker_id is None
        assert loser.history == []

    def test_update_bumps_version(self, store: RepairStore, world: dict[str, Any]) -> None:
        with store.transaction() as uow:
            worker = uow.workers.get(world["plumber_id"])
            before = worker.version
            worker.deactivate(cap=3)
            uow.workers.update(worker)
        assert worker.version == before + 1

    def test_update_missing_row(self, store: RepairStore) -> None:
        ghost = Worker.register(
            "WRK-0404",
            email="ghost@example.com",
            name="Ghost",
            specialization=Specialization.GENERAL,
            at=utc_now(),
        )
        with pytest.raises(NotFoundError), store.transaction() as uow:
            uow.workers.update(ghost)

    def test_partially_loaded_request_cannot_be_saved(
        self, store: RepairStore, world: dict[str, Any]
    ) -> None:
        submit_request(store)
        with store.transaction() as uow:
            (request,) = uow.requests.find(everything("request"))
            assert request.unloaded_relations == {"history"}
            with pytest.raises(ValueError, match="loaded without history"):
                uow.requests.update(request)

    def test_include_loads_relation(self, store: RepairStore, world: dict[str, Any]) -> None:
        submit_request(store)
        with store.read() as uow:
            (prop,) = uow.properties.find(property_by_code("ELM-12").including("requests"))
        assert len(prop.request_ids) == 1
        assert prop.unloaded_relations == frozenset()


class TestUnitOfWork:
    def test_events_collected_after_commit(self, store: RepairStore) -> None:
        with store.transaction() as uow:
            worker = Worker.register(
                uow.next_id("WRK-"),
                email="new@example.com",
                name="New",
                specialization=Specialization.HVAC,
                at=utc_now(),
            )
            uow.workers.add(worker)
            assert uow.events == []
        assert [type(e) for e in uow.events] == [WorkerRegistered]

    def test_rollback_discards_everything(self, store: RepairStore) -> None:
        with pytest.raises(RuntimeError), store.transaction() as uow:
            worker = Worker.register(
                uow.next_id("WRK-"),
                email="new@example.com",
                name="New",
                specialization=Specialization.HVAC,
                at=utc_now(),
            )
            uow.workers.add(worker)
            raise RuntimeError("boom")
        assert uow.events == []
        with store.read() as uow:
            assert uow.workers.get_by_email("new@example.com") is None
        with store.transaction() as uow:
            assert uow.next_id("WRK-") == "WRK-0001"

    def test_transition_events_in_order(self, store: RepairStore, world: dict[str, Any]) -> None:
        request_id = submit_request(store)["id"]
        with store.transaction() as uow:
            request = uow.requests.get(request_id)
            request.transition_to(RequestStatus.IN_REVIEW, actor_id=MANAGER, at=utc_now())
            request.transition_to(RequestStatus.DECLINED, actor_id=MANAGER, at=utc_now())
            uow.requests.update(request)
        assert [e.to_status for e in uow.events if isinstance(e, RequestStatusChanged)] == [
            "in_review",
            "declined",
        ]


class TestPrincipalLookup:
    def test_manager(self, store: RepairStore, world: dict[str, Any]) -> None:
        with store.read() as uow:
            principal = uow.principals.lookup(MANAGER, property_id=world["property_id"])
        assert principal.roles == {Role.MANAGER}

    def test_tenant_by_email(self, store: RepairStore, world: dict[str, Any]) -> None:
        with store.read() as uow:
            principal = uow.principals.lookup("ANA@example.com", property_id=world["property_id"])
        assert principal.has_role(Role.TENANT)
        assert principal.tenant_id == world["tenant_id"]

    def test_worker_by_email(self, store: RepairStore, world: dict[str, Any]) -> None:
        with store.read() as uow:
            principal = uow.principals.lookup(PLUMBER_EMAIL, property_id=world["property_id"])
        assert principal.roles == {Role.WORKER}
        assert principal.worker_id == world["plumber_id"]

    def test_system(self, store: RepairStore, world: dict[str, Any]) -> None:
        with store.read() as uow:
            principal = uow.principals.lookup("system", property_id=world["property_id"])
            assert principal.is_system
            assert uow.principals.manages_any_property(MANAGER)
            assert not uow.principals.manages_any_property(TENANT_EMAIL)

    def test_stranger_has_no_roles(self, store: RepairStore, world: dict[str, Any]) -> None:
        with store.read() as uow:
            principal = uow.principals.lookup("nobody", property_id=world["property_id"])
        assert principal.roles == frozenset()
