"""Tests for WorkerService: registry, specialization changes, activity."""

from __future__ import annotations

from typing import Any

import pytest

from rentrepairs.infrastructure.store import RepairStore
from rentrepairs.services.workers import WorkerService
from tests.conftest import (
    MANAGER,
    PLUMBER_EMAIL,
    TENANT_EMAIL,
    assign,
    register_property,
    submit_request,
)


class TestRegisterWorker:
    def test_register_as_manager(self, store: RepairStore) -> None:
        register_property(store)
        result = WorkerService(store).register_worker(
            email="Bo@Example.com", name="Bo", specialization="Plumber", actor_id=MANAGER
        )
        assert result.ok, result.error
        assert result.data["id"] == "WRK-0001"
        assert result.data["email"] == "bo@example.com"
        assert result.data["specialization"] == "plumbing"
        assert result.data["available"] is True
        assert result.data["active_assignments"] == []

    def test_requires_manager_or_system(self, store: RepairStore) -> None:
        result = WorkerService(store).register_worker(
            email="bo@example.com", name="Bo", specialization="plumbing", actor_id=TENANT_EMAIL
        )
        assert not result.ok
        assert result.error is not None
        assert result.error.kind == "authorization"

    def test_unknown_specialization(self, store: RepairStore) -> None:
        result = WorkerService(store).register_worker(
            email="bo@example.com", name="Bo", specialization="roofing", actor_id="system"
        )
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "UNKNOWN_SPECIALIZATION"

    def test_duplicate_email(self, store: RepairStore, world: dict[str, Any]) -> None:
        result = WorkerService(store).register_worker(
            email=PLUMBER_EMAIL.upper(), name="Bo 2", specialization="hvac", actor_id="system"
        )
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "DUPLICATE_WORKER"


class TestChangeSpecialization:
    def test_change_idle_worker(self, store: RepairStore, world: dict[str, Any]) -> None:
        result = WorkerService(store).change_specialization(
            PLUMBER_EMAIL, "hvac", actor_id=MANAGER
        )
        assert result.ok, result.error
        assert result.data["specialization"] == "hvac"

    def test_unchanged_warns(self, store: RepairStore, world: dict[str, Any]) -> None:
        result = WorkerService(store).change_specialization(
            world["plumber_id"], "plumbing", actor_id=MANAGER
        )
        assert result.ok
        assert any("already has specialization" in w for w in result.warnings)

    def test_conflicts_with_active_assignment(
        self, store: RepairStore, world: dict[str, Any]
    ) -> None:
        request_id = submit_request(store)["id"]
        assign(store, request_id, world["plumber_id"])
        result = WorkerService(store).change_specialization(
            world["plumber_id"], "electrical", actor_id=MANAGER
        )
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "SPECIALIZATION_CONFLICT"

        reread = WorkerService(store).get_worker(world["plumber_id"])
        assert reread.data["specialization"] == "plumbing"

    def test_general_covers_under_default_policy(
        self, store: RepairStore, world: dict[str, Any]
    ) -> None:
        request_id = submit_request(store)["id"]
        assign(store, request_id, world["plumber_id"])
        result = WorkerService(store).change_specialization(
            world["plumber_id"], "general", actor_id=MANAGER
        )
        assert result.ok, result.error

    def test_completed_work_does_not_block(
        self, store: RepairStore, world: dict[str, Any]
    ) -> None:
        from rentrepairs.services.requests import RequestService

        request_id = submit_request(store)["id"]
        assign(store, request_id, world["plumber_id"])
        svc = RequestService(store)
        assert svc.start_work(request_id, actor_id=PLUMBER_EMAIL).ok
        assert svc.complete(request_id, actor_id=PLUMBER_EMAIL).ok

        result = WorkerService(store).change_specialization(
            world["plumber_id"], "electrical", actor_id=MANAGER
        )
        assert result.ok, result.error


class TestActivity:
    def test_deactivate_and_activate(self, store: RepairStore, world: dict[str, Any]) -> None:
        svc = WorkerService(store)
        off = svc.deactivate_worker(PLUMBER_EMAIL, actor_id=MANAGER)
        assert off.ok
        assert off.data["is_active"] is False
        assert off.data["available"] is False

        on = svc.activate_worker(world["plumber_id"].lower(), actor_id=MANAGER)
        assert on.ok
        assert on.data["available"] is True

    def test_deactivate_twice_warns(self, store: RepairStore, world: dict[str, Any]) -> None:
        svc = WorkerService(store)
        svc.deactivate_worker(PLUMBER_EMAIL, actor_id=MANAGER)
        again = svc.deactivate_worker(PLUMBER_EMAIL, actor_id=MANAGER)
        assert again.ok
        assert any("already inactive" in w for w in again.warnings)

    def test_deactivate_with_assignments_warns(
        self, store: RepairStore, world: dict[str, Any]
    ) -> None:
        request_id = submit_request(store)["id"]
        assign(store, request_id, world["plumber_id"])
        result = WorkerService(store).deactivate_worker(PLUMBER_EMAIL, actor_id=MANAGER)
        assert result.ok
        assert result.data["active_assignments"] == [request_id]
        assert any("reassign" in w for w in result.warnings)


class TestQueries:
    def test_get_by_email(self, store: RepairStore, world: dict[str, Any]) -> None:
        result = WorkerService(store).get_worker(PLUMBER_EMAIL)
        assert result.ok
        assert result.data["id"] == world["plumber_id"]

    @pytest.mark.parametrize("ref", ["nobody@example.com", "WRK-0099"])
    def test_get_missing(self, store: RepairStore, ref: str) -> None:
        result = WorkerService(store).get_worker(ref)
        assert not result.ok
        assert result.error is not None
        assert result.error.kind == "not_found"

    def test_list(self, store: RepairStore, world: dict[str, Any]) -> None:
        svc = WorkerService(store)
        assert svc.list_workers().data["count"] == 3

        plumbers = svc.list_workers(specialization="plumbing")
        assert [w["email"] for w in plumbers.data["items"]] == [PLUMBER_EMAIL]

        svc.deactivate_worker(PLUMBER_EMAIL, actor_id=MANAGER)
        available = svc.list_workers(available_only=True)
        assert PLUMBER_EMAIL not in [w["email"] for w in available.data["items"]]
        assert svc.list_workers(active_only=True).data["count"] == 2

    def test_list_unknown_specialization(self, store: RepairStore) -> None:
        result = WorkerService(store).list_workers(specialization="roofing")
        assert not result.ok
        assert result.error is not None
        assert result.error.kind == "validation"
