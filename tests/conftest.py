"""Shared pytest fixtures and test helpers for rentrepairs tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from sqlalchemy.engine import Engine

from rentrepairs.config.settings import RepairSettings
from rentrepairs.infrastructure.database.engine import init_database
from rentrepairs.infrastructure.store import RepairStore

MANAGER = "mgr-1"
OTHER_MANAGER = "mgr-2"
TENANT_EMAIL = "ana@example.com"
PLUMBER_EMAIL = "bo@example.com"
ELECTRICIAN_EMAIL = "cy@example.com"
GENERALIST_EMAIL = "di@example.com"
SYSTEM = "system"


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def db_engine(tmp_path: Path) -> Iterator[Engine]:
    """Initialized SQLite engine with all tables created."""
    engine = init_database(tmp_path)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def settings(tmp_path: Path) -> RepairSettings:
    return RepairSettings.from_cli(root=tmp_path, sync=True)


@pytest.fixture
def store(settings: RepairSettings) -> Iterator[RepairStore]:
    """Store on a temp directory, without an event bus."""
    s = RepairStore(settings)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def world(store: RepairStore) -> dict[str, Any]:
    """One property with one tenant, a plumber, an electrician and a generalist.

    Returns the ids keyed by role.
    """
    prop = register_property(store)
    tenant = register_tenant(store, prop["id"], TENANT_EMAIL)
    plumber = register_worker(store, PLUMBER_EMAIL, "Bo Pipes", "plumbing")
    electrician = register_worker(store, ELECTRICIAN_EMAIL, "Cy Volt", "electrical")
    generalist = register_worker(store, GENERALIST_EMAIL, "Di Handy", "general")
    return {
        "property_id": prop["id"],
        "tenant_id": tenant["id"],
        "plumber_id": plumber["id"],
        "electrician_id": electrician["id"],
        "generalist_id": generalist["id"],
    }


@pytest.fixture
def _isolated_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to a temp directory so the CLI creates an isolated store.

    Use via ``@pytest.mark.usefixtures("_isolated_root")`` on command test
    classes.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("RENTREPAIRS_CONFIG", raising=False)


# ---------------------------------------------------------------------------
# Shared test helpers (used across service test modules)
# ---------------------------------------------------------------------------


def register_property(
    store: RepairStore,
    code: str = "ELM-12",
    *,
    manager_id: str = MANAGER,
    city: str = "Springfield",
) -> dict[str, Any]:
    """Register a property via PropertyService, asserting success."""
    from rentrepairs.services.properties import PropertyService

    result = PropertyService(store).register_property(
        code=code,
        name=f"{code} Court",
        address="12 Elm St",
        city=city,
        manager_id=manager_id,
        actor_id=manager_id,
    )
    assert result.ok, result.error
    return result.data


def register_tenant(
    store: RepairStore, property_ref: str, email: str, *, actor_id: str = MANAGER
) -> dict[str, Any]:
    from rentrepairs.services.properties import PropertyService

    result = PropertyService(store).register_tenant(property_ref, email=email, actor_id=actor_id)
    assert result.ok, result.error
    return result.data["tenant"]


def register_worker(
    store: RepairStore, email: str, name: str, specialization: str
) -> dict[str, Any]:
    from rentrepairs.services.workers import WorkerService

    result = WorkerService(store).register_worker(
        email=email, name=name, specialization=specialization, actor_id=SYSTEM
    )
    assert result.ok, result.error
    return result.data


def submit_request(
    store: RepairStore,
    description: str = "Leaking kitchen tap",
    *,
    property_ref: str = "ELM-12",
    actor_id: str = TENANT_EMAIL,
    **kwargs: Any,
) -> dict[str, Any]:
    """File a request via RequestService, asserting success."""
    from rentrepairs.services.requests import RequestService

    result = RequestService(store).submit_request(
        property_ref, description=description, actor_id=actor_id, **kwargs
    )
    assert result.ok, result.error
    return result.data


def assign(store: RepairStore, request_id: str, worker_id: str | None = None) -> dict[str, Any]:
    from rentrepairs.services.assignment import AssignmentService

    result = AssignmentService(store).assign_worker(request_id, worker_id, actor_id=MANAGER)
    assert result.ok, result.error
    return result.data
