"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults are baked here, ``rentrepairs.toml`` only
contains overrides. A fresh store needs no config file at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from rentrepairs.domain.assignment import FallbackPolicy


class AssignmentConfig(BaseModel):
    """[assignment] section."""

    model_config = {"frozen": True}

    max_concurrent_assignments: int = Field(default=3, ge=1)
    fallback_policy: FallbackPolicy = FallbackPolicy.GENERAL_WHEN_NO_MATCH


class StoreConfig(BaseModel):
    """[store] section."""

    model_config = {"frozen": True}

    data_dir: str = ".rentrepairs"
    db_name: str = "rentrepairs.db"


class AuthorizationConfig(BaseModel):
    """[authorization] section."""

    model_config = {"frozen": True}

    # User ids that act with the system role (schedulers, integrations).
    system_users: list[str] = Field(default_factory=lambda: ["system"])


class EventsConfig(BaseModel):
    """[events] section."""

    model_config = {"frozen": True}

    sync: bool = False
    max_retries: int = Field(default=3, ge=0)
    plugins_enabled: bool = True


class CliConfig(BaseModel):
    """[cli] section."""

    model_config = {"frozen": True}

    conflict_retries: int = Field(default=2, ge=0)
    default_user: str | None = None


class RepairConfig(BaseModel):
    """Root configuration composing all ``rentrepairs.toml`` sections."""

    model_config = {"frozen": True}

    assignment: AssignmentConfig = Field(default_factory=AssignmentConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    authorization: AuthorizationConfig = Field(default_factory=AuthorizationConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    cli: CliConfig = Field(default_factory=CliConfig)
