"""Unified settings: CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs: CLI flags passed by Click
  2. Env vars: ``RENTREPAIRS_*`` prefix, nested sections via ``__``
  3. TOML file: ``rentrepairs.toml`` discovered via walk-up
  4. Code defaults baked into the section models
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from rentrepairs.config.discovery import find_config
from rentrepairs.config.models import (
    AssignmentConfig,
    AuthorizationConfig,
    CliConfig,
    EventsConfig,
    StoreConfig,
)


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a discovered ``rentrepairs.toml``."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            try:
                self._data = tomllib.loads(toml_path.read_text(encoding="utf-8"))
            except tomllib.TOMLDecodeError as exc:
                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise click.ClickException(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# TOML path handed to settings_customise_sources during construction.
_tls = threading.local()


class RepairSettings(BaseSettings):
    """Resolved settings for one CLI invocation or embedding application.

    Attributes:
        root: Directory holding the data dir (parent of ``rentrepairs.toml``,
            or CWD if no config was found).
        config_path: The TOML file that was loaded, if any.
        user: Acting user id (``--as``); falls back to ``[cli] default_user``.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "RENTREPAIRS_",
        "env_nested_delimiter": "__",
    }

    root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False
    sync: bool = False
    user: str | None = None

    # --- TOML sections ---
    assignment: AssignmentConfig = Field(default_factory=AssignmentConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    authorization: AuthorizationConfig = Field(default_factory=AuthorizationConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    cli: CliConfig = Field(default_factory=CliConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert the TOML source between env vars and defaults."""
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, getattr(_tls, "toml_path", None)),
        )

    @property
    def acting_user(self) -> str | None:
        return self.user or self.cli.default_user

    @property
    def db_path(self) -> Path:
        return self.root / self.store.data_dir / self.store.db_name

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        root: Path | None = None,
        **cli_flags: Any,
    ) -> RepairSettings:
        """Construct settings from a CLI invocation.

        Discovers ``rentrepairs.toml`` via walk-up (or the explicit
        *config_path*), resolves *root* from the config file's directory,
        and applies CLI flags as highest-priority overrides. Flags left as
        None are dropped so lower-priority sources still apply.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(root)

        resolved_root = root
        if resolved_root is None:
            resolved_root = toml_path.parent if toml_path else Path.cwd()

        overrides = {k: v for k, v in cli_flags.items() if v is not None}
        _tls.toml_path = toml_path
        try:
            return cls(root=resolved_root, config_path=toml_path, **overrides)
        finally:
            _tls.toml_path = None
