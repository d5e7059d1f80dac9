"""InitService: create a store directory with its database and config file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from rentrepairs.config.discovery import CONFIG_FILENAME
from rentrepairs.config.models import StoreConfig
from rentrepairs.infrastructure.database.engine import init_database
from rentrepairs.services.result import ServiceError, ServiceResult

logger = logging.getLogger(__name__)


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(v) for v in value) + "]"
    # JSON string escaping is valid TOML basic-string escaping.
    return json.dumps(str(value))


def render_config(sections: dict[str, dict[str, Any]]) -> str:
    """Render a sparse ``rentrepairs.toml``: only the given overrides."""
    blocks = ["# rentrepairs configuration. Unset keys use built-in defaults.\n"]
    for section, values in sections.items():
        present = {k: v for k, v in values.items() if v is not None}
        if not present:
            continue
        lines = [f"[{section}]"]
        lines += [f"{key} = {_toml_value(value)}" for key, value in present.items()]
        blocks.append("\n".join(lines) + "\n")
    return "\n".join(blocks)


class InitService:
    """Creates a new store. Static: there is no store to inject yet."""

    @staticmethod
    def init_store(
        root: Path,
        *,
        sections: dict[str, dict[str, Any]] | None = None,
    ) -> ServiceResult:
        op = "init_store"
        config_file = root / CONFIG_FILENAME
        if config_file.exists():
            return ServiceResult(
                ok=False,
                op=op,
                error=ServiceError(
                    code="ALREADY_INITIALIZED",
                    kind="conflict",
                    message=f"{config_file} already exists",
                    detail={"path": str(config_file)},
                ),
            )

        sections = sections or {}
        store_section = sections.get("store", {})
        store = StoreConfig(**{k: v for k, v in store_section.items() if v is not None})

        root.mkdir(parents=True, exist_ok=True)
        config_file.write_text(render_config(sections), encoding="utf-8")
        engine = init_database(root, data_dir=store.data_dir, db_name=store.db_name)
        engine.dispose()
        logger.info("Initialized store at %s", root)

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "root": str(root),
                "database": str(root / store.data_dir / store.db_name),
                "config_file": str(config_file),
            },
        )
