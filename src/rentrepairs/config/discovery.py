"""Config file discovery and loading.

Walk-up finder locates ``rentrepairs.toml``, similar to how git finds
``.git/``. ``RENTREPAIRS_CONFIG`` and ``--config`` override discovery.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from rentrepairs.config.models import RepairConfig

CONFIG_FILENAME = "rentrepairs.toml"
CONFIG_ENV_VAR = "RENTREPAIRS_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``rentrepairs.toml``.

    ``RENTREPAIRS_CONFIG`` wins when set; a path that does not exist
    yields None rather than falling back to discovery.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        return p if p.is_file() else None

    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def load_config(path: Path | None = None, cwd: Path | None = None) -> RepairConfig:
    """Load and validate a TOML config; defaults when no file is found."""
    if path is None:
        path = find_config(cwd)
    if path is None:
        return RepairConfig()

    data: dict[str, Any] = tomllib.loads(path.read_text(encoding="utf-8"))
    return RepairConfig.model_validate(data)
