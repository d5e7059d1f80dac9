"""Tests for config discovery and loading."""

from pathlib import Path

import pytest

from rentrepairs.config.discovery import find_config, load_config
from rentrepairs.config.models import RepairConfig


@pytest.fixture(autouse=True)
def _no_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RENTREPAIRS_CONFIG", raising=False)


class TestFindConfig:
    def test_finds_in_start_dir(self, tmp_path: Path) -> None:
        (tmp_path / "rentrepairs.toml").write_text("")
        assert find_config(tmp_path) == tmp_path / "rentrepairs.toml"

    def test_walks_up(self, tmp_path: Path) -> None:
        (tmp_path / "rentrepairs.toml").write_text("")
        nested = tmp_path / "a" / "b" / "c"
        nested.mkdir(parents=True)
        assert find_config(nested) == (tmp_path / "rentrepairs.toml").resolve()

    def test_env_var_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "rentrepairs.toml").write_text("")
        elsewhere = tmp_path / "other.toml"
        elsewhere.write_text("")
        monkeypatch.setenv("RENTREPAIRS_CONFIG", str(elsewhere))
        assert find_config(tmp_path) == elsewhere

    def test_env_var_missing_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "rentrepairs.toml").write_text("")
        monkeypatch.setenv("RENTREPAIRS_CONFIG", str(tmp_path / "missing.toml"))
        assert find_config(tmp_path) is None


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        config = load_config(cwd=tmp_path)
        assert config == RepairConfig()

    def test_loads_sections(self, tmp_path: Path) -> None:
        path = tmp_path / "rentrepairs.toml"
        path.write_text('[authorization]\nsystem_users = ["system", "cron"]\n')
        config = load_config(path)
        assert config.authorization.system_users == ["system", "cron"]
        assert config.store.data_dir == ".rentrepairs"
