"""End-to-end CLI tests: init, registry, request lifecycle, exit codes."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner, Result

from rentrepairs.cli import cli


def _run(runner: CliRunner, *args: str) -> Result:
    return runner.invoke(cli, ["--sync", *args])


def _json(runner: CliRunner, *args: str) -> dict[str, Any]:
    result = _run(runner, "--json", *args)
    assert result.exit_code == 0, result.output
    payload: dict[str, Any] = json.loads(result.stdout)
    return payload


@pytest.fixture
def seeded(cli_runner: CliRunner, _isolated_root: None) -> CliRunner:
    """An initialized store with one property, one tenant and one plumber."""
    assert _run(cli_runner, "init").exit_code == 0
    _json(
        cli_runner,
        "--as", "mgr-1",
        "property", "register",
        "--code", "ELM-12", "--name", "Elm Court", "--address", "12 Elm St",
        "--city", "Springfield",
    )  # fmt: skip
    _json(cli_runner, "--as", "mgr-1", "property", "add-tenant", "ELM-12", "ana@example.com")
    _json(
        cli_runner,
        "--as", "system",
        "worker", "register", "bo@example.com", "--name", "Bo Pipes",
        "--specialization", "plumber",
    )  # fmt: skip
    return cli_runner


@pytest.mark.usefixtures("_isolated_root")
class TestInitCommand:
    def test_init(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = _run(cli_runner, "init")
        assert result.exit_code == 0, result.output
        assert "init_store" in result.output
        assert (tmp_path / "rentrepairs.toml").is_file()
        assert (tmp_path / ".rentrepairs" / "rentrepairs.db").is_file()

    def test_init_options_written(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        target = tmp_path / "repairs"
        payload = _json(
            cli_runner,
            "init", str(target),
            "--max-assignments", "5",
            "--fallback-policy", "none",
            "--system-user", "system",
            "--system-user", "scheduler",
        )  # fmt: skip
        assert payload["op"] == "init_store"
        toml = (target / "rentrepairs.toml").read_text()
        assert "max_concurrent_assignments = 5" in toml
        assert 'fallback_policy = "none"' in toml
        assert 'system_users = ["system", "scheduler"]' in toml

    def test_init_twice_is_a_conflict(self, cli_runner: CliRunner) -> None:
        assert _run(cli_runner, "init").exit_code == 0
        result = _run(cli_runner, "init")
        assert result.exit_code == 4
        assert "ALREADY_INITIALIZED" in result.stderr


class TestRequestLifecycle:
    def test_submit_assign_complete(self, seeded: CliRunner) -> None:
        submitted = _json(
            seeded, "--as", "ana@example.com", "request", "submit", "ELM-12", "Leaking kitchen tap"
        )
        request_id = submitted["data"]["id"]
        assert submitted["data"]["required_specialization"] == "plumbing"

        candidates = _json(seeded, "--as", "mgr-1", "request", "candidates", request_id)
        assert [c["email"] for c in candidates["data"]["items"]] == ["bo@example.com"]

        assigned = _json(seeded, "--as", "mgr-1", "request", "assign", request_id)
        assert assigned["data"]["request"]["status"] == "assigned"

        _json(seeded, "--as", "bo@example.com", "request", "start", request_id)
        done = _json(
            seeded, "--as", "bo@example.com", "request", "complete", request_id, "--note", "Fixed"
        )
        assert done["data"]["status"] == "completed"
        assert done["data"]["released_worker"]["active_assignments"] == []

        shown = _run(seeded, "--as", "ana@example.com", "request", "show", request_id)
        assert shown.exit_code == 0
        assert request_id in shown.output
        assert "completed" in shown.output

    def test_human_output(self, seeded: CliRunner) -> None:
        result = _run(
            seeded, "--as", "ana@example.com", "request", "submit", "ELM-12", "Sparks from outlet"
        )
        assert result.exit_code == 0
        assert "submit_request" in result.output
        assert "electrical" in result.output

    def test_quiet_prints_id(self, seeded: CliRunner) -> None:
        result = _run(
            seeded, "-q", "--as", "ana@example.com", "request", "submit", "ELM-12", "Blocked drain"
        )
        assert result.exit_code == 0
        assert result.stdout.strip() == "REQ-0001"

    def test_list_and_overdue(self, seeded: CliRunner) -> None:
        _run(seeded, "--as", "ana@example.com", "request", "submit", "ELM-12", "Leaking tap")
        listed = _json(seeded, "request", "list", "--open", "--property", "ELM-12")
        assert listed["data"]["count"] == 1
        overdue = _json(seeded, "request", "overdue")
        assert overdue["data"]["count"] == 0

    def test_warnings_go_to_stderr(self, seeded: CliRunner) -> None:
        result = _run(
            seeded,
            "--as", "ana@example.com",
            "request", "submit", "ELM-12", "Leaking tap", "--category", "roofing",
        )  # fmt: skip
        assert result.exit_code == 0
        assert "WARNING:" in result.stderr
        assert "WARNING:" not in result.stdout


class TestExitCodes:
    def test_forbidden_exits_3(self, seeded: CliRunner) -> None:
        _run(seeded, "--as", "ana@example.com", "request", "submit", "ELM-12", "Leaking tap")
        result = _run(seeded, "--as", "ana@example.com", "request", "review", "REQ-0001")
        assert result.exit_code == 3
        assert "[FORBIDDEN]" in result.stderr

    def test_invalid_transition_exits_1(self, seeded: CliRunner) -> None:
        _run(seeded, "--as", "ana@example.com", "request", "submit", "ELM-12", "Leaking tap")
        result = _run(seeded, "--as", "mgr-1", "request", "start", "REQ-0001")
        assert result.exit_code == 1
        assert "INVALID_TRANSITION" in result.stderr
        assert "allowed: in_review, declined" in result.stderr

    def test_json_error_payload(self, seeded: CliRunner) -> None:
        result = _run(seeded, "--json", "worker", "show", "nobody@example.com")
        assert result.exit_code == 1
        payload = json.loads(result.stderr)
        assert payload["ok"] is False
        assert payload["error"]["kind"] == "not_found"

    def test_missing_actor_is_a_usage_error(self, seeded: CliRunner) -> None:
        result = _run(seeded, "request", "review", "REQ-0001")
        assert result.exit_code == 2
        assert "No acting user" in result.output

    def test_default_user_from_config(self, cli_runner: CliRunner, _isolated_root: None) -> None:
        assert _run(cli_runner, "init", "--default-user", "mgr-1").exit_code == 0
        result = _run(
            cli_runner,
            "property", "register",
            "--code", "OAK-3", "--name", "Oak", "--address", "3 Oak Rd", "--city", "Shelbyville",
        )  # fmt: skip
        assert result.exit_code == 0, result.output


@pytest.mark.usefixtures("_isolated_root")
class TestHelpAndExamples:
    def test_help_does_not_touch_the_store(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = cli_runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "request" in result.output
        assert not (tmp_path / ".rentrepairs").exists()

    def test_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "rentrepairs" in result.output

    @pytest.mark.parametrize(
        ("args", "expected"),
        [
            (["init", "--examples"], "--fallback-policy none"),
            (["property", "--examples"], "property add-tenant"),
            (["worker", "register", "--examples"], "--specialization plumbing"),
            (["request", "--examples"], "request candidates"),
            (["request", "assign", "--examples"], "best candidate"),
        ],
    )
    def test_examples(self, cli_runner: CliRunner, args: list[str], expected: str) -> None:
        result = cli_runner.invoke(cli, args)
        assert result.exit_code == 0
        assert "Examples for" in result.output
        assert expected in result.output
