"""Tests for AppContext: conflict retries and exit codes."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from rentrepairs.commands._context import AppContext
from rentrepairs.config.settings import RepairSettings
from rentrepairs.services.result import ServiceError, ServiceResult

CONFLICT = ServiceResult(
    ok=False,
    op="assign_worker",
    error=ServiceError(
        code="CONCURRENCY_CONFLICT",
        kind="conflict",
        message="Worker WRK-0001 was modified concurrently",
    ),
)
DONE = ServiceResult(ok=True, op="assign_worker", data={"id": "REQ-0001"})


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """AppContext configures logging; put the root logger back afterwards."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    structlog.reset_defaults()


def _context(tmp_path: Path, retries: int = 2) -> AppContext:
    settings = RepairSettings.from_cli(root=tmp_path, cli={"conflict_retries": retries})
    return AppContext(settings)


class _Scripted:
    """Returns the queued results in order, repeating the last one."""

    def __init__(self, *results: ServiceResult) -> None:
        self.results = list(results)
        self.calls = 0

    def __call__(self) -> ServiceResult:
        self.calls += 1
        return self.results[min(self.calls, len(self.results)) - 1]


class TestRun:
    def test_retries_a_conflict(self, tmp_path: Path) -> None:
        call = _Scripted(CONFLICT, DONE)
        result = _context(tmp_path).run(call)
        assert result.ok
        assert call.calls == 2

    def test_gives_up_after_configured_retries(self, tmp_path: Path) -> None:
        call = _Scripted(CONFLICT)
        result = _context(tmp_path, retries=2).run(call)
        assert result.error is not None
        assert result.error.kind == "conflict"
        assert call.calls == 3

    def test_zero_retries(self, tmp_path: Path) -> None:
        call = _Scripted(CONFLICT, DONE)
        result = _context(tmp_path, retries=0).run(call)
        assert not result.ok
        assert call.calls == 1

    def test_other_failures_are_not_retried(self, tmp_path: Path) -> None:
        forbidden = ServiceResult(
            ok=False,
            op="assign_worker",
            error=ServiceError(code="FORBIDDEN", kind="authorization", message="no"),
        )
        call = _Scripted(forbidden, DONE)
        result = _context(tmp_path).run(call)
        assert result is forbidden
        assert call.calls == 1

    def test_success_runs_once(self, tmp_path: Path) -> None:
        call = _Scripted(DONE)
        assert _context(tmp_path).run(call).ok
        assert call.calls == 1


class TestEmit:
    def test_exhausted_conflict_exits_4(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        app = _context(tmp_path, retries=1)
        result = app.run(_Scripted(CONFLICT))
        with pytest.raises(SystemExit) as exc_info:
            app.emit(result)
        assert exc_info.value.code == 4
        assert "CONCURRENCY_CONFLICT" in capsys.readouterr().err

    @pytest.mark.parametrize(
        ("kind", "code"),
        [("authorization", 3), ("validation", 1), ("not_found", 1)],
    )
    def test_exit_code_by_kind(self, tmp_path: Path, kind: str, code: int) -> None:
        failed = ServiceResult(
            ok=False, op="decline", error=ServiceError(code="X", kind=kind, message="failed")
        )
        with pytest.raises(SystemExit) as exc_info:
            _context(tmp_path).emit(failed)
        assert exc_info.value.code == code

    def test_success_does_not_exit(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _context(tmp_path).emit(ServiceResult(ok=True, op="drain_events", data={"drained": 0}))
        out = capsys.readouterr().out
        assert out.startswith("OK")
        assert "drained: 0" in out
