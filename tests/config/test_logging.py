"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest
import structlog

from rentrepairs.config.logging import configure_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Restore root logger and structlog state after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    ours = logging.getLogger("rentrepairs")
    ours_level = ours.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    ours.setLevel(ours_level)
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_verbose_enables_debug(self) -> None:
        configure_logging(verbose=True)
        assert logging.getLogger("rentrepairs").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("sqlalchemy").level == logging.WARNING

    def test_quiet_by_default(self) -> None:
        configure_logging()
        assert logging.getLogger("rentrepairs").level == logging.WARNING

    def test_json_mode_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        structlog.get_logger("rentrepairs.audit").info("worker_assigned", request_id="REQ-0001")
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "worker_assigned"
        assert parsed["request_id"] == "REQ-0001"
        assert parsed["level"] == "info"
        assert parsed["logger"] == "rentrepairs.audit"
        assert "timestamp" in parsed

    def test_stdlib_records_share_the_format(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("rentrepairs.services").debug("assign_worker rejected: %s", "FORBIDDEN")
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "assign_worker rejected: FORBIDDEN"
        assert parsed["level"] == "debug"

    def test_info_hidden_when_not_verbose(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_json=True)
        structlog.get_logger("rentrepairs.audit").info("request_created")
        assert capfd.readouterr().err == ""
