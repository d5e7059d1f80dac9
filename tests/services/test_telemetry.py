"""Tests for telemetry primitives: Span, trace_span, @traced."""

from __future__ import annotations

import time
from collections.abc import Generator
from typing import Any

import pytest

from rentrepairs.infrastructure.store import RepairStore
from rentrepairs.services.result import ServiceResult
from rentrepairs.services.telemetry import (
    Span,
    _current_span,
    disable_telemetry,
    enable_telemetry,
    get_current_span,
    trace_span,
    traced,
)
from tests.conftest import submit_request


@pytest.fixture(autouse=True)
def _reset_telemetry_state() -> Generator[None]:
    """Ensure clean telemetry state for every test."""
    yield
    disable_telemetry()
    _current_span.set(None)


class TestSpan:
    def test_duration_before_end_is_zero(self) -> None:
        assert Span(name="test").duration_ms == 0.0

    def test_duration_after_end(self) -> None:
        span = Span(name="test")
        time.sleep(0.005)
        span.end()
        assert span.duration_ms > 0

    def test_to_dict(self) -> None:
        root = Span(name="root")
        child = Span(name="child", parent=root)
        root.children.append(child)
        child.annotate("rows", 3)
        child.end()
        root.end()
        d = root.to_dict()
        assert d["name"] == "root"
        assert "annotations" not in d
        assert d["children"][0] == {
            "name": "child",
            "duration_ms": d["children"][0]["duration_ms"],
            "annotations": {"rows": 3},
        }


class TestTraceSpan:
    def test_disabled_yields_none(self) -> None:
        with trace_span("test") as span:
            assert span is None

    def test_no_root_yields_none(self) -> None:
        enable_telemetry()
        with trace_span("test") as span:
            assert span is None

    def test_nested_under_root(self) -> None:
        enable_telemetry()
        root = Span(name="root")
        token = _current_span.set(root)
        try:
            with trace_span("outer") as outer:
                assert get_current_span() is outer
                with trace_span("inner"):
                    pass
            assert get_current_span() is root
        finally:
            _current_span.reset(token)
        assert [c.name for c in root.children] == ["outer"]
        assert [c.name for c in root.children[0].children] == ["inner"]


class TestTraced:
    def test_disabled_leaves_result_alone(self) -> None:
        @traced
        def op() -> ServiceResult:
            return ServiceResult(ok=True, op="op")

        assert op().meta is None

    def test_enabled_injects_span_tree(self) -> None:
        @traced
        def op() -> ServiceResult:
            with trace_span("step") as span:
                assert span is not None
                span.annotate("count", 2)
            return ServiceResult(ok=True, op="op", meta={"source": "test"})

        enable_telemetry()
        result = op()
        assert result.meta is not None
        assert result.meta["source"] == "test"
        telemetry = result.meta["telemetry"]
        assert telemetry["name"].endswith("op")
        assert telemetry["children"][0]["annotations"] == {"count": 2}

    def test_exception_resets_span(self) -> None:
        @traced
        def op() -> ServiceResult:
            raise RuntimeError("boom")

        enable_telemetry()
        with pytest.raises(RuntimeError):
            op()
        assert get_current_span() is None

    def test_non_result_passthrough(self) -> None:
        @traced
        def op() -> int:
            return 7

        enable_telemetry()
        assert op() == 7

    def test_service_call_reports_query_span(
        self, store: RepairStore, world: dict[str, Any]
    ) -> None:
        from rentrepairs.services.requests import RequestService

        submit_request(store)
        enable_telemetry()
        result = RequestService(store).list_requests()
        assert result.meta is not None
        children = result.meta["telemetry"]["children"]
        assert children[0]["name"] == "find"
        assert children[0]["annotations"] == {"count": 1}
