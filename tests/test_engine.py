"""
Tests for the framework-neutral RequestLogger.

Covers latency gating, severity/message selection, sink selection, the
timestamp thread lifecycle, and absorption of skip-predicate and sink
failures.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from structlog.testing import CapturingLogger

from conftest import FakeExchange
from reqlog.config import LoggerConfig
from reqlog.engine import RequestLogger
from reqlog.event import set_default_logger
from reqlog.severity import Severity


def _engine(sink: CapturingLogger, **options) -> RequestLogger:
    return RequestLogger(LoggerConfig(output_sink=sink, **options))


# ── timing ──


class TestTiming:
    def test_no_timing_calls_without_latency_tag(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["status", "method"])
        with patch("reqlog.engine.time.perf_counter_ns") as clock:
            start = engine.start_timer()
            elapsed = engine.elapsed(start)
            engine.log(FakeExchange(), latency_ns=elapsed)
        clock.assert_not_called()
        assert start == 0
        assert elapsed is None
        assert "latency" not in sink.calls[0].kwargs

    def test_latency_measured_with_tag(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["latency"])
        with patch("reqlog.engine.time.perf_counter_ns", side_effect=[1_000, 2_501_000]):
            start = engine.start_timer()
            elapsed = engine.elapsed(start)
        assert elapsed == 2_500_000
        engine.log(FakeExchange(), latency_ns=elapsed)
        assert sink.calls[0].kwargs["latency"] == 2.5

    def test_pretty_latency_is_text(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["latency"], pretty_latency=True)
        engine.log(FakeExchange(), latency_ns=1_500_000)
        assert sink.calls[0].kwargs["latency"] == "1.5ms"

    def test_real_latency_non_negative(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["latency"])
        elapsed = engine.elapsed(engine.start_timer())
        assert elapsed is not None and elapsed >= 0


# ── emission ──


class TestLog:
    def test_severity_and_message(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["status"])
        event = engine.log(FakeExchange(status=404))
        assert event is not None and event.severity is Severity.WARN
        call = sink.calls[0]
        assert call.method_name == "warning"
        assert call.kwargs == {"status": 404, "event": "Not Found"}

    def test_ok_is_info(self, sink: CapturingLogger) -> None:
        _engine(sink, format=["status"]).log(FakeExchange(status=200))
        assert sink.calls[0].method_name == "info"
        assert sink.calls[0].kwargs["event"] == "OK"

    def test_redirect_is_debug(self, sink: CapturingLogger) -> None:
        _engine(sink, format=["status"]).log(FakeExchange(status=302))
        assert sink.calls[0].method_name == "debug"

    def test_error_event(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["error"])
        engine.log(FakeExchange(status=500), error=ValueError("some random error"))
        call = sink.calls[0]
        assert call.method_name == "error"
        assert call.kwargs["error"] == "some random error"

    def test_event_named_local_is_kept(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["locals:event"])
        engine.log(FakeExchange(locals={"event": "signup"}))
        assert sink.calls[0].kwargs == {"field_event": "signup", "event": "OK"}

    def test_one_event_per_log(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["status", "status"])
        engine.log(FakeExchange())
        assert len(sink.calls) == 1

    def test_build_event_does_not_emit(self, sink: CapturingLogger) -> None:
        event = _engine(sink, format=["method"]).build_event(FakeExchange())
        assert event.fields == [("method", "GET")]
        assert sink.calls == []

    def test_default_sink_used_without_output_sink(self) -> None:
        default = CapturingLogger()
        set_default_logger(default)
        RequestLogger(LoggerConfig(format=["status"])).log(FakeExchange())
        assert len(default.calls) == 1

    def test_explicit_sink_wins_over_default(self, sink: CapturingLogger) -> None:
        default = CapturingLogger()
        set_default_logger(default)
        _engine(sink, format=["status"]).log(FakeExchange())
        assert default.calls == []
        assert len(sink.calls) == 1

    def test_failing_sink_is_absorbed(self) -> None:
        broken = MagicMock()
        broken.info.side_effect = RuntimeError("disk full")
        engine = RequestLogger(LoggerConfig(format=["status"], output_sink=broken))
        assert engine.log(FakeExchange()) is None


# ── skip predicate ──


class TestShouldSkip:
    def test_no_predicate(self, sink: CapturingLogger) -> None:
        assert _engine(sink).should_skip(object()) is False

    def test_predicate_result(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, skip=lambda request: request == "health")
        assert engine.should_skip("health") is True
        assert engine.should_skip("other") is False

    def test_failing_predicate_does_not_skip(self, sink: CapturingLogger) -> None:
        def boom(request):
            raise KeyError("nope")

        assert _engine(sink, skip=boom).should_skip(object()) is False


# ── timestamp thread ──


class TestLifecycle:
    def test_time_tag_starts_refresh(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["time"])
        try:
            assert engine.clock.running is True
        finally:
            engine.close()
        assert engine.clock.running is False

    def test_no_time_tag_no_thread(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["status"])
        assert engine.clock.running is False

    def test_time_field_from_cache(self, sink: CapturingLogger) -> None:
        engine = _engine(sink, format=["time"], time_zone="UTC", time_format="%Y")
        try:
            engine.log(FakeExchange())
        finally:
            engine.close()
        assert sink.calls[0].kwargs["time"] == engine.clock.value
