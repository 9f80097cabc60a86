"""
Framework-neutral request logging engine.

:class:`RequestLogger` holds everything one middleware instance shares
across requests: the resolved configuration, the timestamp cache, the tag
resolver and the sink. Integrations call it around the downstream handler:

    if engine.should_skip(request):
        return call_downstream()
    start = engine.start_timer()
    ... call downstream, capture error ...
    engine.log(exchange, error=error, latency_ns=engine.elapsed(start))

Nothing here raises into the request path. A failing skip predicate counts
as "do not skip" and a failing sink is reported through the module logger.
"""

from __future__ import annotations

import os
import time
from typing import Any

import structlog

from reqlog.clock import TimestampCache
from reqlog.config import LoggerConfig, ResolvedConfig, resolve_config
from reqlog.event import LogEvent, get_default_logger
from reqlog.exchange import HTTPExchange
from reqlog.resolver import Outcome, TagResolver
from reqlog.severity import classify_status, status_message

logger = structlog.get_logger(__name__)


class RequestLogger:
    """Shared per-instance state and the per-request log operation.

    Args:
        config: Middleware options; ``None`` uses every default.
    """

    def __init__(self, config: LoggerConfig | None = None) -> None:
        self.config: ResolvedConfig = resolve_config(config)
        self.clock = TimestampCache(
            self.config.time_format,
            self.config.tz,
            self.config.time_refresh_interval,
        )
        if self.config.time_enabled:
            self.clock.start()
        self.pid = str(os.getpid())
        self.resolver = TagResolver(
            self.config.format,
            clock=self.clock,
            pid=self.pid,
            pretty_latency=self.config.pretty_latency,
        )

    @property
    def sink(self) -> Any:
        """The configured output sink, or the process default."""
        if self.config.output_sink is not None:
            return self.config.output_sink
        return get_default_logger()

    def should_skip(self, request: Any) -> bool:
        """Evaluate the skip predicate for *request*."""
        if self.config.skip is None:
            return False
        try:
            return bool(self.config.skip(request))
        except Exception:
            logger.exception("skip_predicate_failed")
            return False

    def start_timer(self) -> int:
        """Start timing a request; ``0`` when latency is not in the format."""
        if not self.config.latency_enabled:
            return 0
        return time.perf_counter_ns()

    def elapsed(self, start: int) -> int | None:
        """Nanoseconds since *start*, or ``None`` when latency is not tracked."""
        if not self.config.latency_enabled:
            return None
        return max(time.perf_counter_ns() - start, 0)

    def build_event(
        self,
        exchange: HTTPExchange,
        *,
        error: BaseException | None = None,
        latency_ns: int | None = None,
    ) -> LogEvent:
        """Classify the status and resolve every tag, without emitting."""
        event = LogEvent(classify_status(exchange.status), self.sink)
        return self.resolver.resolve(event, exchange, Outcome(error=error, latency_ns=latency_ns))

    def log(
        self,
        exchange: HTTPExchange,
        *,
        error: BaseException | None = None,
        latency_ns: int | None = None,
    ) -> LogEvent | None:
        """Build and emit the event for a finished exchange.

        Returns:
            The emitted event, or ``None`` if building or writing it failed.
        """
        try:
            event = self.build_event(exchange, error=error, latency_ns=latency_ns)
            event.emit(status_message(exchange.status))
        except Exception:
            logger.exception("request_log_failed")
            return None
        return event

    def close(self) -> None:
        """Stop the timestamp refresh thread."""
        self.clock.stop()
