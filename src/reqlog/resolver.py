"""
Tag resolution: turns the configured tag list into log event fields.

Each tag is looked up in the literal vocabulary first. Failing that, the
prefix table is scanned in order (``header:``, ``query:``, ``form:``,
``cookie:``, ``locals:``) and the remainder of the tag after the first
matching prefix becomes the parameter, verbatim. Anything else is ignored.

Resolution is a pure function of the exchange, the outcome and the cached
timestamp. It never raises for missing data; absent values become empty
strings or zeros.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from reqlog import tags as t
from reqlog.clock import TimestampCache
from reqlog.event import LogEvent, format_duration
from reqlog.exchange import HTTPExchange


@dataclass(frozen=True)
class Outcome:
    """What happened downstream, beyond the response itself.

    Attributes:
        error: Exception raised by the downstream handler, if any.
        latency_ns: Measured handler latency; ``None`` when not measured.
    """

    error: BaseException | None = None
    latency_ns: int | None = None


_LiteralHandler = Callable[..., None]
_PrefixHandler = Callable[[LogEvent, HTTPExchange, str], None]


def _header_field(key: str, header: str) -> _LiteralHandler:
    def handler(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
        event.add_str(key, exchange.header(header))

    return handler


def _str_field(key: str, attr: str) -> _LiteralHandler:
    def handler(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
        event.add_str(key, getattr(exchange, attr))

    return handler


def _pid(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
    event.add_str(t.TAG_PID, resolver.pid)


def _time(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
    event.add_str(t.TAG_TIME, resolver.clock.value)


def _latency(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
    elapsed = outcome.latency_ns or 0
    if resolver.pretty_latency:
        event.add_str(t.TAG_LATENCY, format_duration(elapsed))
    else:
        event.add_duration(t.TAG_LATENCY, elapsed)


def _status(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
    event.add_int(t.TAG_STATUS, exchange.status)


def _res_body(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
    event.add_bytes(t.TAG_RES_BODY, exchange.response_body)


def _body(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
    event.add_bytes(t.TAG_BODY, exchange.request_body)


def _bytes_sent(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
    event.add_int(t.TAG_BYTES_SENT, exchange.bytes_sent)


def _bytes_received(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
    event.add_int(t.TAG_BYTES_RECEIVED, exchange.bytes_received)


def _error(resolver: TagResolver, event: LogEvent, exchange: HTTPExchange, outcome: Outcome) -> None:
    if outcome.error is not None:
        event.add_error(outcome.error)


_LITERALS: dict[str, _LiteralHandler] = {
    t.TAG_PID: _pid,
    t.TAG_TIME: _time,
    t.TAG_REFERER: _header_field(t.TAG_REFERER, t.HEADER_REFERER),
    t.TAG_PROTOCOL: _str_field(t.TAG_PROTOCOL, "protocol"),
    t.TAG_ID: _header_field(t.TAG_ID, t.HEADER_REQUEST_ID),
    t.TAG_IP: _str_field(t.TAG_IP, "ip"),
    t.TAG_IPS: _header_field(t.TAG_IPS, t.HEADER_FORWARDED_FOR),
    t.TAG_HOST: _str_field(t.TAG_HOST, "host"),
    t.TAG_METHOD: _str_field(t.TAG_METHOD, "method"),
    t.TAG_PATH: _str_field(t.TAG_PATH, "path"),
    t.TAG_URL: _str_field(t.TAG_URL, "url"),
    t.TAG_UA: _header_field(t.TAG_UA, t.HEADER_USER_AGENT),
    t.TAG_LATENCY: _latency,
    t.TAG_STATUS: _status,
    t.TAG_RES_BODY: _res_body,
    t.TAG_QUERY_STRING_PARAMS: _str_field(t.TAG_QUERY_STRING_PARAMS, "query_string"),
    t.TAG_BODY: _body,
    t.TAG_BYTES_SENT: _bytes_sent,
    t.TAG_BYTES_RECEIVED: _bytes_received,
    t.TAG_ROUTE: _str_field(t.TAG_ROUTE, "route"),
    t.TAG_ERROR: _error,
}


def add_local(event: LogEvent, key: str, value: Any) -> None:
    """Attach a per-request store value according to its runtime type.

    ``bytes``/``bytearray`` are rendered as text, ``str`` verbatim, ``None``
    adds nothing and any other value goes through ``str()``.
    """
    if value is None:
        return
    if isinstance(value, (bytes, bytearray)):
        event.add_bytes(key, value)
    elif isinstance(value, str):
        event.add_str(key, value)
    else:
        event.add_str(key, str(value))


_PREFIXES: tuple[tuple[str, _PrefixHandler], ...] = (
    (t.TAG_HEADER, lambda event, exchange, name: event.add_str(name, exchange.header(name))),
    (t.TAG_QUERY, lambda event, exchange, name: event.add_str(name, exchange.query(name))),
    (t.TAG_FORM, lambda event, exchange, name: event.add_str(name, exchange.form(name))),
    (t.TAG_COOKIE, lambda event, exchange, name: event.add_str(name, exchange.cookie(name))),
    (t.TAG_LOCALS, lambda event, exchange, name: add_local(event, name, exchange.local(name))),
)


class TagResolver:
    """Resolve an ordered tag list against finished exchanges.

    Args:
        format: Ordered tags; duplicates produce duplicate fields.
        clock: Source of the ``time`` tag.
        pid: Process id string for the ``pid`` tag.
        pretty_latency: Emit latency as duration text.
    """

    def __init__(
        self,
        format: tuple[str, ...],
        *,
        clock: TimestampCache,
        pid: str,
        pretty_latency: bool = False,
    ) -> None:
        self.format = format
        self.clock = clock
        self.pid = pid
        self.pretty_latency = pretty_latency

    def resolve(
        self,
        event: LogEvent,
        exchange: HTTPExchange,
        outcome: Outcome | None = None,
    ) -> LogEvent:
        """Append one field per tag to *event*, in tag order."""
        if outcome is None:
            outcome = Outcome()
        for tag in self.format:
            self.resolve_tag(tag, event, exchange, outcome)
        return event

    def resolve_tag(
        self,
        tag: str,
        event: LogEvent,
        exchange: HTTPExchange,
        outcome: Outcome,
    ) -> None:
        literal = _LITERALS.get(tag)
        if literal is not None:
            literal(self, event, exchange, outcome)
            return
        for prefix, handler in _PREFIXES:
            if tag.startswith(prefix):
                handler(event, exchange, tag[len(prefix):])
                return
        # Unknown tag: nothing to emit.
