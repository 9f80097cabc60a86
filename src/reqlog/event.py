"""
Request log events and the sink they are written to.

A :class:`LogEvent` accumulates typed fields in tag order and is handed to
a structlog-compatible logger exactly once, by :meth:`LogEvent.emit`.

Sinks
-----
Each middleware instance may carry its own sink (``output_sink``). When it
does not, events go to the process-wide default handle, a structlog logger
named ``reqlog.access``. :func:`set_default_logger` replaces that handle for
every instance without an explicit sink; :func:`reset_default_logger`
restores the structlog one.
"""

from __future__ import annotations

from typing import Any

import structlog

from reqlog.severity import Severity
from reqlog.tags import TAG_ERROR

DEFAULT_LOGGER_NAME = "reqlog.access"

# structlog carries the message under "event"; a field with that key moves here.
MESSAGE_KEY = "event"
RENAMED_EVENT_KEY = "field_event"

_default_logger: Any = structlog.get_logger(DEFAULT_LOGGER_NAME)


def get_default_logger() -> Any:
    """Return the process-wide default sink."""
    return _default_logger


def set_default_logger(logger: Any) -> None:
    """Replace the process-wide default sink.

    *logger* must provide ``debug``, ``info``, ``warning`` and ``error``
    methods accepting ``(event, **fields)``.
    """
    global _default_logger
    _default_logger = logger


def reset_default_logger() -> None:
    """Restore the structlog ``reqlog.access`` logger as the default sink."""
    set_default_logger(structlog.get_logger(DEFAULT_LOGGER_NAME))


def _fraction(value: int, unit: int) -> str:
    whole, rest = divmod(value, unit)
    if not rest:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{rest:0{digits}d}".rstrip("0")


def format_duration(nanoseconds: int) -> str:
    """Render a duration the way Go's ``time.Duration`` prints it.

    >>> format_duration(1_500_000)
    '1.5ms'
    >>> format_duration(90_000_000_000)
    '1m30s'
    """
    if nanoseconds <= 0:
        return "0s"
    if nanoseconds < 1_000:
        return f"{nanoseconds}ns"
    if nanoseconds < 1_000_000:
        return _fraction(nanoseconds, 1_000) + "µs"
    if nanoseconds < 1_000_000_000:
        return _fraction(nanoseconds, 1_000_000) + "ms"

    hours, rest = divmod(nanoseconds, 3_600_000_000_000)
    minutes, rest = divmod(rest, 60_000_000_000)
    text = _fraction(rest, 1_000_000_000) + "s"
    if hours:
        return f"{hours}h{minutes}m{text}"
    if minutes:
        return f"{minutes}m{text}"
    return text


class LogEvent:
    """A single request log event under construction.

    Fields are kept as an ordered list, so repeated keys stay visible until
    :meth:`emit` passes them to the sink as keyword arguments (where the last
    write for a key wins).

    Args:
        severity: Level the event is emitted at.
        logger: Sink receiving the event.
    """

    def __init__(self, severity: Severity, logger: Any) -> None:
        self.severity = severity
        self._logger = logger
        self.fields: list[tuple[str, Any]] = []
        self.message: str | None = None

    def add_str(self, key: str, value: str) -> LogEvent:
        self.fields.append((key, value))
        return self

    def add_int(self, key: str, value: int) -> LogEvent:
        self.fields.append((key, value))
        return self

    def add_bytes(self, key: str, value: bytes | bytearray) -> LogEvent:
        """Attach *value* rendered as text."""
        self.fields.append((key, bytes(value).decode("utf-8", errors="replace")))
        return self

    def add_duration(self, key: str, nanoseconds: int) -> LogEvent:
        """Attach a duration as float milliseconds."""
        self.fields.append((key, nanoseconds / 1_000_000))
        return self

    def add_error(self, err: BaseException) -> LogEvent:
        """Attach the message of *err* under ``error``."""
        self.fields.append((TAG_ERROR, str(err) or type(err).__name__))
        return self

    def as_dict(self) -> dict[str, Any]:
        """Fields collapsed by key, last write winning."""
        return dict(self.fields)

    @property
    def emitted(self) -> bool:
        return self.message is not None

    def emit(self, message: str) -> None:
        """Write the event to the sink with *message* as the event text.

        The message occupies structlog's ``event`` key. A field named
        ``event`` is emitted as ``field_event`` instead.
        """
        if self.emitted:
            return
        self.message = message
        payload = self.as_dict()
        if MESSAGE_KEY in payload:
            payload[RENAMED_EVENT_KEY] = payload.pop(MESSAGE_KEY)
        payload[MESSAGE_KEY] = message
        getattr(self._logger, self.severity.method_name)(**payload)
