"""
Structured logging setup for reqlog.

Configures structlog for JSON-formatted output: every line carries an ISO
timestamp, the level (under ``settings.level_key``, ``"severity"`` by
default so Google Cloud Logging picks it up) and the event text under
``message``. ``pretty=True`` switches to structlog's console renderer for
local development.

Calling :func:`configure_logging` is optional; without it request events
go through whatever structlog configuration the application already has.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

from reqlog.config import get_settings

_LEVELS: dict[str, int] = {
    "": logging.INFO,
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
    "panic": logging.CRITICAL,
}


def parse_level(name: str) -> int:
    """Map a level name (case-insensitive) to a :mod:`logging` level.

    Raises:
        ValueError: If *name* is not a known level.
    """
    try:
        return _LEVELS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown log level: {name!r}") from None


def _rename_level(key: str) -> Any:
    def processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        if "level" in event_dict and key != "level":
            event_dict[key] = event_dict.pop("level")
        return event_dict

    return processor


def configure_logging(
    level: str | None = None,
    *,
    pretty: bool | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog for request logging.

    Args:
        level: Minimum level name; defaults to ``settings.log_level``.
        pretty: Console output instead of JSON; defaults to
            ``settings.log_pretty``.
        stream: Destination; defaults to ``sys.stdout``.

    Raises:
        ValueError: If *level* is not a known level name.
    """
    settings = get_settings()
    min_level = parse_level(settings.log_level if level is None else level)
    if pretty is None:
        pretty = settings.log_pretty

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if pretty:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [
            _rename_level(settings.level_key),
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=False,
    )
