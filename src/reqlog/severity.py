"""
Status-code to log-severity mapping.

Only an exact ``200`` is ``info``. Other 2xx and every 1xx/3xx response is
``debug``; client errors are ``warn`` and server errors ``error``.
"""

from __future__ import annotations

import enum
from http import HTTPStatus


class Severity(str, enum.Enum):
    """Log severity of a request event."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def method_name(self) -> str:
        """Name of the logger method emitting at this severity."""
        if self is Severity.WARN:
            return "warning"
        return self.value


def classify_status(status: int) -> Severity:
    """Return the severity for a final response *status*."""
    if status == HTTPStatus.OK:
        return Severity.INFO
    if HTTPStatus.BAD_REQUEST <= status < HTTPStatus.INTERNAL_SERVER_ERROR:
        return Severity.WARN
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        return Severity.ERROR
    return Severity.DEBUG


def status_message(status: int) -> str:
    """Standard reason phrase for *status*, or ``""`` for unregistered codes."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""
