"""
reqlog: tag-driven structured request logging for Starlette and Django.

Provides the shared logging engine (configuration resolution, cached
timestamps, tag resolution and status-based severity) plus thin middleware
integrations for each supported web framework.
"""

from reqlog.config import LoggerConfig, Settings, get_settings, resolve_config
from reqlog.engine import RequestLogger
from reqlog.event import LogEvent, get_default_logger, set_default_logger
from reqlog.logging import configure_logging
from reqlog.severity import Severity, classify_status

__all__ = [
    "LoggerConfig",
    "LogEvent",
    "RequestLogger",
    "Settings",
    "Severity",
    "classify_status",
    "configure_logging",
    "get_default_logger",
    "get_settings",
    "resolve_config",
    "set_default_logger",
]
