"""
Configuration management for reqlog.

Two layers live here:

* :class:`Settings`: process-level knobs (log level, renderer) loaded by
  pydantic-settings from ``REQLOG_``-prefixed environment variables and
  ``.env`` files. Used by :func:`reqlog.logging.configure_logging`.
* :class:`LoggerConfig`: the per-middleware options supplied by the
  application, and :func:`resolve_config`, which turns them into the
  immutable :class:`ResolvedConfig` every middleware instance runs on.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta, tzinfo
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reqlog.tags import (
    DEFAULT_FORMAT,
    TAG_BODY,
    TAG_BYTES_SENT,
    TAG_FORM,
    TAG_LATENCY,
    TAG_RES_BODY,
    TAG_TIME,
)

logger = structlog.get_logger(__name__)

# Sentinel time format: ISO 8601 / RFC 3339 with numeric offset, second precision.
RFC3339 = "rfc3339"

# Sentinel time zone: the process's local zone.
LOCAL_TIME_ZONE = "Local"

MIN_TIME_REFRESH_INTERVAL = timedelta(milliseconds=500)


class Settings(BaseSettings):
    """Process-wide logging settings loaded from ``REQLOG_``-prefixed env vars.

    Attributes:
        log_level: Minimum level emitted by the configured structlog pipeline.
        log_pretty: Render human-friendly console output instead of JSON.
        level_key: Key the log level is written under in JSON output.
    """

    model_config = SettingsConfigDict(
        env_prefix="REQLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Logging level.")
    log_pretty: bool = Field(default=False, description="Console renderer instead of JSON.")
    # GCP Cloud Logging reads the level from "severity".
    level_key: str = Field(default="severity", description="JSON key for the log level.")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings singleton."""
    return Settings()


class LoggerConfig(BaseModel):
    """Options for one request-logging middleware instance.

    Every field is optional; empty values fall back to the defaults.

    Attributes:
        skip: Predicate over the framework request; ``True`` bypasses logging.
        format: Ordered tags, one emitted field per tag.
        time_format: ``strftime`` pattern for the ``time`` tag, or
            :data:`RFC3339`.
        time_zone: IANA zone name for the ``time`` tag, or ``"Local"``.
        time_refresh_interval: How often the cached timestamp is refreshed.
            Clamped up to 500 ms.
        pretty_latency: Emit latency as duration text (``"1.2ms"``) instead
            of float milliseconds.
        output_sink: structlog-compatible logger receiving the events.
            ``None`` uses the process default (see :mod:`reqlog.event`).
    """

    model_config = {"frozen": True}

    skip: Callable[[Any], bool] | None = None
    format: tuple[str, ...] = DEFAULT_FORMAT
    time_format: str = RFC3339
    time_zone: str = LOCAL_TIME_ZONE
    time_refresh_interval: timedelta = MIN_TIME_REFRESH_INTERVAL
    pretty_latency: bool = False
    output_sink: Any = None

    @field_validator("format")
    @classmethod
    def _default_format(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return value or DEFAULT_FORMAT

    @field_validator("time_format")
    @classmethod
    def _default_time_format(cls, value: str) -> str:
        return value or RFC3339

    @field_validator("time_zone")
    @classmethod
    def _default_time_zone(cls, value: str) -> str:
        return value or LOCAL_TIME_ZONE

    @field_validator("time_refresh_interval")
    @classmethod
    def _clamp_interval(cls, value: timedelta) -> timedelta:
        return max(value, MIN_TIME_REFRESH_INTERVAL)


@dataclass(frozen=True)
class ResolvedConfig:
    """Fully populated configuration plus the flags derived from ``format``.

    ``tz`` is ``None`` when timestamps use the local zone.
    """

    skip: Callable[[Any], bool] | None
    format: tuple[str, ...]
    time_format: str
    time_zone: str
    tz: tzinfo | None
    time_refresh_interval: timedelta
    pretty_latency: bool
    output_sink: Any
    latency_enabled: bool
    time_enabled: bool
    needs_request_body: bool
    needs_response_body: bool
    needs_form: bool


def load_time_zone(name: str) -> tzinfo | None:
    """Resolve *name* to a zone, or ``None`` (local time) if it cannot be loaded.

    Never raises; an unknown zone is logged at debug level.
    """
    if not name or name == LOCAL_TIME_ZONE:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.debug("time_zone_fallback", time_zone=name)
        return None


def resolve_config(config: LoggerConfig | None = None) -> ResolvedConfig:
    """Merge *config* with the defaults and derive the per-format flags.

    Args:
        config: User options; ``None`` means all defaults.

    Returns:
        The immutable configuration for one middleware instance.
    """
    if config is None:
        config = LoggerConfig()

    tags = config.format
    return ResolvedConfig(
        skip=config.skip,
        format=tags,
        time_format=config.time_format,
        time_zone=config.time_zone,
        tz=load_time_zone(config.time_zone),
        time_refresh_interval=config.time_refresh_interval,
        pretty_latency=config.pretty_latency,
        output_sink=config.output_sink,
        latency_enabled=TAG_LATENCY in tags,
        time_enabled=TAG_TIME in tags,
        needs_request_body=TAG_BODY in tags,
        needs_response_body=TAG_RES_BODY in tags or TAG_BYTES_SENT in tags,
        needs_form=any(tag.startswith(TAG_FORM) for tag in tags),
    )
