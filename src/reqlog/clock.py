"""
Cached wall-clock timestamp for the ``time`` tag.

:class:`TimestampCache` formats the current time once, then a single
background thread refreshes the string at a bounded interval. The
refresh swaps one ``str`` reference; readers always see a complete value.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, tzinfo

import structlog

from reqlog.config import RFC3339

logger = structlog.get_logger(__name__)


def format_timestamp(now: datetime, time_format: str) -> str:
    """Render *now* with *time_format* (a ``strftime`` pattern or :data:`RFC3339`)."""
    if time_format == RFC3339:
        return now.isoformat(timespec="seconds")
    return now.strftime(time_format)


class TimestampCache:
    """Periodically refreshed, formatted current time.

    Args:
        time_format: ``strftime`` pattern or :data:`RFC3339`.
        tz: Zone to render in; ``None`` renders local time.
        interval: Delay between refreshes.
    """

    def __init__(
        self,
        time_format: str,
        tz: tzinfo | None,
        interval: timedelta,
    ) -> None:
        self._time_format = time_format
        self._tz = tz
        self._interval = interval.total_seconds()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        # Computed synchronously so the first request has a value.
        self._value: str = self._render()

    @property
    def value(self) -> str:
        """The latest formatted timestamp."""
        return self._value

    @property
    def running(self) -> bool:
        """``True`` while the refresh thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def _render(self) -> str:
        if self._tz is None:
            now = datetime.now().astimezone()
        else:
            now = datetime.now(self._tz)
        return format_timestamp(now, self._time_format)

    def refresh(self) -> None:
        """Recompute and store the timestamp."""
        self._value = self._render()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self.refresh()

    def start(self) -> None:
        """Spawn the refresh thread. Calling it again is a no-op."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run,
            name="reqlog-timestamp",
            daemon=True,
        )
        self._thread.start()
        logger.debug("timestamp_refresh_started", interval_s=self._interval)

    def stop(self, timeout: float | None = None) -> None:
        """Signal the refresh thread to exit and wait up to *timeout* seconds."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
