"""
Framework-neutral view of a finished request/response pair.

Each integration wraps its framework's objects in a class satisfying
:class:`HTTPExchange`; the tag resolver only ever talks to this protocol.
Every accessor is read-only and must not raise: absent data is ``""``,
``b""`` or ``0`` (``None`` for :meth:`HTTPExchange.local`).
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class HTTPExchange(Protocol):
    """Accessors the tag resolver needs from a host framework."""

    @property
    def method(self) -> str: ...

    @property
    def path(self) -> str: ...

    @property
    def url(self) -> str:
        """Path plus ``?`` and the raw query string, if any."""
        ...

    @property
    def query_string(self) -> str:
        """Raw query string, undecoded and in original order."""
        ...

    @property
    def ip(self) -> str: ...

    @property
    def host(self) -> str: ...

    @property
    def protocol(self) -> str:
        """Protocol version, e.g. ``HTTP/1.1``."""
        ...

    @property
    def route(self) -> str:
        """Pattern of the matched route, ``""`` when nothing matched."""
        ...

    @property
    def request_body(self) -> bytes: ...

    @property
    def bytes_received(self) -> int: ...

    @property
    def status(self) -> int: ...

    @property
    def response_body(self) -> bytes: ...

    @property
    def bytes_sent(self) -> int: ...

    def header(self, name: str) -> str: ...

    def query(self, name: str) -> str: ...

    def form(self, name: str) -> str: ...

    def cookie(self, name: str) -> str: ...

    def local(self, name: str) -> Any:
        """Handler-set per-request value, ``None`` when unset."""
        ...


def parse_content_length(value: str | None) -> int:
    """Lenient ``Content-Length`` parse: missing or invalid values are ``0``."""
    if not value:
        return 0
    try:
        length = int(value.strip())
    except ValueError:
        return 0
    return max(length, 0)


def join_url(path: str, query_string: str) -> str:
    if query_string:
        return f"{path}?{query_string}"
    return path
