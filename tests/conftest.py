"""Shared pytest fixtures for reqlog tests.

Provides a capturing structlog sink, a framework-free fake exchange for
engine and resolver tests, and the minimal Django settings the Django
integration tests run under.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import django
import pytest
from django.conf import settings
from structlog.testing import CapturingLogger

# Makes ``django_urls`` importable as ROOT_URLCONF.
sys.path.append(str(Path(__file__).resolve().parent))

if not settings.configured:
    settings.configure(
        DEBUG=False,
        SECRET_KEY="reqlog-tests",
        ALLOWED_HOSTS=["testserver", "localhost"],
        ROOT_URLCONF="django_urls",
        MIDDLEWARE=["reqlog.integrations.django.RequestLoggingMiddleware"],
        INSTALLED_APPS=[],
        TEMPLATES=[],
        USE_TZ=True,
    )
    django.setup()

from reqlog.event import reset_default_logger  # noqa: E402
from reqlog.exchange import join_url  # noqa: E402


@dataclass
class FakeExchange:
    """In-memory ``HTTPExchange`` with every value set explicitly."""

    method: str = "GET"
    path: str = "/"
    query_string: str = ""
    ip: str = "10.0.0.1"
    host: str = "example.com"
    protocol: str = "HTTP/1.1"
    route: str = "/"
    request_body: bytes = b""
    bytes_received: int = 0
    status: int = 200
    response_body: bytes = b""
    bytes_sent: int = 0
    headers: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, str] = field(default_factory=dict)
    form_values: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    locals: dict[str, Any] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return join_url(self.path, self.query_string)

    def header(self, name: str) -> str:
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return ""

    def query(self, name: str) -> str:
        return self.query_params.get(name, "")

    def form(self, name: str) -> str:
        return self.form_values.get(name, "")

    def cookie(self, name: str) -> str:
        return self.cookies.get(name, "")

    def local(self, name: str) -> Any:
        return self.locals.get(name)


@pytest.fixture()
def sink() -> CapturingLogger:
    """A structlog logger that records every call."""
    return CapturingLogger()


@pytest.fixture()
def exchange() -> FakeExchange:
    return FakeExchange()


@pytest.fixture(autouse=True)
def _restore_default_logger():
    yield
    reset_default_logger()
