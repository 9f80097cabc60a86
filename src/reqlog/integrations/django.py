"""
Structured request-logging middleware for Django.

Add ``"reqlog.integrations.django.RequestLoggingMiddleware"`` to
``MIDDLEWARE`` and configure it through ``settings.REQLOG``, a dict with the
:class:`~reqlog.config.LoggerConfig` fields. ``skip`` may be a callable or a
dotted import path.

Views store values for ``locals:<name>`` tags on ``request.state``, a
namespace the middleware attaches before calling the view.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import structlog
from django.conf import settings
from django.core.exceptions import DisallowedHost, RequestDataTooBig
from django.http import HttpRequest, HttpResponseBase
from django.http.multipartparser import MultiPartParserError
from django.http.request import RawPostDataException
from django.utils.module_loading import import_string

from reqlog.config import LoggerConfig
from reqlog.engine import RequestLogger
from reqlog.exchange import parse_content_length
from reqlog.tags import HEADER_CONTENT_LENGTH

logger = structlog.get_logger(__name__)

ERROR_ATTR = "_reqlog_error"

_BODY_ERRORS = (RawPostDataException, RequestDataTooBig)
_FORM_ERRORS = (MultiPartParserError, RawPostDataException, RequestDataTooBig)


def load_config(options: Any = None) -> LoggerConfig:
    """Build a :class:`LoggerConfig` from the ``REQLOG`` setting.

    Args:
        options: A ``LoggerConfig``, a dict of its fields, or ``None`` to
            read ``settings.REQLOG``.
    """
    if options is None:
        options = getattr(settings, "REQLOG", None)
    if options is None:
        return LoggerConfig()
    if isinstance(options, LoggerConfig):
        return options
    options = dict(options)
    if isinstance(options.get("skip"), str):
        options["skip"] = import_string(options["skip"])
    return LoggerConfig(**options)


class DjangoExchange:
    """:class:`~reqlog.exchange.HTTPExchange` over a Django request/response."""

    def __init__(self, request: HttpRequest, response: HttpResponseBase) -> None:
        self._request = request
        self._response = response

    @property
    def method(self) -> str:
        return self._request.method or ""

    @property
    def path(self) -> str:
        return self._request.path

    @property
    def query_string(self) -> str:
        return self._request.META.get("QUERY_STRING", "")

    @property
    def url(self) -> str:
        return self._request.get_full_path()

    @property
    def ip(self) -> str:
        return self._request.META.get("REMOTE_ADDR", "")

    @property
    def host(self) -> str:
        try:
            return self._request.get_host()
        except DisallowedHost:
            return self._request.META.get("HTTP_HOST", "")

    @property
    def protocol(self) -> str:
        return self._request.META.get("SERVER_PROTOCOL", "")

    @property
    def route(self) -> str:
        match = getattr(self._request, "resolver_match", None)
        if match is None:
            return ""
        return match.route or ""

    @property
    def request_body(self) -> bytes:
        try:
            return self._request.body
        except _BODY_ERRORS:
            return b""

    @property
    def bytes_received(self) -> int:
        # Body length when Django can still hand it out, else Content-Length.
        try:
            return len(self._request.body)
        except _BODY_ERRORS:
            return parse_content_length(self._request.META.get("CONTENT_LENGTH"))

    @property
    def status(self) -> int:
        return self._response.status_code

    @property
    def response_body(self) -> bytes:
        if self._response.streaming:
            return b""
        return self._response.content

    @property
    def bytes_sent(self) -> int:
        if self._response.streaming:
            return parse_content_length(self._response.get(HEADER_CONTENT_LENGTH))
        return len(self._response.content)

    def header(self, name: str) -> str:
        return self._request.headers.get(name, "")

    def query(self, name: str) -> str:
        return self._request.GET.get(name, "")

    def form(self, name: str) -> str:
        try:
            return self._request.POST.get(name, "")
        except _FORM_ERRORS:
            return ""

    def cookie(self, name: str) -> str:
        return self._request.COOKIES.get(name, "")

    def local(self, name: str) -> Any:
        state = getattr(self._request, "state", None)
        return getattr(state, name, None)


class RequestLoggingMiddleware:
    """
    Django middleware that emits one structured log event per HTTP request.

    Exceptions raised by the view are recorded through
    :meth:`process_exception` and left to Django, which converts them to
    the response (500, 404, ...) this middleware then logs.
    """

    sync_capable = True
    async_capable = False

    def __init__(self, get_response):
        self.get_response = get_response
        self.request_logger = RequestLogger(load_config())

    def close(self) -> None:
        """Stop the background timestamp refresh."""
        self.request_logger.close()

    def __call__(self, request):
        engine = self.request_logger
        if engine.should_skip(request):
            return self.get_response(request)

        if not hasattr(request, "state"):
            request.state = SimpleNamespace()

        start = engine.start_timer()
        response = self.get_response(request)
        latency_ns = engine.elapsed(start)

        engine.log(
            DjangoExchange(request, response),
            error=getattr(request, ERROR_ATTR, None),
            latency_ns=latency_ns,
        )
        return response

    def process_exception(self, request, exception):
        setattr(request, ERROR_ATTR, exception)
        return None
