"""
Request logging middleware for Starlette and FastAPI.

Logs every HTTP request as one structured event built from the configured
tags. Usage::

    app.add_middleware(
        RequestLoggingMiddleware,
        config=LoggerConfig(format=("status", "method", "path", "latency")),
    )

Keyword options are accepted in place of ``config``.

Unhandled exceptions from the downstream app are turned into a response by
the application's server-error handler (``exception_handlers[500]`` or
``[Exception]``), or a plain ``500 Internal Server Error`` when there is
none, and then logged under the ``error`` tag. The exception does not
propagate further.

Handler-set values for ``locals:<name>`` tags come from ``request.state``.

When the format needs the response body (``resBody``, ``bytesSent``) the
body is observed as it streams to the client and the event is logged after
the last chunk.
"""

from __future__ import annotations

import inspect
import threading
from collections.abc import AsyncIterator
from typing import Any

import structlog
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp

from reqlog.config import LoggerConfig
from reqlog.engine import RequestLogger
from reqlog.exchange import join_url, parse_content_length
from reqlog.tags import HEADER_CONTENT_LENGTH, TAG_RES_BODY

logger = structlog.get_logger(__name__)

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class StarletteExchange:
    """:class:`~reqlog.exchange.HTTPExchange` over a Starlette request/response.

    The request body and form values must be read by the middleware
    beforehand, since reading them is asynchronous. Response body chunks are
    recorded through :meth:`observe_chunk` as they stream to the client.
    """

    def __init__(
        self,
        request: Request,
        response: Response,
        *,
        request_body: bytes = b"",
        response_body: bytes | None = None,
        form: dict[str, str] | None = None,
    ) -> None:
        self._request = request
        self._response = response
        self._request_body = request_body
        self._form = form or {}
        self._chunks: list[bytes] = []
        self._bytes_sent: int | None = None
        if response_body is not None:
            self.observe_chunk(response_body)

    def observe_chunk(self, chunk: bytes, *, keep: bool = True) -> None:
        """Account for a response body chunk on its way to the client."""
        self._bytes_sent = (self._bytes_sent or 0) + len(chunk)
        if keep:
            self._chunks.append(chunk)

    @property
    def method(self) -> str:
        return self._request.method

    @property
    def path(self) -> str:
        return self._request.url.path

    @property
    def query_string(self) -> str:
        return self._request.scope.get("query_string", b"").decode("latin-1")

    @property
    def url(self) -> str:
        return join_url(self.path, self.query_string)

    @property
    def ip(self) -> str:
        client = self._request.client
        return client.host if client else ""

    @property
    def host(self) -> str:
        return self._request.headers.get("host", "")

    @property
    def protocol(self) -> str:
        return "HTTP/" + self._request.scope.get("http_version", "1.1")

    @property
    def route(self) -> str:
        route = self._request.scope.get("route")
        return getattr(route, "path", "") or ""

    @property
    def request_body(self) -> bytes:
        return self._request_body

    @property
    def bytes_received(self) -> int:
        return parse_content_length(self._request.headers.get(HEADER_CONTENT_LENGTH))

    @property
    def status(self) -> int:
        return self._response.status_code

    @property
    def response_body(self) -> bytes:
        return b"".join(self._chunks)

    @property
    def bytes_sent(self) -> int:
        if self._bytes_sent is not None:
            return self._bytes_sent
        return parse_content_length(self._response.headers.get(HEADER_CONTENT_LENGTH))

    def header(self, name: str) -> str:
        return self._request.headers.get(name, "")

    def query(self, name: str) -> str:
        return self._request.query_params.get(name, "")

    def form(self, name: str) -> str:
        return self._form.get(name, "")

    def cookie(self, name: str) -> str:
        return self._request.cookies.get(name, "")

    def local(self, name: str) -> Any:
        return self._request.scope.get("state", {}).get(name)


async def log_after_body(
    iterator: AsyncIterator[bytes | str],
    exchange: StarletteExchange,
    engine: RequestLogger,
    *,
    error: Exception | None = None,
    latency_ns: int | None = None,
    keep_body: bool = True,
    charset: str = "utf-8",
) -> AsyncIterator[bytes]:
    """Pass *iterator* through, recording each chunk on *exchange*.

    Chunks are yielded as they arrive. The event is logged when iteration
    stops for any reason, including a client disconnect.
    """
    try:
        async for chunk in iterator:
            if not isinstance(chunk, bytes):
                chunk = chunk.encode(charset)
            exchange.observe_chunk(chunk, keep=keep_body)
            yield chunk
    except Exception as exc:
        error = error or exc
        raise
    finally:
        engine.log(exchange, error=error, latency_ns=latency_ns)


async def read_form(request: Request) -> dict[str, str]:
    """Parse form fields of *request*; ``{}`` for non-form bodies or parse errors.

    Uploaded files are represented by their file name.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(_FORM_CONTENT_TYPES):
        return {}
    try:
        form = await request.form()
    except Exception:
        logger.warning("form_parse_failed", path=request.url.path, exc_info=True)
        return {}
    try:
        values: dict[str, str] = {}
        for key, value in form.multi_items():
            if key in values:
                continue
            values[key] = value if isinstance(value, str) else (value.filename or "")
        return values
    finally:
        await form.close()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one structured log event per HTTP request.

    Args:
        app: The downstream ASGI app.
        config: Options; ``None`` builds them from ``**options``.
        **options: :class:`~reqlog.config.LoggerConfig` fields.
    """

    def __init__(
        self,
        app: ASGIApp,
        config: LoggerConfig | None = None,
        **options: Any,
    ) -> None:
        super().__init__(app)
        if config is None:
            config = LoggerConfig(**options)
        self.request_logger = RequestLogger(config)
        self._error_handler: Any = None
        self._error_handler_loaded = False
        self._error_handler_lock = threading.Lock()

    def close(self) -> None:
        """Stop the background timestamp refresh."""
        self.request_logger.close()

    def _server_error_handler(self, request: Request) -> Any:
        # Looked up once per middleware instance.
        if not self._error_handler_loaded:
            with self._error_handler_lock:
                if not self._error_handler_loaded:
                    handlers = getattr(request.scope.get("app"), "exception_handlers", None) or {}
                    self._error_handler = handlers.get(500) or handlers.get(Exception)
                    self._error_handler_loaded = True
        return self._error_handler

    async def handle_error(self, request: Request, exc: Exception) -> Response:
        """Build the response for an exception raised downstream."""
        handler = self._server_error_handler(request)
        if handler is not None:
            try:
                if inspect.iscoroutinefunction(handler):
                    return await handler(request, exc)
                return await run_in_threadpool(handler, request, exc)
            except Exception:
                logger.exception("error_handler_failed", path=request.url.path)
        return PlainTextResponse("Internal Server Error", status_code=500)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        engine = self.request_logger
        if engine.should_skip(request):
            return await call_next(request)

        cfg = engine.config
        request_body = b""
        if cfg.needs_request_body or cfg.needs_form:
            # Cached on the request and replayed to the downstream app.
            request_body = await request.body()

        start = engine.start_timer()
        error: Exception | None = None
        try:
            response = await call_next(request)
        except Exception as exc:
            error = exc
            response = await self.handle_error(request, exc)

        latency_ns = engine.elapsed(start)

        form = await read_form(request) if cfg.needs_form else None
        exchange = StarletteExchange(request, response, request_body=request_body, form=form)
        iterator = getattr(response, "body_iterator", None)
        if cfg.needs_response_body and iterator is not None:
            response.body_iterator = log_after_body(
                iterator,
                exchange,
                engine,
                error=error,
                latency_ns=latency_ns,
                keep_body=TAG_RES_BODY in cfg.format,
                charset=response.charset,
            )
            return response
        if cfg.needs_response_body:
            exchange.observe_chunk(bytes(getattr(response, "body", b"")))
        engine.log(exchange, error=error, latency_ns=latency_ns)
        return response
