"""
Tag vocabulary for reqlog.

A *tag* selects one field of the request log event. Literal tags map to a
fixed attribute of the exchange; prefixed tags (``header:X-Request-Id``)
carry a parameter and emit under that parameter's name.
"""

from __future__ import annotations

TAG_PID = "pid"
TAG_TIME = "time"
TAG_REFERER = "referer"
TAG_PROTOCOL = "protocol"
TAG_ID = "id"
TAG_IP = "ip"
TAG_IPS = "ips"
TAG_HOST = "host"
TAG_METHOD = "method"
TAG_PATH = "path"
TAG_URL = "url"
TAG_UA = "ua"
TAG_LATENCY = "latency"
TAG_STATUS = "status"
TAG_RES_BODY = "resBody"
TAG_QUERY_STRING_PARAMS = "queryParams"
TAG_BODY = "body"
TAG_BYTES_SENT = "bytesSent"
TAG_BYTES_RECEIVED = "bytesReceived"
TAG_ROUTE = "route"
TAG_ERROR = "error"

TAG_HEADER = "header:"
TAG_QUERY = "query:"
TAG_FORM = "form:"
TAG_COOKIE = "cookie:"
TAG_LOCALS = "locals:"

# Checked in this order; the first matching prefix wins.
PREFIXES: tuple[str, ...] = (TAG_HEADER, TAG_QUERY, TAG_FORM, TAG_COOKIE, TAG_LOCALS)

DEFAULT_FORMAT: tuple[str, ...] = (TAG_TIME, TAG_STATUS, TAG_LATENCY, TAG_METHOD, TAG_PATH)

HEADER_REFERER = "Referer"
HEADER_REQUEST_ID = "X-Request-ID"
HEADER_FORWARDED_FOR = "X-Forwarded-For"
HEADER_USER_AGENT = "User-Agent"
HEADER_CONTENT_LENGTH = "Content-Length"
