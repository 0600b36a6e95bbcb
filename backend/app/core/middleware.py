"""
Request middleware — correlation IDs, timing and one access-log line.

For every HTTP request:
    • X-Request-ID is taken from the caller (sanitised) or generated, and
      echoed on the response
    • X-Process-Time is added to the response
    • the request context is set for the lifetime of the call so log lines
      from storage, matcher and dispatcher carry the same request_id

WebSocket traffic bypasses this middleware.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.app.core.logging_config import set_request_context

logger = logging.getLogger(__name__)

# Docs and probes are logged at DEBUG
_QUIET_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health")

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _request_id(request: Request) -> str:
    supplied = request.headers.get("X-Request-ID", "")
    if _REQUEST_ID_RE.match(supplied):
        return supplied
    return uuid.uuid4().hex[:16]


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _level_for(path: str, status_code: int) -> int:
    if path.startswith(_QUIET_PREFIXES):
        return logging.DEBUG
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = _request_id(request)
        client_ip = _client_ip(request)
        path = request.url.path

        set_request_context(
            request_id=request_id,
            client_ip=client_ip,
            endpoint=path,
            method=request.method,
        )
        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{(time.perf_counter() - start) * 1000:.1f}ms"
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.log(
                _level_for(path, status_code),
                "%s %s → %d (%.1fms) [%s]",
                request.method, path, status_code, duration_ms, client_ip,
                extra={"duration_ms": duration_ms, "status_code": status_code},
            )
            set_request_context()
