# fleetcheck/middleware/request_logging.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("fleetcheck.request")

QUIET_PREFIXES: Tuple[str, ...] = (
    "/api/healthz",
    "/api/readyz",
    "/docs",
    "/redoc",
    "/openapi.json",
)


def _level_for(status: int, duration_ms: int, slow_ms: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400 or duration_ms >= slow_ms:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request: method, path, status, duration, trace_id.
    Requests slower than SLOW_REQUEST_MS (default 1000) are logged at WARNING.
    The trace id is stored on request.state for the error handlers and echoed
    back as X-Request-ID.
    """

    def __init__(self, app, quiet_prefixes: Iterable[str] = QUIET_PREFIXES):
        super().__init__(app)
        self.quiet_prefixes = tuple(quiet_prefixes)
        self.slow_ms = int(os.getenv("SLOW_REQUEST_MS", "1000"))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        method = request.method.upper()
        trace_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.trace_id = trace_id

        quiet = method == "OPTIONS" or path.startswith(self.quiet_prefixes)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            if not quiet:
                logger.exception(
                    "request CRASH %s %s dur_ms=%s trace_id=%s",
                    method,
                    path,
                    int((time.perf_counter() - start) * 1000),
                    trace_id,
                )
            raise

        response.headers["X-Request-ID"] = trace_id
        if quiet:
            return response

        duration_ms = int((time.perf_counter() - start) * 1000)
        status = response.status_code
        logger.log(
            _level_for(status, duration_ms, self.slow_ms),
            "request %s %s -> %s dur_ms=%s trace_id=%s",
            method,
            path,
            status,
            duration_ms,
            trace_id,
        )
        return response
