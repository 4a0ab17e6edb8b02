# conduct_log/middleware/request_logging.py
from __future__ import annotations

import logging
import time
import uuid
from typing import Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from conduct_log.services.audit import ip_from_request

logger = logging.getLogger("conduct_log.request")


QUIET_PREFIXES: Tuple[str, ...] = (
    "/api/healthz",
    "/api/readyz",
    "/docs",
    "/redoc",
    "/openapi.json",
)


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request (method, path, status, acting user, duration)
    under a trace id that error handlers and audit rows reuse.
    X-Request-ID is echoed on every response.
    """

    def __init__(self, app, quiet_prefixes: Iterable[str] = QUIET_PREFIXES):
        super().__init__(app)
        self.quiet_prefixes = tuple(quiet_prefixes)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        method = request.method.upper()

        trace_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.trace_id = trace_id

        quiet = method == "OPTIONS" or path.startswith(self.quiet_prefixes)
        user = request.headers.get("x-user-id", "-")

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request CRASH %s %s user=%s dur_ms=%s trace_id=%s",
                method,
                path,
                user,
                int((time.perf_counter() - start) * 1000),
                trace_id,
            )
            raise

        response.headers["X-Request-ID"] = trace_id
        if quiet:
            return response

        status = response.status_code
        logger.log(
            _level_for(status),
            "request %s %s -> %s ip=%s user=%s dur_ms=%s trace_id=%s",
            method,
            path,
            status,
            ip_from_request(request) or "-",
            user,
            int((time.perf_counter() - start) * 1000),
            trace_id,
        )
        return response
