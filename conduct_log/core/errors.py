# conduct_log/core/errors.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

log = logging.getLogger("conduct_log.errors")


# -----------------------------
# Domain errors (raised by crud/services, converted at the HTTP boundary)
# -----------------------------
class DomainError(Exception):
    status_code: int = 400
    typ: str = "domain_error"

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailed(DomainError):
    """Input passed schema checks but violates a business constraint."""

    status_code = 400
    typ = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(
            message,
            details=[{"loc": ["body", field], "msg": message, "type": "value_error"}],
        )
        self.field = field


class NotFoundError(DomainError):
    status_code = 404
    typ = "not_found"


class IdentityError(DomainError):
    status_code = 401
    typ = "identity_error"


class IllegalTransitionError(DomainError):
    status_code = 400
    typ = "illegal_transition"

    def __init__(self, from_status: str, to_status: str, allowed: List[str]) -> None:
        super().__init__(
            f"Cannot change status from '{from_status}' to '{to_status}'",
            details={"fromStatus": from_status, "toStatus": to_status, "allowed": allowed},
        )
        self.from_status = from_status
        self.to_status = to_status


class ConflictError(DomainError):
    status_code = 409
    typ = "conflict"


# -----------------------------
# Trace / request id helpers
# -----------------------------
def _ensure_trace_id(request: Request) -> str:
    """
    Return a stable trace_id for this request.
    Prefer a value already set on request.state, then common headers,
    and finally generate a new one (and store it on request.state).
    """
    val = getattr(request.state, "trace_id", None)
    if val:
        return str(val)

    for h in ("x-request-id", "x-correlation-id", "x-trace-id"):
        v = request.headers.get(h)
        if v:
            request.state.trace_id = v
            return v

    new_id = uuid.uuid4().hex
    request.state.trace_id = new_id
    return new_id


def _payload(
    *,
    message: str,
    typ: str,
    status: int,
    trace_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "ok": False,
        "error": {
            "type": typ,
            "message": message,
            "status": status,
            "trace_id": trace_id,
        },
    }
    if details is not None:
        body["error"]["details"] = jsonable_encoder(details)
    return body


# -----------------------------
# Install / register handlers
# -----------------------------
def register_exception_handlers(app: FastAPI) -> None:
    """
    Registers consistent JSON error handlers.
    Also ensures X-Request-ID header is present on error responses.
    """

    @app.exception_handler(DomainError)
    async def domain_exc_handler(request: Request, exc: DomainError):
        trace_id = _ensure_trace_id(request)
        log.warning(
            "%s %s %s -> %s | trace_id=%s | %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.status_code,
            trace_id,
            exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            headers={"X-Request-ID": trace_id},
            content=_payload(
                message=exc.message,
                typ=exc.typ,
                status=exc.status_code,
                trace_id=trace_id,
                details=exc.details,
            ),
        )

    @app.exception_handler(HTTPException)
    async def http_exc_handler(request: Request, exc: HTTPException):
        trace_id = _ensure_trace_id(request)
        status_code = int(exc.status_code)
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        details = exc.detail if isinstance(exc.detail, dict) else None

        headers = dict(exc.headers or {})
        headers["X-Request-ID"] = trace_id

        level = logging.ERROR if status_code >= 500 else logging.WARNING
        log.log(
            level,
            "HTTPException %s %s -> %s | trace_id=%s | detail=%r",
            request.method,
            request.url.path,
            status_code,
            trace_id,
            exc.detail,
        )

        return JSONResponse(
            status_code=status_code,
            headers=headers,
            content=_payload(
                message=message,
                typ="not_found" if status_code == 404 else "http_error",
                status=status_code,
                trace_id=trace_id,
                details=details,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        trace_id = _ensure_trace_id(request)
        errors = exc.errors()
        log.warning(
            "ValidationError %s %s -> 400 | trace_id=%s | errors=%s",
            request.method,
            request.url.path,
            trace_id,
            errors,
        )
        return JSONResponse(
            status_code=400,
            headers={"X-Request-ID": trace_id},
            content=_payload(
                message="Validation failed.",
                typ="validation_error",
                status=400,
                trace_id=trace_id,
                details=errors,
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        trace_id = _ensure_trace_id(request)
        # Full traceback to server logs; generic message to client
        log.exception(
            "Unhandled exception %s %s -> 500 | trace_id=%s",
            request.method,
            request.url.path,
            trace_id,
        )
        return JSONResponse(
            status_code=500,
            headers={"X-Request-ID": trace_id},
            content=_payload(
                message="Internal server error.",
                typ="internal_error",
                status=500,
                trace_id=trace_id,
            ),
        )
