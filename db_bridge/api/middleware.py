"""API layer — Request middleware.

- Request ID injection (X-Request-ID header)
- Structured access logging
- Global exception handler → clean ErrorResponse
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from db_bridge.api.schemas import ErrorResponse
from db_bridge.exceptions import (
    BackendError,
    BridgeError,
    DuplicateNameError,
    NotFoundError,
    NotSupportedError,
    ToolNotFoundError,
    ValidationError,
)
from db_bridge.logging import bind_request_id, get_logger, reset_request_id

log = get_logger(__name__)

# Checked in order; the first matching class wins.
_STATUS_BY_ERROR: list[tuple[type[BridgeError], int]] = [
    (ValidationError, 422),
    (NotSupportedError, 400),
    (DuplicateNameError, 409),
    (NotFoundError, 404),
    (ToolNotFoundError, 404),
    (BackendError, 502),
]

# Registered one by one with the app.
HANDLED_ERRORS: tuple[type[BridgeError], ...] = (
    BridgeError,
    *(error_class for error_class, _ in _STATUS_BY_ERROR),
)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a unique X-Request-ID to every request and response.

    The id is also bound to the logging context so every record emitted
    while the request is served carries it.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id

        token = bind_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers["X-Request-ID"] = request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log each request with timing information."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = round((time.time() - start) * 1000, 2)

        log.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration_ms,
            request_id=getattr(request.state, "request_id", None),
        )
        return response


def status_for(exc: BridgeError) -> int:
    for error_class, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return status_code
    return 500


def build_error_handler() -> Any:
    """Return a FastAPI exception handler for BridgeError subclasses."""

    async def handler(request: Request, exc: BridgeError) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        body = ErrorResponse(
            error=exc.message,
            code=exc.code,
            detail=exc.context or None,
            request_id=request_id,
        )
        return JSONResponse(status_code=status_for(exc), content=body.model_dump())

    return handler
