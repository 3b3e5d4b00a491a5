"""Global exception handlers for consistent error responses.

Domain errors map to HTTP status codes by type:
- ValidationAppError → 400 (bad input, with a reason code)
- IdentityTakenAppError → 409 (identity in use or locked)
- StoreUnavailableAppError → 503 (backing store or feature unavailable)
- anything else → generic 500 (safety net, no internals leaked)

Framework errors use the same body: ``HTTPException`` keeps its status and
headers (429 becomes ``rate_limit_exceeded``, 404 ``not_found``), and request
schema violations become 422 ``invalid_request``.

All bodies have the shape ``{"error": {"code", "message", "request_id", "details?"}}``.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tokengate.core.errors import (
    AppError,
    IdentityTakenAppError,
    StoreUnavailableAppError,
    ValidationAppError,
)
from tokengate.core.logging import get_request_id

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (ValidationAppError, 400),
    (IdentityTakenAppError, 409),
    (StoreUnavailableAppError, 503),
)

_CODE_BY_HTTP_STATUS: dict[int, str] = {
    404: "not_found",
    405: "method_not_allowed",
    429: "rate_limit_exceeded",
}


def status_for(exc: AppError) -> int:
    """Resolve the HTTP status for a domain error (400 when unmapped)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    error_content = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        error_content["details"] = details
    return {"error": error_content}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as a JSON error body with its mapped status code."""
    status_code = status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, exc.details),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (404, 429, ...) in the shared error shape.

    Headers attached to the exception (``Retry-After``, ``X-RateLimit-*``)
    are passed through.
    """
    code = _CODE_BY_HTTP_STATUS.get(exc.status_code, "http_error")
    message = exc.detail if isinstance(exc.detail, str) else "HTTP error"

    logger.info(
        "http_error_handled",
        extra={
            "error_code": code,
            "status_code": exc.status_code,
            "request_path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(code, message),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render schema violations (missing fields, wrong types) as ``invalid_request``."""
    errors = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "type": error.get("type"),
            "msg": error.get("msg"),
        }
        for error in exc.errors()
    ]
    details: dict = {"context": {"errors": errors}}
    if errors and errors[0]["loc"]:
        details["field"] = errors[0]["loc"][-1]

    logger.warning(
        "request_validation_failed",
        extra={"error_count": len(errors), "request_path": request.url.path},
    )
    return JSONResponse(
        status_code=422,
        content=_error_body("invalid_request", "Request body or parameters are invalid", details),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure type for debugging but returns a generic message so no
    implementation details reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register the domain, framework and fallback handlers on a FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
