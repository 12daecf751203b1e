"""Global exception handlers for consistent error responses.

Every error leaves the API as::

    {"error": {"code": ..., "message": ..., "request_id": ..., "details": ...}}

``details`` is present only when the error carries it. Store failures never
get here: the rate limiter and content cache absorb them.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    ContentStoreAppError,
    ErrorDetails,
    RateLimitExceededError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

# Checked in order; anything unlisted is a client error
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (RateLimitExceededError, 429),
    (AuthenticationAppError, 401),
    (ContentStoreAppError, 500),
)


def status_for(exc: AppError) -> int:
    """HTTP status for a domain error.

    Examples:
        >>> status_for(AuthenticationAppError(code="forbidden", message="no"))
        403
    """
    if isinstance(exc, AuthenticationAppError) and exc.code == "forbidden":
        return 403
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _error_body(code: str, message: str, details: ErrorDetails | None = None) -> dict:
    error = {"code": code, "message": message, "request_id": get_request_id()}
    if details:
        error["details"] = details
    return {"error": error}


def _error_headers(exc: AppError, status_code: int) -> dict[str, str] | None:
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitExceededError) and settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(exc.retry_after)
    if status_code == 401:
        headers["WWW-Authenticate"] = "ApiKey"
    return headers or None


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError.

    - ValidationAppError: 400
    - AuthenticationAppError: 401, or 403 for ``forbidden``
    - RateLimitExceededError: 429 with ``Retry-After``
    - ContentStoreAppError: 500
    """
    status_code = status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_method": request.method,
            "request_path": request.url.path,
        },
    )

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, exc.details),
        headers=_error_headers(exc, status_code),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Safety net: log the real error, answer with a generic 500."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "request_method": request.method,
            "request_path": request.url.path,
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content=_error_body(
            "internal_server_error",
            "An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register the handlers on ``app``; the AppError handler wins over the fallback."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
