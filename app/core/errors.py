"""Application-level exception types.

Domain errors raised by services and dependencies. Only these cross the
HTTP boundary; store failures are modelled separately in
``app.adapters.store.base`` and never reach a client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    hint: str
    operation: str
    limit: int
    retry_after: int
    section: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input validation fails."""


class AuthenticationAppError(AppError):
    """Raised when the caller is unauthenticated or lacks permission.

    ``code == "forbidden"`` maps to 403; anything else maps to 401.
    """


class ContentStoreAppError(AppError):
    """Raised when the authoritative landing page document cannot be written."""


class RateLimitExceededError(AppError):
    """Raised when a caller exceeds the quota of a rate limit policy."""

    def __init__(self, *, operation_id: str, limit: int, window_seconds: int) -> None:
        super().__init__(
            code="rate_limit_exceeded",
            message=f"Rate limit exceeded. Please try again in {window_seconds} seconds.",
            details={
                "operation": operation_id,
                "limit": limit,
                "retry_after": window_seconds,
            },
        )
        self.retry_after = window_seconds
