"""Rate limiting dependency for FastAPI routes.

Wires ``RateLimiter`` into the HTTP layer. Each route declares its policy:

    @router.get(
        "/landing-page",
        dependencies=[Depends(rate_limit("landing_page.read", max=100, window_seconds=900))],
    )

Omitted limits fall back to ``APP_RATE_LIMIT_MAX`` and
``APP_RATE_LIMIT_WINDOW_SECONDS``. Over-quota calls raise
``RateLimitExceededError`` (429 via the exception handlers).
"""

from __future__ import annotations

from typing import Annotated, Awaitable, Callable

from fastapi import Depends, Response

from app.api.deps import get_rate_limiter
from app.core.caller import CallerContext, get_caller_context
from app.core.config import settings
from app.services.rate_limiter import RateLimiter, RateLimitPolicy, RateLimitStatus

RateLimitDependency = Callable[..., Awaitable[RateLimitStatus | None]]


def build_policy(
    operation_id: str,
    *,
    max: int | None = None,
    window_seconds: int | None = None,
    by_account: bool = False,
    cost: int = 1,
) -> RateLimitPolicy:
    """Build a policy, filling unset limits from settings at call time."""

    return RateLimitPolicy(
        operation_id=operation_id,
        max=max if max is not None else settings.app.rate_limit_max,
        window_seconds=(
            window_seconds if window_seconds is not None else settings.app.rate_limit_window_seconds
        ),
        by_account=by_account,
        cost=cost,
    )


def rate_limit(
    operation_id: str,
    *,
    max: int | Callable[[], int] | None = None,
    window_seconds: int | Callable[[], int] | None = None,
    by_account: bool = False,
) -> RateLimitDependency:
    """Create a dependency enforcing a rate limit policy on a route.

    ``max`` and ``window_seconds`` may be callables so routes can read them
    from settings per request (tests override settings after import).

    Args:
        operation_id: Stable name of the guarded operation.
        max: Units allowed per window.
        window_seconds: Window length in seconds.
        by_account: Key on the authenticated account instead of the IP.

    Returns:
        Async FastAPI dependency returning the RateLimitStatus, or None when
        rate limiting is disabled.
    """

    async def _enforce(
        response: Response,
        caller: Annotated[CallerContext, Depends(get_caller_context)],
        limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    ) -> RateLimitStatus | None:
        if not settings.app.rate_limit_enabled:
            return None

        policy = build_policy(
            operation_id,
            max=max() if callable(max) else max,
            window_seconds=window_seconds() if callable(window_seconds) else window_seconds,
            by_account=by_account,
        )
        status = await limiter.check_and_record(policy, caller)

        if settings.app.rate_limit_include_headers and not status.degraded:
            response.headers["X-RateLimit-Limit"] = str(status.limit)
            response.headers["X-RateLimit-Remaining"] = str(status.remaining)
        return status

    _enforce.__name__ = f"rate_limit_{operation_id.replace('.', '_')}"
    return _enforce
