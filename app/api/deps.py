"""FastAPI dependencies resolving the shared components from ``app.state``.

``create_app`` builds one StoreConnection, RateLimiter, ContentCache and
LandingPageService per application; routes receive them through these
functions so tests can build an app around an in-memory store.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Request

from app.adapters.store.connection import StoreConnection
from app.core.caller import CallerContext, get_caller_context
from app.core.errors import AuthenticationAppError
from app.services.content_cache import ContentCache
from app.services.landing_page import LandingPageService
from app.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def get_store_connection(request: Request) -> StoreConnection:
    return request.app.state.store_connection


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_content_cache(request: Request) -> ContentCache:
    return request.app.state.content_cache


def get_landing_page_service(request: Request) -> LandingPageService:
    return request.app.state.landing_page_service


async def require_admin(
    caller: Annotated[CallerContext, Depends(get_caller_context)],
) -> CallerContext:
    """Allow only callers authenticated with an admin API key.

    Usage:
        @router.put("/landing-page", dependencies=[Depends(require_admin)])

    Raises:
        AuthenticationAppError: ``unauthorized`` without a valid key,
            ``forbidden`` for a valid non-admin key.
    """
    if not caller.authenticated:
        raise AuthenticationAppError(
            code="unauthorized",
            message="Missing or invalid API key. Provide X-API-Key header.",
        )
    if not caller.is_admin:
        logger.warning("auth.admin_required", extra={"account": caller.account_id})
        raise AuthenticationAppError(
            code="forbidden",
            message="Admin access required",
        )
    return caller
