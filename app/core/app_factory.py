"""Application factory for the FastAPI app.

Centralizes app construction (shared components, middleware, handlers,
routers) so tests can build an app around their own store.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.store.connection import StoreConnection, StoreFactory, build_store_factory
from app.api.routes import health_router, landing_page_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.services.content_cache import ContentCache
from app.services.landing_page import LandingPageService
from app.services.rate_limiter import RateLimiter


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await app.state.store_connection.close()


def create_app(*, store_factory: StoreFactory | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        store_factory: Override for the store factory (tests pass an
            in-memory store); defaults to the configured backend.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Nursery Edge API",
        description=(
            "Landing page content for the nursery storefront, served through a "
            "shared Redis cache and protected by per-route rate limits. Admin "
            "writes require an admin X-API-Key and invalidate the cache."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=_lifespan,
    )

    # One store connection per process, opened lazily on first use
    connection = StoreConnection(store_factory or build_store_factory(settings.store))
    cache = ContentCache(
        connection,
        key=settings.cache.key,
        ttl_seconds=settings.cache.ttl_seconds,
        timeout_seconds=settings.store.operation_timeout_seconds,
    )
    app.state.store_connection = connection
    app.state.rate_limiter = RateLimiter(
        connection,
        timeout_seconds=settings.store.operation_timeout_seconds,
    )
    app.state.content_cache = cache
    app.state.landing_page_service = LandingPageService(settings.cache.content_path, cache)

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(landing_page_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
