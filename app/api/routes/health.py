from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from app.adapters.store.base import run_store_call
from app.adapters.store.connection import StoreConnection
from app.api.deps import get_store_connection
from app.core.config import settings
from app.schemas.landing_page import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Liveness check. Never touches the store."""

    return HealthResponse(status="ok")


@router.get("/health/ready", response_model=HealthResponse)
async def readiness_check(
    connection: Annotated[StoreConnection, Depends(get_store_connection)],
) -> HealthResponse:
    """Readiness check pinging the shared store.

    A store outage reports ``degraded`` rather than failing: rate limiting
    and caching fail open, so the API still serves requests without it.
    """

    timeout = settings.store.operation_timeout_seconds
    connected = await run_store_call("connect", connection.get_store(), timeout_seconds=timeout)
    error = connected.error
    if connected.ok:
        result = await run_store_call("ping", connected.value.ping(), timeout_seconds=timeout)
        error = result.error
    if error is None:
        return HealthResponse(status="ok", store="ok")

    logger.warning(
        "health.store_unavailable",
        extra={"store_operation": error.operation, "error_reason": error.reason},
    )
    return HealthResponse(status="degraded", store="unavailable")
