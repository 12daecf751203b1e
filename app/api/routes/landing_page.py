from __future__ import annotations

import hashlib
import json
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Response

from app.api.deps import get_landing_page_service, require_admin
from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.schemas.landing_page import InvalidateCacheResponse, LandingPageContent
from app.services.landing_page import LandingPageService

router = APIRouter(prefix="/landing-page", tags=["Landing Page"])

ServiceDep = Annotated[LandingPageService, Depends(get_landing_page_service)]

_read_limit = rate_limit(
    "landing_page.read",
    max=lambda: settings.app.landing_page_read_max,
    window_seconds=lambda: settings.app.landing_page_read_window_seconds,
)
_write_limit = rate_limit(
    "landing_page.write",
    max=lambda: settings.app.landing_page_write_max,
    window_seconds=lambda: settings.app.landing_page_write_window_seconds,
    by_account=True,
)


def _etag(document: dict[str, Any]) -> str:
    digest = hashlib.sha256(json.dumps(document, sort_keys=True).encode()).hexdigest()
    return f'"{digest[:20]}"'


@router.get("", response_model=LandingPageContent, dependencies=[Depends(_read_limit)])
async def get_landing_page(response: Response, service: ServiceDep) -> dict[str, Any]:
    """Public landing page content (active items only).

    Served from the shared cache when present; otherwise rebuilt from the
    authoritative document and cached for the configured TTL.
    """
    document, cache_hit = await service.get_content()

    response.headers["Cache-Control"] = "public, max-age=300"
    response.headers["ETag"] = _etag(document)
    response.headers["X-Cache"] = "HIT" if cache_hit else "MISS"
    last_updated = (document.get("metadata") or {}).get("lastUpdated")
    if last_updated:
        response.headers["Last-Modified"] = str(last_updated)
    return document


@router.put(
    "",
    response_model=LandingPageContent,
    dependencies=[Depends(require_admin), Depends(_write_limit)],
)
async def replace_landing_page(
    content: LandingPageContent,
    service: ServiceDep,
) -> dict[str, Any]:
    """Replace the whole document (admin). The cache is invalidated before returning."""
    return await service.update_content(content.model_dump(mode="json"))


@router.patch(
    "/{section}",
    response_model=LandingPageContent,
    dependencies=[Depends(require_admin), Depends(_write_limit)],
)
async def update_landing_page_section(
    section: str,
    service: ServiceDep,
    value: Annotated[Any, Body(description="New value for the top-level section")],
) -> dict[str, Any]:
    """Replace one top-level section (admin), e.g. ``contact`` or ``theme``."""
    return await service.update_section(section, value)


@router.post(
    "/invalidate-cache",
    response_model=InvalidateCacheResponse,
    dependencies=[Depends(require_admin)],
)
async def invalidate_landing_page_cache(service: ServiceDep) -> InvalidateCacheResponse:
    """Force the next read to rebuild from the authoritative document (admin)."""
    await service.invalidate_cache()
    return InvalidateCacheResponse(success=True, message="Cache invalidated successfully")
