from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.landing_page import router as landing_page_router

__all__ = ["health_router", "landing_page_router"]
