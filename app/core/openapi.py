"""OpenAPI schema tweaks: tag descriptions and the admin API key scheme.

Only routes guarded by ``require_admin`` are documented as needing
``X-API-Key``; public reads accept a key but never require one.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI
from fastapi.routing import APIRoute

from app.api.deps import require_admin

SECURITY_SCHEME = "ApiKeyAuth"

TAGS = [
    {"name": "Landing Page", "description": "Cached landing page content and admin edits."},
    {"name": "Health", "description": "Liveness and readiness checks."},
]


def _admin_operations(app: FastAPI) -> set[tuple[str, str]]:
    """(path, method) pairs whose route depends on ``require_admin``."""

    operations: set[tuple[str, str]] = set()
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        if any(dep.dependency is require_admin for dep in route.dependencies):
            operations.update((route.path_format, m.lower()) for m in route.methods)
    return operations


def apply_openapi_customizations(app: FastAPI) -> None:
    """Wrap ``app.openapi`` so the generated schema carries tags and security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        schemes.setdefault(
            SECURITY_SCHEME,
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Admin key for writes. On public reads a key only scopes rate limits.",
            },
        )

        tags = schema.setdefault("tags", [])
        known = {t.get("name") for t in tags}
        tags.extend(t for t in TAGS if t["name"] not in known)

        for path, method in _admin_operations(app):
            operation = schema.get("paths", {}).get(path, {}).get(method)
            if isinstance(operation, dict):
                operation["security"] = [{SECURITY_SCHEME: []}]

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
