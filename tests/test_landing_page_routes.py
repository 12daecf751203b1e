"""Integration tests for the landing page routes over an in-memory store."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.core.app_factory import create_app
from app.core.config import settings
from app.services.landing_page import LandingPageService

ADMIN = {"X-API-Key": "admin-key-456"}
USER = {"X-API-Key": "user-key-123"}


@pytest.fixture(autouse=True)
def _rate_limits(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_enabled", True)
    monkeypatch.setattr(settings.app, "rate_limit_include_headers", True)
    monkeypatch.setattr(settings.app, "landing_page_read_max", 100)
    monkeypatch.setattr(settings.app, "landing_page_read_window_seconds", 900)
    monkeypatch.setattr(settings.app, "landing_page_write_max", 100)


class TestPublicRead:
    def test_first_read_misses_then_hits(self, client: TestClient) -> None:
        first = client.get("/v1/landing-page")
        second = client.get("/v1/landing-page")

        assert first.status_code == 200
        assert first.headers["X-Cache"] == "MISS"
        assert second.headers["X-Cache"] == "HIT"
        assert first.json() == second.json()
        assert second.headers["Cache-Control"] == "public, max-age=300"
        assert second.headers["ETag"] == first.headers["ETag"]

    def test_etag_changes_when_content_changes(self, client: TestClient) -> None:
        before = client.get("/v1/landing-page").headers["ETag"]

        client.patch("/v1/landing-page/theme", json={"mode": "dark"}, headers=ADMIN)
        after = client.get("/v1/landing-page").headers["ETag"]

        assert after != before
        assert len(after.strip('"')) == 20

    def test_only_active_items_are_served(self, client: TestClient) -> None:
        body = client.get("/v1/landing-page").json()

        assert [b["id"] for b in body["content"]["hero"]["banners"]] == ["b1", "b2"]
        assert body["content"]["seasonal"]["tips"] == []

    def test_rate_limit_headers(self, client: TestClient) -> None:
        resp = client.get("/v1/landing-page")

        assert resp.headers["X-RateLimit-Limit"] == "100"
        assert resp.headers["X-RateLimit-Remaining"] == "99"

    def test_exceeding_read_limit_returns_429(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings.app, "landing_page_read_max", 2)

        assert client.get("/v1/landing-page").status_code == 200
        assert client.get("/v1/landing-page").status_code == 200
        blocked = client.get("/v1/landing-page")

        assert blocked.status_code == 429
        assert blocked.headers["Retry-After"] == "900"
        error = blocked.json()["error"]
        assert error["code"] == "rate_limit_exceeded"
        assert error["details"]["retry_after"] == 900
        assert "900 seconds" in error["message"]

    def test_forwarded_address_gets_its_own_counter(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings.app, "landing_page_read_max", 1)
        monkeypatch.setattr(settings.app, "trust_proxy_headers", True)

        assert client.get("/v1/landing-page", headers={"X-Forwarded-For": "1.2.3.4"}).status_code == 200
        assert client.get("/v1/landing-page", headers={"X-Forwarded-For": "1.2.3.4"}).status_code == 429
        assert client.get("/v1/landing-page", headers={"X-Forwarded-For": "5.6.7.8"}).status_code == 200

    def test_disabled_rate_limiting_skips_store(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings.app, "rate_limit_enabled", False)

        resp = client.get("/v1/landing-page")

        assert resp.status_code == 200
        assert "X-RateLimit-Limit" not in resp.headers


class TestAdminWrites:
    def test_put_requires_api_key(self, client: TestClient, document: dict) -> None:
        resp = client.put("/v1/landing-page", json=document)

        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_put_rejects_non_admin(self, client: TestClient, document: dict) -> None:
        resp = client.put("/v1/landing-page", json=document, headers=USER)

        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_put_invalidates_cache(self, client: TestClient, document: dict) -> None:
        client.get("/v1/landing-page")

        document["content"]["hero"]["text"]["title"] = "Fall Sale"
        resp = client.put("/v1/landing-page", json=document, headers=ADMIN)
        fresh = client.get("/v1/landing-page")

        assert resp.status_code == 200
        assert fresh.headers["X-Cache"] == "MISS"
        assert fresh.json()["content"]["hero"]["text"]["title"] == "Fall Sale"

    def test_put_validates_body(self, client: TestClient) -> None:
        resp = client.put("/v1/landing-page", json={"contact": {}}, headers=ADMIN)

        assert resp.status_code == 422

    def test_patch_section(self, client: TestClient) -> None:
        resp = client.patch("/v1/landing-page/contact", json={"name": "Green Acres"}, headers=ADMIN)

        assert resp.status_code == 200
        assert resp.json()["contact"] == {"name": "Green Acres"}
        assert client.get("/v1/landing-page").json()["contact"] == {"name": "Green Acres"}

    def test_patch_unknown_section_is_400(self, client: TestClient) -> None:
        resp = client.patch("/v1/landing-page/pricing", json={}, headers=ADMIN)

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "unknown_section"

    def test_write_limit_is_per_account(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings.app, "landing_page_write_max", 1)

        first = client.patch("/v1/landing-page/layout", json={"sections": []}, headers=ADMIN)
        second = client.patch(
            "/v1/landing-page/layout",
            json={"sections": []},
            headers={**ADMIN, "X-Forwarded-For": "8.8.8.8"},
        )

        assert first.status_code == 200
        assert second.status_code == 429

    def test_invalidate_cache_endpoint(self, client: TestClient) -> None:
        client.get("/v1/landing-page")

        resp = client.post("/v1/landing-page/invalidate-cache", headers=ADMIN)

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Cache invalidated successfully"}
        assert client.get("/v1/landing-page").headers["X-Cache"] == "MISS"

    def test_invalidate_cache_requires_admin(self, client: TestClient) -> None:
        assert client.post("/v1/landing-page/invalidate-cache").status_code == 401


class TestStoreOutage:
    def test_reads_and_writes_work_without_store(
        self, content_path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def _refuse():
            raise ConnectionError("redis:6380 unreachable")

        app = create_app(store_factory=_refuse)
        app.state.landing_page_service = LandingPageService(
            content_path, app.state.content_cache
        )
        monkeypatch.setattr(settings.app, "landing_page_read_max", 1)

        with TestClient(app) as client:
            for _ in range(3):
                resp = client.get("/v1/landing-page")
                assert resp.status_code == 200
                assert resp.headers["X-Cache"] == "MISS"
                assert "X-RateLimit-Limit" not in resp.headers

            patched = client.patch("/v1/landing-page/layout", json={"sections": []}, headers=ADMIN)
            assert patched.status_code == 200

            ready = client.get("/health/ready")
            assert ready.json() == {"status": "degraded", "store": "unavailable"}
