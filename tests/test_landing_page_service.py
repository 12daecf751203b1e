"""Tests for LandingPageService: file I/O, aggregation and cache usage."""

import asyncio
import json
import threading

import pytest

from app.adapters.store.in_memory import InMemoryKeyValueStore
from app.core.errors import ContentStoreAppError, ValidationAppError
from app.services.content_cache import ContentCache
from app.services.landing_page import LandingPageService, default_document, filter_active


@pytest.fixture
def service(content_path, content_cache) -> LandingPageService:
    return LandingPageService(content_path, content_cache)


class TestReadAndWrite:
    def test_missing_file_returns_default_document(self, tmp_path, content_cache) -> None:
        service = LandingPageService(tmp_path / "absent.json", content_cache)

        document = service.read_content()

        assert document["metadata"]["version"] == "2.0"
        assert document["content"]["hero"]["banners"] == []

    def test_malformed_file_returns_default_document(self, tmp_path, content_cache) -> None:
        path = tmp_path / "content.json"
        path.write_text("{oops", encoding="utf-8")

        document = LandingPageService(path, content_cache).read_content()

        assert set(document) == set(default_document())

    def test_write_stamps_last_updated(self, service, content_path, document) -> None:
        written = service.write_content(document)

        on_disk = json.loads(content_path.read_text(encoding="utf-8"))
        assert on_disk == written
        assert written["metadata"]["lastUpdated"] != "2026-01-01T00:00:00+00:00"
        assert written["metadata"]["version"] == "2.0"

    def test_write_failure_raises_app_error(self, tmp_path, content_cache, document) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        service = LandingPageService(blocker / "content.json", content_cache)

        with pytest.raises(ContentStoreAppError):
            service.write_content(document)


class TestAggregation:
    def test_filter_active_keeps_active_items_in_display_order(self, document) -> None:
        result = filter_active(document)

        assert [b["id"] for b in result["content"]["hero"]["banners"]] == ["b1", "b2"]
        assert [p["id"] for p in result["content"]["seasonal"]["plants"]] == ["p1"]
        assert result["content"]["seasonal"]["tips"] == []

    def test_filter_active_does_not_mutate_input(self, document) -> None:
        filter_active(document)

        assert len(document["content"]["hero"]["banners"]) == 3

    def test_filter_active_tolerates_missing_sections(self) -> None:
        assert filter_active({"content": {}}) == {"content": {}}

    def test_aggregate_without_filter_returns_everything(self, service) -> None:
        result = service.aggregate(only_active=False)

        assert len(result["content"]["hero"]["banners"]) == 3


class TestReadThrough:
    @pytest.mark.asyncio
    async def test_miss_populates_cache_then_hits(self, service, content_cache) -> None:
        first, first_hit = await service.get_content()
        second, second_hit = await service.get_content()

        assert first_hit is False
        assert second_hit is True
        assert first == second
        assert await content_cache.get() == first

    @pytest.mark.asyncio
    async def test_update_invalidates_so_next_read_is_fresh(self, service, document) -> None:
        await service.get_content()

        document["content"]["hero"]["text"]["title"] = "Fall Sale"
        await service.update_content(document)
        fresh, hit = await service.get_content()

        assert hit is False
        assert fresh["content"]["hero"]["text"]["title"] == "Fall Sale"

    @pytest.mark.asyncio
    async def test_update_section_replaces_only_that_section(self, service) -> None:
        await service.update_section("contact", {"name": "Green Acres"})

        document = service.read_content()
        assert document["contact"] == {"name": "Green Acres"}
        assert len(document["content"]["hero"]["banners"]) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("section", ["metadata", "pricing"])
    async def test_update_section_rejects_unknown_sections(self, service, section: str) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            await service.update_section(section, {})

        assert exc_info.value.code == "unknown_section"

    @pytest.mark.asyncio
    async def test_cache_outage_still_serves_content(self, content_path) -> None:
        from app.adapters.store.connection import StoreConnection

        async def _refuse():
            raise ConnectionError("redis:6380 unreachable")

        cache = ContentCache(StoreConnection(_refuse), key="landing-page-content:v1")
        service = LandingPageService(content_path, cache)

        document, hit = await service.get_content()
        await service.update_section("theme", {"colors": {}})

        assert hit is False
        assert [b["id"] for b in document["content"]["hero"]["banners"]] == ["b1", "b2"]

    @pytest.mark.asyncio
    async def test_invalidate_cache(self, service, content_cache) -> None:
        await service.get_content()

        await service.invalidate_cache()

        assert await content_cache.get() is None


class SlowFillStore(InMemoryKeyValueStore):
    """Cache writes land late, after a concurrent admin write."""

    async def set_with_expiry_if(self, key, value, seconds, *, guard_key, expected):
        await asyncio.sleep(0.05)
        return await super().set_with_expiry_if(
            key, value, seconds, guard_key=guard_key, expected=expected
        )


class TestConcurrentWrites:
    @pytest.mark.asyncio
    async def test_late_fill_does_not_restore_old_document(
        self, content_path, make_connection, clock
    ) -> None:
        store = SlowFillStore(clock=clock)
        cache = ContentCache(make_connection(store), key="landing-page-content:v1")
        service = LandingPageService(content_path, cache)

        await asyncio.gather(
            service.get_content(),
            service.update_section("contact", {"name": "Green Acres"}),
        )
        document, _ = await service.get_content()

        assert document["contact"] == {"name": "Green Acres"}
        assert (await cache.get())["contact"] == {"name": "Green Acres"}

    @pytest.mark.asyncio
    async def test_file_io_runs_off_the_event_loop(self, service, monkeypatch) -> None:
        loop_thread = threading.get_ident()
        seen: list[int] = []
        read = service.read_content

        def _recording_read():
            seen.append(threading.get_ident())
            return read()

        monkeypatch.setattr(service, "read_content", _recording_read)

        await service.get_content()
        await service.update_section("contact", {"name": "Green Acres"})

        assert len(seen) == 2
        assert loop_thread not in seen
