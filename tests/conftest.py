"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any app import so the settings
singleton sees them and no .env file is loaded.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("APP_API_KEYS", "user-key-123:acct-user,user-key-789")
os.environ.setdefault("APP_ADMIN_API_KEYS", "admin-key-456:acct-admin")
os.environ.setdefault("REDIS_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import json
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.store.connection import StoreConnection
from app.adapters.store.in_memory import InMemoryKeyValueStore
from app.core.app_factory import create_app
from app.services.content_cache import ContentCache
from app.services.landing_page import LandingPageService


class FakeClock:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def connection_for(store) -> StoreConnection:
    async def _factory():
        return store

    return StoreConnection(_factory)


def sample_document() -> dict:
    return {
        "metadata": {"version": "2.0", "lastUpdated": "2026-01-01T00:00:00+00:00"},
        "content": {
            "hero": {
                "banners": [
                    {"id": "b2", "title": "Second", "isActive": True, "displayOrder": 2},
                    {"id": "b1", "title": "First", "isActive": True, "displayOrder": 1},
                    {"id": "off", "title": "Hidden", "isActive": False, "displayOrder": 0},
                ],
                "settings": {"autoPlay": False},
                "text": {"title": "Welcome"},
            },
            "seasonal": {
                "plants": [{"id": "p1", "name": "Hosta", "isActive": True, "displayOrder": 1}],
                "tips": [{"id": "t1", "title": "Mulch", "isActive": False, "displayOrder": 1}],
            },
        },
        "contact": {"name": "Nursery"},
        "theme": {},
        "layout": {"sections": []},
        "experiments": {"tests": []},
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def connection(store: InMemoryKeyValueStore) -> StoreConnection:
    return connection_for(store)


@pytest.fixture
def content_path(tmp_path: Path) -> Path:
    path = tmp_path / "landing-page-content.json"
    path.write_text(json.dumps(sample_document()), encoding="utf-8")
    return path


@pytest.fixture
def app(store: InMemoryKeyValueStore, content_path: Path) -> FastAPI:
    async def _factory():
        return store

    application = create_app(store_factory=_factory)
    application.state.landing_page_service = LandingPageService(
        content_path, application.state.content_cache
    )
    return application


@pytest.fixture
def client(app: FastAPI):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def content_cache(connection: StoreConnection) -> ContentCache:
    return ContentCache(connection, key="landing-page-content:v1", ttl_seconds=3600)


@pytest.fixture
def document() -> dict:
    return sample_document()


@pytest.fixture
def make_connection():
    """Build a StoreConnection around any store object."""
    return connection_for
