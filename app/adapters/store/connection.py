"""Process-wide store connection with lazy, single-flight initialization."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from app.adapters.store.base import KeyValueStore
from app.core.config import StoreSettings

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], Awaitable[KeyValueStore]]


def build_store_factory(store_settings: StoreSettings) -> StoreFactory:
    """Return a coroutine factory creating the configured backend.

    The Redis backend is pinged once so a misconfigured address fails the
    initialization (and is retried on the next use) instead of failing
    every later call.
    """

    async def _create() -> KeyValueStore:
        backend = store_settings.backend.lower()
        if backend == "memory":
            from app.adapters.store.in_memory import InMemoryKeyValueStore

            return InMemoryKeyValueStore()
        if backend != "redis":
            raise ValueError(f"Unsupported store backend: {store_settings.backend}")

        from app.adapters.store.redis_store import RedisKeyValueStore

        store = RedisKeyValueStore.from_settings(store_settings)
        try:
            await asyncio.wait_for(store.ping(), timeout=store_settings.socket_timeout_seconds)
        except BaseException:
            await store.close()
            raise
        logger.info(
            "store.connected",
            extra={"backend": "redis", "host": store_settings.host, "port": store_settings.port},
        )
        return store

    return _create


class StoreConnection:
    """Lazily created, shared KeyValueStore handle.

    Concurrent first callers await one shared initialization task, so a
    single attempt runs at a time and its failure reaches every waiter. A
    failed attempt is not remembered; the next call starts a new one.
    Callers bound their wait with ``asyncio.wait_for``; a waiter that times
    out leaves the shared attempt running for the others.
    """

    def __init__(self, factory: StoreFactory) -> None:
        self._factory = factory
        self._store: KeyValueStore | None = None
        self._pending: asyncio.Future[KeyValueStore] | None = None

    @property
    def initialized(self) -> bool:
        return self._store is not None

    async def _initialize(self) -> KeyValueStore:
        try:
            self._store = await self._factory()
        finally:
            self._pending = None
        return self._store

    def _start_initialization(self) -> asyncio.Future[KeyValueStore]:
        pending = asyncio.ensure_future(self._initialize())
        # Waiters may all have timed out; read the outcome so it is never "unretrieved"
        pending.add_done_callback(lambda f: f.cancelled() or f.exception())
        self._pending = pending
        return pending

    async def get_store(self) -> KeyValueStore:
        """Return the shared store, creating it on first use.

        Raises:
            Exception: Whatever the factory raised; callers treat it as a
                store failure.
        """

        if self._store is not None:
            return self._store
        pending = self._pending or self._start_initialization()
        return await asyncio.shield(pending)

    async def close(self) -> None:
        """Close and forget the shared store (application shutdown)."""

        pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()
        store, self._store = self._store, None
        if store is not None:
            await store.close()
