"""In-memory key-value store with Redis-like TTL semantics.

Notes:
- Per-process only: running multiple workers gives each its own counters.
- Thread-safe: uses a lock around shared state.
- Expired keys are dropped lazily, on access.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.store.base import KeyValueStore


@dataclass
class _Entry:
    value: str
    expires_at: float | None = None


class InMemoryKeyValueStore(KeyValueStore):
    """KeyValueStore kept in a dict, for local development and tests.

    Values are stored as strings like Redis does, so counters round-trip
    through ``get`` the same way.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def _live_entry(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _incr_locked(self, key: str, amount: int) -> int:
        entry = self._live_entry(key)
        if entry is None:
            entry = _Entry(value="0")
            self._entries[key] = entry
        try:
            count = int(entry.value) + amount
        except ValueError as exc:
            raise ValueError("value is not an integer or out of range") from exc
        entry.value = str(count)
        return count

    def _expire_locked(self, key: str, seconds: int, only_if_unset: bool) -> bool:
        entry = self._live_entry(key)
        if entry is None:
            return False
        if only_if_unset and entry.expires_at is not None:
            return False
        entry.expires_at = self._clock() + seconds
        return True

    async def incr(self, key: str, amount: int = 1) -> int:
        with self._lock:
            return self._incr_locked(key, amount)

    async def incr_with_expiry(self, key: str, amount: int, seconds: int) -> int:
        with self._lock:
            count = self._incr_locked(key, amount)
            if count == amount:
                self._expire_locked(key, seconds, only_if_unset=False)
            return count

    async def expire(self, key: str, seconds: int, *, only_if_unset: bool = False) -> bool:
        with self._lock:
            return self._expire_locked(key, seconds, only_if_unset)

    async def ttl(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return -2
            if entry.expires_at is None:
                return -1
            return max(0, int(math.ceil(entry.expires_at - self._clock())))

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry else None

    async def set_with_expiry(self, key: str, value: str, seconds: int) -> None:
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + seconds)

    async def set_with_expiry_if(
        self, key: str, value: str, seconds: int, *, guard_key: str, expected: str
    ) -> bool:
        with self._lock:
            guard = self._live_entry(guard_key)
            if (guard.value if guard else "0") != expected:
                return False
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + seconds)
            return True

    async def set(self, key: str, value: str) -> None:
        """Store a value without TTL (used to seed fixtures)."""
        with self._lock:
            self._entries[key] = _Entry(value=value)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def ping(self) -> bool:
        return True
