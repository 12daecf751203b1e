"""Redis-backed key-value store using ``redis.asyncio``."""

from __future__ import annotations

import logging

import redis.asyncio as redis

from app.adapters.store.base import KeyValueStore
from app.core.config import StoreSettings

logger = logging.getLogger(__name__)

# INCRBY and EXPIRE in one server-side step: a crash between the two can't
# leave a counter without TTL, and only the creating call sets the TTL.
_INCR_WITH_EXPIRY_LUA = """
local count = redis.call('INCRBY', KEYS[1], ARGV[1])
if count == tonumber(ARGV[1]) then
    redis.call('EXPIRE', KEYS[1], ARGV[2])
end
return count
"""

# SET EX only while the guard key (a generation counter) is unchanged
_SET_IF_GUARD_LUA = """
if (redis.call('GET', KEYS[2]) or '0') ~= ARGV[3] then
    return 0
end
redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[2])
return 1
"""


class RedisKeyValueStore(KeyValueStore):
    """KeyValueStore over a shared ``redis.asyncio.Redis`` connection pool."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        self._incr_with_expiry = client.register_script(_INCR_WITH_EXPIRY_LUA)
        self._set_if_guard = client.register_script(_SET_IF_GUARD_LUA)

    @classmethod
    def from_settings(cls, store_settings: StoreSettings) -> "RedisKeyValueStore":
        """Build a store from configuration without connecting yet."""

        client = redis.Redis(
            host=store_settings.host,
            port=store_settings.port,
            db=store_settings.db,
            password=store_settings.password,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=store_settings.socket_timeout_seconds,
            socket_timeout=store_settings.socket_timeout_seconds,
            health_check_interval=30,
        )
        return cls(client)

    async def incr(self, key: str, amount: int = 1) -> int:
        return int(await self._client.incrby(key, amount))

    async def incr_with_expiry(self, key: str, amount: int, seconds: int) -> int:
        count = await self._incr_with_expiry(keys=[key], args=[amount, seconds])
        return int(count)

    async def expire(self, key: str, seconds: int, *, only_if_unset: bool = False) -> bool:
        if only_if_unset:
            return bool(await self._client.expire(key, seconds, nx=True))
        return bool(await self._client.expire(key, seconds))

    async def ttl(self, key: str) -> int:
        return int(await self._client.ttl(key))

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set_with_expiry(self, key: str, value: str, seconds: int) -> None:
        await self._client.set(key, value, ex=seconds)

    async def set_with_expiry_if(
        self, key: str, value: str, seconds: int, *, guard_key: str, expected: str
    ) -> bool:
        written = await self._set_if_guard(keys=[key, guard_key], args=[value, seconds, expected])
        return bool(written)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("store.closed", extra={"backend": "redis"})
