"""Store-backed cache for the landing page document.

A stateless facade over one versioned key. Any store failure or corrupt
entry degrades to "no cache": ``get`` returns None and
``set``/``invalidate`` become no-ops. Nothing is raised to callers.

Callers must ``invalidate()`` as part of every administrative write,
before reporting success, so the next ``get()`` misses and recomputes.
Read-through fills go through ``fill_token()`` and ``fill()``: a fill
computed before an invalidation is dropped instead of restoring the old
document. ``invalidate()`` bumps the generation counter at ``{key}:gen``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from app.adapters.store.base import StoreError, StoreResult, run_store_call
from app.adapters.store.connection import StoreConnection

logger = logging.getLogger(__name__)

ContentDocument = dict[str, Any]

DIAG_CACHE_READ = "0201"
DIAG_CACHE_WRITE = "0202"
DIAG_CACHE_INVALIDATE = "0203"
DIAG_CACHE_CORRUPT = "0204"


class ContentCache:
    """Read-through cache entry for a JSON content document.

    Attributes:
        key: Store key (versioned, e.g. ``landing-page-content:v1``).
        ttl_seconds: Lifetime of a written entry.
    """

    def __init__(
        self,
        connection: StoreConnection,
        *,
        key: str,
        ttl_seconds: int = 3600,
        timeout_seconds: float = 1.0,
    ) -> None:
        if not key:
            raise ValueError("key must be a non-empty string")
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        self._connection = connection
        self.key = key
        self.generation_key = f"{key}:gen"
        self.ttl_seconds = ttl_seconds
        self._timeout = timeout_seconds

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"ContentCache(key={self.key!r}, ttl_seconds={self.ttl_seconds})"

    async def _call(self, operation: str, make_call) -> StoreResult[Any]:
        connected = await run_store_call(
            "connect", self._connection.get_store(), timeout_seconds=self._timeout
        )
        if not connected.ok:
            return StoreResult(error=connected.error)
        store = connected.value
        return await run_store_call(operation, make_call(store), timeout_seconds=self._timeout)

    def _log_store_error(self, event: str, error: StoreError, diagnostic_code: str) -> None:
        logger.error(
            event,
            extra={
                "cache_key": self.key,
                "store_operation": error.operation,
                "error_reason": error.reason,
                "diagnostic_code": diagnostic_code,
            },
        )

    async def get(self) -> ContentDocument | None:
        """Return the cached document, or None on miss or any failure."""

        result = await self._call("get", lambda store: store.get(self.key))
        if not result.ok:
            self._log_store_error("cache.read_failed", result.error, DIAG_CACHE_READ)
            return None

        raw = result.value
        if raw is None:
            logger.debug("cache.miss", extra={"cache_key": self.key, "reason": "not_found"})
            return None

        try:
            document = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.error(
                "cache.corrupt_entry",
                extra={
                    "cache_key": self.key,
                    "error_reason": str(exc),
                    "diagnostic_code": DIAG_CACHE_CORRUPT,
                },
            )
            return None
        if not isinstance(document, dict):
            logger.error(
                "cache.corrupt_entry",
                extra={
                    "cache_key": self.key,
                    "error_reason": f"expected object, got {type(document).__name__}",
                    "diagnostic_code": DIAG_CACHE_CORRUPT,
                },
            )
            return None

        logger.debug("cache.hit", extra={"cache_key": self.key})
        return document

    def _serialize(self, document: ContentDocument) -> str | None:
        try:
            return json.dumps(document)
        except (TypeError, ValueError) as exc:
            logger.error(
                "cache.serialize_failed",
                extra={
                    "cache_key": self.key,
                    "error_reason": str(exc),
                    "diagnostic_code": DIAG_CACHE_WRITE,
                },
            )
            return None

    async def set(self, document: ContentDocument) -> None:
        """Write the document with the fixed TTL, replacing any previous entry."""

        payload = self._serialize(document)
        if payload is None:
            return

        result = await self._call(
            "set_with_expiry",
            lambda store: store.set_with_expiry(self.key, payload, self.ttl_seconds),
        )
        if not result.ok:
            self._log_store_error("cache.write_failed", result.error, DIAG_CACHE_WRITE)
            return
        logger.info("cache.set", extra={"cache_key": self.key, "ttl_s": self.ttl_seconds})

    async def fill_token(self) -> str | None:
        """Current invalidation generation, read before recomputing a miss.

        Returns None when the generation can't be read; ``fill`` then skips
        the write.
        """

        result = await self._call("get", lambda store: store.get(self.generation_key))
        if not result.ok:
            self._log_store_error("cache.read_failed", result.error, DIAG_CACHE_READ)
            return None
        return result.value or "0"

    async def fill(self, document: ContentDocument, token: str | None) -> bool:
        """Cache a recomputed document unless an invalidation happened since ``token``.

        Returns:
            True if the document was written.
        """

        if token is None:
            return False
        payload = self._serialize(document)
        if payload is None:
            return False

        result = await self._call(
            "set_with_expiry_if",
            lambda store: store.set_with_expiry_if(
                self.key,
                payload,
                self.ttl_seconds,
                guard_key=self.generation_key,
                expected=token,
            ),
        )
        if not result.ok:
            self._log_store_error("cache.write_failed", result.error, DIAG_CACHE_WRITE)
            return False
        if not result.value:
            logger.info("cache.fill_skipped", extra={"cache_key": self.key, "reason": "invalidated"})
            return False
        logger.info("cache.set", extra={"cache_key": self.key, "ttl_s": self.ttl_seconds})
        return True

    async def invalidate(self) -> None:
        """Bump the generation, then delete the entry. Idempotent.

        The bump makes any fill computed before this call a no-op.
        """

        bumped = await self._call("incr", lambda store: store.incr(self.generation_key))
        if not bumped.ok:
            self._log_store_error("cache.invalidate_failed", bumped.error, DIAG_CACHE_INVALIDATE)

        result = await self._call("delete", lambda store: store.delete(self.key))
        if not result.ok:
            self._log_store_error("cache.invalidate_failed", result.error, DIAG_CACHE_INVALIDATE)
            return
        logger.info("cache.invalidated", extra={"cache_key": self.key})
