"""Store-backed fixed-window rate limiter.

Each (operation, caller) pair owns one counter in the shared store. The
first request of a window creates the counter and sets its TTL; later
requests only increment it, so sustained traffic can't keep a window open.
When the counter's TTL lapses the next request starts a fresh window.

Store failures fail open: the request is allowed and the failure logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.adapters.store.base import KeyValueStore, StoreResult, run_store_call
from app.adapters.store.connection import StoreConnection
from app.core.caller import CallerContext
from app.core.errors import AuthenticationAppError, RateLimitExceededError

logger = logging.getLogger(__name__)

KEY_PREFIX = "rate-limit"

DIAG_STORE_UNAVAILABLE = "0168"
DIAG_MISSING_ACCOUNT = "0015"
DIAG_LIMIT_EXCEEDED = "0017"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Declarative limit for one operation.

    Attributes:
        operation_id: Stable name of the guarded operation (route or resolver).
        max: Maximum units allowed per window.
        window_seconds: Window length, counted from the first request.
        by_account: Key on the authenticated account instead of network address.
        cost: Units one call consumes (e.g., number of uploaded files).
    """

    operation_id: str
    max: int = 1000
    window_seconds: int = 60 * 60 * 24
    by_account: bool = False
    cost: int = 1

    def __post_init__(self) -> None:
        if not self.operation_id:
            raise ValueError("operation_id must be a non-empty string")
        if self.max < 1:
            raise ValueError("max must be >= 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if self.cost < 1:
            raise ValueError("cost must be >= 1")


@dataclass(frozen=True)
class RateLimitStatus:
    """Outcome of an allowed ``check_and_record`` call.

    Attributes:
        count: Units recorded in the current window (0 when degraded).
        limit: Policy maximum.
        remaining: Units left in the current window.
        window_seconds: Policy window length.
        degraded: True when the store failed and the request was let through.
    """

    count: int
    limit: int
    remaining: int
    window_seconds: int
    degraded: bool = False


def build_rate_limit_key(policy: RateLimitPolicy, caller: CallerContext) -> str:
    """Build the counter key shared by every call of the same caller+operation."""

    identity = caller.account_id if policy.by_account else caller.network_address
    return f"{KEY_PREFIX}:{policy.operation_id}:{identity}"


class RateLimiter:
    """Guards operations against excessive invocation per caller.

    Holds no counters itself; all state lives in the shared store, and
    concurrent requests coordinate only through its atomic increment.
    """

    def __init__(
        self,
        connection: StoreConnection,
        *,
        timeout_seconds: float = 1.0,
        atomic_expiry: bool = True,
    ) -> None:
        """Initialize the limiter.

        Args:
            connection: Shared store connection.
            timeout_seconds: Bound for each store call.
            atomic_expiry: Increment and set TTL in one store-side step. When
                False, use INCR followed by ``EXPIRE NX`` for stores without
                scripting.
        """
        self._connection = connection
        self._timeout = timeout_seconds
        self._atomic_expiry = atomic_expiry

    async def _record(self, key: str, policy: RateLimitPolicy) -> StoreResult[int]:
        connected = await run_store_call(
            "connect", self._connection.get_store(), timeout_seconds=self._timeout
        )
        if not connected.ok:
            return StoreResult(error=connected.error)
        store = connected.value

        if self._atomic_expiry:
            return await run_store_call(
                "incr_with_expiry",
                store.incr_with_expiry(key, policy.cost, policy.window_seconds),
                timeout_seconds=self._timeout,
            )
        return await self._record_two_step(store, key, policy)

    async def _record_two_step(
        self, store: KeyValueStore, key: str, policy: RateLimitPolicy
    ) -> StoreResult[int]:
        result = await run_store_call(
            "incr", store.incr(key, policy.cost), timeout_seconds=self._timeout
        )
        if not result.ok or result.value != policy.cost:
            return result
        # New window. NX keeps a racing second setter from moving the deadline.
        expired = await run_store_call(
            "expire",
            store.expire(key, policy.window_seconds, only_if_unset=True),
            timeout_seconds=self._timeout,
        )
        if not expired.ok:
            return StoreResult(error=expired.error)
        return result

    async def check_and_record(
        self, policy: RateLimitPolicy, caller: CallerContext
    ) -> RateLimitStatus:
        """Record one call of ``policy.operation_id`` and enforce its limit.

        Args:
            policy: Limit to enforce.
            caller: Identity of the current request.

        Returns:
            RateLimitStatus for the allowed call.

        Raises:
            AuthenticationAppError: ``by_account`` policy without an
                authenticated caller. Checked before the store is touched.
            RateLimitExceededError: The caller is over quota for this window.
        """

        if policy.by_account and not caller.account_id:
            logger.warning(
                "rate_limit.missing_account",
                extra={
                    "operation": policy.operation_id,
                    "diagnostic_code": DIAG_MISSING_ACCOUNT,
                },
            )
            raise AuthenticationAppError(
                code="unauthorized",
                message="Authentication required for this operation",
                details={"operation": policy.operation_id},
            )

        key = build_rate_limit_key(policy, caller)
        result = await self._record(key, policy)

        if not result.ok:
            logger.error(
                "rate_limit.store_unavailable",
                extra={
                    "operation": policy.operation_id,
                    "store_operation": result.error.operation,
                    "error_reason": result.error.reason,
                    "diagnostic_code": DIAG_STORE_UNAVAILABLE,
                },
            )
            return RateLimitStatus(
                count=0,
                limit=policy.max,
                remaining=policy.max,
                window_seconds=policy.window_seconds,
                degraded=True,
            )

        count = int(result.value)
        if count > policy.max:
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "operation": policy.operation_id,
                    "by_account": policy.by_account,
                    "count": count,
                    "limit": policy.max,
                    "window_s": policy.window_seconds,
                    "diagnostic_code": DIAG_LIMIT_EXCEEDED,
                },
            )
            raise RateLimitExceededError(
                operation_id=policy.operation_id,
                limit=policy.max,
                window_seconds=policy.window_seconds,
            )

        logger.debug(
            "rate_limit.allowed",
            extra={"operation": policy.operation_id, "count": count, "limit": policy.max},
        )
        return RateLimitStatus(
            count=count,
            limit=policy.max,
            remaining=max(0, policy.max - count),
            window_seconds=policy.window_seconds,
        )
