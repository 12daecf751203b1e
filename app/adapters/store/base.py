"""Key-value store interfaces.

Services depend on this abstraction (not the concrete client) so the
backend can be Redis in deployment and an in-memory store in tests.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Generic, TypeVar

T = TypeVar("T")


class StoreError(Exception):
    """Any connectivity, timeout, or protocol failure talking to the store.

    Internal only: services map it to a safe default and never let it
    reach the HTTP layer.
    """

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"{operation}: {reason}")
        self.operation = operation
        self.reason = reason


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Outcome of a single store call: either a value or a StoreError.

    Attributes:
        value: Returned value when the call succeeded.
        error: Failure when the call did not succeed.
    """

    value: T | None = None
    error: StoreError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class KeyValueStore(ABC):
    """Async contract of the shared key-value store."""

    @abstractmethod
    async def incr(self, key: str, amount: int = 1) -> int:
        """Atomically add ``amount``, creating the key at 0 first if absent."""
        raise NotImplementedError

    @abstractmethod
    async def incr_with_expiry(self, key: str, amount: int, seconds: int) -> int:
        """Atomically increment and set a TTL only if the key was just created.

        Returns:
            The post-increment value.
        """
        raise NotImplementedError

    @abstractmethod
    async def expire(self, key: str, seconds: int, *, only_if_unset: bool = False) -> bool:
        """Set a TTL on an existing key.

        Args:
            key: Store key.
            seconds: TTL in seconds.
            only_if_unset: Leave an existing TTL untouched (Redis ``EXPIRE NX``).

        Returns:
            True if the TTL was applied.
        """
        raise NotImplementedError

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds; -1 without TTL, -2 when the key is absent."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    async def set_with_expiry(self, key: str, value: str, seconds: int) -> None:
        raise NotImplementedError

    @abstractmethod
    async def set_with_expiry_if(
        self, key: str, value: str, seconds: int, *, guard_key: str, expected: str
    ) -> bool:
        """Set ``key`` only while ``guard_key`` still holds ``expected``.

        An absent guard key compares as ``"0"``.

        Returns:
            True if the value was written.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a key; deleting an absent key is not an error."""
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        """Release client resources. No-op by default."""


async def run_store_call(
    operation: str,
    call: Awaitable[T],
    *,
    timeout_seconds: float,
) -> StoreResult[T]:
    """Await a store call with a bounded timeout, capturing any failure.

    Timeouts and client exceptions both become a ``StoreError`` inside the
    returned result; nothing is raised.

    Args:
        operation: Short operation name used in diagnostics (e.g., "incr").
        call: The pending store coroutine.
        timeout_seconds: Upper bound before the call is treated as failed.

    Returns:
        StoreResult holding either the value or the error.
    """

    try:
        value = await asyncio.wait_for(call, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        return StoreResult(error=StoreError(operation, f"timed out after {timeout_seconds}s"))
    except StoreError as exc:
        return StoreResult(error=exc)
    except Exception as exc:  # noqa: BLE001 - any client failure is a store failure
        return StoreResult(error=StoreError(operation, f"{type(exc).__name__}: {exc}"))
    return StoreResult(value=value)
