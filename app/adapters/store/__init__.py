"""Shared key-value store adapters.

Rate limiting and content caching both talk to the store through the
``KeyValueStore`` interface, so Redis can be swapped for the in-memory
store in tests and single-process development.
"""

from __future__ import annotations

from app.adapters.store.base import KeyValueStore, StoreError, StoreResult, run_store_call
from app.adapters.store.connection import StoreConnection, build_store_factory
from app.adapters.store.in_memory import InMemoryKeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "StoreConnection",
    "StoreError",
    "StoreResult",
    "build_store_factory",
    "run_store_call",
]
