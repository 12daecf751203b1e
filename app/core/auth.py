"""API key authentication.

Keys are validated against comma-separated lists from environment
variables; issuing keys happens elsewhere. Each entry is either ``key``
or ``key:account_id``. A bare key gets a stable account id derived from
its hash, so per-account rate limits work without exposing the key.

Design principles:
- Configuration-driven: keys managed via env vars, not hardcoded
- Testable: parsing and resolution are pure functions over settings

Route protection (``require_admin``) lives in ``app.api.deps``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiKeyIdentity:
    """Account resolved from a valid API key."""

    account_id: str
    is_admin: bool = False


def hash_api_key(key: str) -> str:
    """Short SHA-256 digest of a key, safe for logs and derived ids."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def parse_api_keys(keys_string: str | None) -> dict[str, str]:
    """Parse comma-separated API key entries into a key -> account id map.

    Args:
        keys_string: Entries like ``"key1,key2:acct-2"``, or None.

    Returns:
        Mapping of trimmed, non-empty keys to account ids.

    Examples:
        >>> parse_api_keys("k1:alice, k2 : bob")
        {'k1': 'alice', 'k2': 'bob'}
        >>> parse_api_keys(None)
        {}
    """
    if not keys_string:
        return {}

    keys: dict[str, str] = {}
    for entry in keys_string.split(","):
        key, _, account_id = entry.partition(":")
        key = key.strip()
        if not key:
            continue
        keys[key] = account_id.strip() or f"key-{hash_api_key(key)}"
    return keys


def _lookup(provided_key: str, keys: dict[str, str]) -> str | None:
    for key, account_id in keys.items():
        if hmac.compare_digest(provided_key.encode(), key.encode()):
            return account_id
    return None


def resolve_api_key(provided_key: str | None) -> ApiKeyIdentity | None:
    """Resolve an API key to the account it identifies.

    Admin keys are checked first, so a key listed in both lists is admin.

    Args:
        provided_key: Value of the X-API-Key header, if any.

    Returns:
        ApiKeyIdentity for a configured key, None for a missing or unknown key.
    """
    if not provided_key:
        return None

    account_id = _lookup(provided_key, parse_api_keys(settings.app.admin_api_keys))
    if account_id is not None:
        return ApiKeyIdentity(account_id=account_id, is_admin=True)

    account_id = _lookup(provided_key, parse_api_keys(settings.app.api_keys))
    if account_id is not None:
        return ApiKeyIdentity(account_id=account_id)

    logger.warning(
        "auth.unknown_key",
        extra={"key_fingerprint": hash_api_key(provided_key)},
    )
    return None
