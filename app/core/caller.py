"""Per-request caller identity.

``CallerContext`` is built once per request from the socket peer and the
``X-API-Key`` header, then passed by value to services instead of letting
them read ad hoc attributes off the request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Header, Request

from app.core.auth import resolve_api_key
from app.core.config import settings

UNKNOWN_ADDRESS = "unknown"


@dataclass(frozen=True)
class CallerContext:
    """Identity of the caller of the current request.

    Attributes:
        network_address: Client IP (always present; "unknown" if the peer is).
        account_id: Authenticated account, or None for anonymous callers.
        is_admin: Whether the caller authenticated with an admin key.
    """

    network_address: str
    account_id: str | None = None
    is_admin: bool = False

    @property
    def authenticated(self) -> bool:
        return self.account_id is not None


def resolve_network_address(request: Request, *, trust_proxy_headers: bool) -> str:
    """Return the client address, honoring X-Forwarded-For behind a trusted proxy."""

    if trust_proxy_headers:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else UNKNOWN_ADDRESS


async def get_caller_context(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> CallerContext:
    """FastAPI dependency building the CallerContext for this request.

    An invalid or missing key yields an anonymous caller; routes that need
    an account enforce it themselves (admin dependency, by-account limits).
    """

    address = resolve_network_address(
        request, trust_proxy_headers=settings.app.trust_proxy_headers
    )
    identity = resolve_api_key(x_api_key)
    if identity is None:
        return CallerContext(network_address=address)
    return CallerContext(
        network_address=address,
        account_id=identity.account_id,
        is_admin=identity.is_admin,
    )
