"""
Remote — the authenticated, server-authoritative cart.

    from boxcart import remote as R

    transport = R.ApiTransport(base_url, token_provider=session.token)
    remote = R.RemoteCartService(transport)
    cart = await remote.fetch_cart()
    cart = await remote.fetch_cart(force_refresh=True)
"""

from __future__ import annotations

from boxcart.remote._types import (
    Envelope,
    RemoteCartItem,
    RemoteCartSummary,
    RemoteCartPayload,
    MergeResponse,
    RemoteValidationIssue,
    RemoteValidation,
    ServerCart,
    RemoteErrorKind,
    RemoteError,
)
from boxcart.remote._transport import ApiTransport, TokenProvider, transport_error
from boxcart.remote._client import RemoteCartService, REMOTE_CART_KEY, to_cart

__all__ = (
    "Envelope",
    "RemoteCartItem",
    "RemoteCartSummary",
    "RemoteCartPayload",
    "MergeResponse",
    "RemoteValidationIssue",
    "RemoteValidation",
    "ServerCart",
    "RemoteErrorKind",
    "RemoteError",
    "ApiTransport",
    "TokenProvider",
    "transport_error",
    "RemoteCartService",
    "REMOTE_CART_KEY",
    "to_cart",
)
