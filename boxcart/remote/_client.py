"""
Remote cart service — the server-authoritative cart over HTTP.

All calls return Result[..., RemoteError]; ApiTransport owns the status
mapping. Carts coming back from the server have their aggregates
recomputed locally so both cart modes share the same pricing rules.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import timedelta
from typing import Any

from kungfu import LazyCoroResult, Result, Ok, Error
from pydantic import ValidationError

from boxcart import cache as C
from boxcart._types import Clock, LineId, ProductId, utc_now
from boxcart.cart import Cart, CartLine
from boxcart.merge._types import MergeReceipt, MergeRequest
from boxcart.pricing import DEFAULT_WHOLESALE_MIN_BOXES, ClientTier, PricingSnapshot
from boxcart.remote._transport import ApiTransport
from boxcart.remote._types import (
    MergeResponse,
    RemoteCartPayload,
    RemoteError,
    RemoteErrorKind,
    RemoteValidation,
    ServerCart,
)

logger = logging.getLogger(__name__)

REMOTE_CART_KEY = "cart:remote"


# ═══════════════════════════════════════════════════════════════════════════════
# Conversion
# ═══════════════════════════════════════════════════════════════════════════════


def to_cart(
    payload: RemoteCartPayload,
    *,
    clock: Clock = utc_now,
    default_wholesale_min_boxes: int = DEFAULT_WHOLESALE_MIN_BOXES,
) -> Cart:
    """
    Server payload → client Cart.

    Lines that break cart invariants (non-positive quantity, a second
    line for the same product) are dropped with a warning.
    """
    now = clock()
    lines: list[CartLine] = []
    seen: set[ProductId] = set()
    for item in payload.items:
        try:
            snapshot = PricingSnapshot.from_mapping(
                {**item.product, "productId": item.product_id},
                default_wholesale_min_boxes=default_wholesale_min_boxes,
            )
            line = CartLine(
                id=str(item.id),
                product_id=item.product_id,
                quantity_boxes=item.quantity_boxes,
                snapshot=snapshot,
                added_at=item.added_at or now,
            )
        except ValueError as e:
            logger.warning(f"Dropping server cart line {item.id}: {e}")
            continue
        if line.product_id in seen:
            logger.warning(f"Dropping duplicate server cart line {item.id} for product {item.product_id}")
            continue
        seen.add(line.product_id)
        lines.append(line)
    return Cart(
        lines=tuple(lines),
        client_tier=ClientTier.parse(payload.client_tier),
        updated_at=now,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class RemoteCartService:
    """
    Authenticated cart API client.

    GET /cart is cached for cart_ttl; every mutation replaces the cached
    cart with the one the server returned (or drops it when the server
    returned none).

    Example:
        transport = ApiTransport("https://shop.example/api", token_provider=session.token)
        remote = RemoteCartService(transport)

        match await remote.add(product_id=42, quantity_boxes=2):
            case Ok(server_cart):
                print(server_cart.cart.total_amount)
            case Error(e) if e.retriable:
                ...
    """

    def __init__(
        self,
        transport: ApiTransport,
        *,
        cart_ttl: timedelta = timedelta(minutes=2),
        clock: Clock = utc_now,
        default_wholesale_min_boxes: int = DEFAULT_WHOLESALE_MIN_BOXES,
    ) -> None:
        self._transport = transport
        self._clock = clock
        self._default_min_boxes = default_wholesale_min_boxes
        self._cart_cache = (
            C.cache(lambda _: REMOTE_CART_KEY, lambda _: LazyCoroResult(self._fetch_cart))
            .tier(C.LocalTier(max_size=1, name="remote-cart"))
            .ttl(delta=cart_ttl)
            .clock(clock)
            .build()
        )

    async def _request(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Result[Any, RemoteError]:
        return await self._transport.request(method, path, body, headers=headers)

    def _parse_cart(self, data: Any) -> Result[ServerCart | None, RemoteError]:
        """
        Cart out of a response body.

        Mutation responses carry either {cart: {...}} or the cart itself;
        anything without an item list means "no cart in this response".
        """
        if isinstance(data, Mapping) and isinstance(data.get("cart"), Mapping):
            data = data["cart"]
        if not isinstance(data, Mapping) or "items" not in data:
            return Ok(None)
        try:
            payload = RemoteCartPayload.model_validate(data)
        except ValidationError as e:
            logger.error(f"Server cart did not validate: {e}")
            return Error(RemoteError(RemoteErrorKind.PROTOCOL, "malformed cart"))
        cart = to_cart(
            payload,
            clock=self._clock,
            default_wholesale_min_boxes=self._default_min_boxes,
        )
        server_cart = ServerCart(cart=cart, server_summary=payload.summary)
        if server_cart.summary_mismatch:
            logger.info("Server cart summary differs from local recomputation")
        return Ok(server_cart)

    # ───────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────

    async def _fetch_cart(self) -> Result[ServerCart, RemoteError]:
        match await self._request("GET", "/cart"):
            case Ok(data):
                pass
            case Error(e):
                return Error(e)
        match self._parse_cart(data):
            case Ok(None):
                return Ok(ServerCart(cart=Cart.empty()))
            case Ok(server_cart):
                return Ok(server_cart)
            case Error(e):
                return Error(e)

    async def fetch_cart(self, *, force_refresh: bool = False) -> Result[ServerCart, RemoteError]:
        """Current server cart, from cache while it is fresh."""
        result = await self._cart_cache.get(None, force_refresh=force_refresh)
        match result:
            case Ok(cached):
                return Ok(cached.value)
            case Error(RemoteError() as e):
                return Error(e)
            case Error(e):
                return Error(RemoteError(RemoteErrorKind.PROTOCOL, e.message))

    async def validate(self) -> Result[RemoteValidation, RemoteError]:
        """Server-side validation report. Advisory; the engine validates locally."""
        match await self._request("POST", "/cart/validate"):
            case Ok(data):
                pass
            case Error(e):
                return Error(e)
        try:
            return Ok(RemoteValidation.model_validate(data or {}))
        except ValidationError as e:
            logger.error(f"Validation report did not validate: {e}")
            return Error(RemoteError(RemoteErrorKind.PROTOCOL, "malformed validation report"))

    async def forget(self) -> None:
        """Drop the cached cart (sign-out)."""
        match await self._cart_cache.invalidate(None):
            case Error(e):
                logger.warning(f"Remote cart cache not cleared: {e.message}")
            case Ok(_):
                pass

    # ───────────────────────────────────────────────────────────────────────
    # Mutations
    # ───────────────────────────────────────────────────────────────────────

    async def _mutate(
        self,
        method: str,
        path: str,
        body: Any = None,
    ) -> Result[ServerCart, RemoteError]:
        """Run a mutation and return the server's cart afterwards."""
        match await self._request(method, path, body):
            case Ok(data):
                pass
            case Error(e):
                if e.retriable:
                    # Outcome unknown: whatever is cached may be wrong now.
                    await self.forget()
                return Error(e)

        match self._parse_cart(data):
            case Ok(None):
                return await self.fetch_cart(force_refresh=True)
            case Ok(server_cart):
                match await self._cart_cache.write(None, server_cart):
                    case Error(e):
                        logger.warning(f"Remote cart cache not updated: {e.message}")
                    case Ok(_):
                        pass
                return Ok(server_cart)
            case Error(e):
                await self.forget()
                return Error(e)

    async def add(
        self, product_id: ProductId, quantity_boxes: int = 1
    ) -> Result[ServerCart, RemoteError]:
        return await self._mutate(
            "POST", "/cart/add", {"productId": product_id, "quantityBoxes": quantity_boxes}
        )

    async def update_item(
        self, line_id: LineId, quantity_boxes: int
    ) -> Result[ServerCart, RemoteError]:
        if quantity_boxes <= 0:
            return await self.remove_item(line_id)
        return await self._mutate(
            "PUT", f"/cart/items/{line_id}", {"quantityBoxes": quantity_boxes}
        )

    async def remove_item(self, line_id: LineId) -> Result[ServerCart, RemoteError]:
        return await self._mutate("DELETE", f"/cart/items/{line_id}")

    async def clear(self) -> Result[ServerCart, RemoteError]:
        return await self._mutate("DELETE", "/cart/clear")

    async def set_client_tier(self, tier: ClientTier) -> Result[ServerCart, RemoteError]:
        return await self._mutate("POST", "/cart/client-type", {"clientType": tier.value})

    async def bulk_update(
        self, quantities: Mapping[LineId, int]
    ) -> Result[ServerCart, RemoteError]:
        """Set several line quantities in one request."""
        updates = [{"itemId": i, "quantityBoxes": q} for i, q in quantities.items()]
        return await self._mutate("PATCH", "/cart/bulk/update", {"updates": updates})

    async def bulk_remove(self, line_ids: Iterable[LineId]) -> Result[ServerCart, RemoteError]:
        return await self._mutate("DELETE", "/cart/bulk/remove", {"itemIds": list(line_ids)})

    async def merge(self, request: MergeRequest) -> Result[MergeReceipt, RemoteError]:
        """
        Submit a guest cart merge.

        The request token travels as Idempotency-Key so a resubmission
        after a lost response is recognised by the server.
        """
        result = await self._request(
            "POST",
            "/cart/merge",
            request.to_wire(),
            headers={"Idempotency-Key": request.token},
        )
        await self.forget()
        match result:
            case Ok(data):
                pass
            case Error(e):
                return Error(e)
        try:
            response = MergeResponse.model_validate(data or {})
        except ValidationError as e:
            logger.error(f"Merge response did not validate: {e}")
            return Error(RemoteError(RemoteErrorKind.PROTOCOL, "malformed merge response"))
        return Ok(MergeReceipt(merged_count=response.merged, stats=response.stats))


__all__ = ("RemoteCartService", "REMOTE_CART_KEY", "to_cart")
