"""
Guest cart store — one persisted cart for an unauthenticated session.

Every operation is get → mutate → recompute → persist, executed under
a single per-store lock so concurrent calls apply one at a time in
arrival order, each seeing the previous one's committed cart.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from kungfu import Result, Ok, Error

from boxcart._types import Clock, LineId, ProductId, utc_now
from boxcart.cache import CacheExecutor
from boxcart.cart._codec import decode_cart, encode_cart
from boxcart.cart._types import (
    AddOutcome,
    Cart,
    CartLine,
    CartStoreError,
    CartStoreErrorKind,
    LineAction,
)
from boxcart.pricing import DEFAULT_WHOLESALE_MIN_BOXES, ClientTier, PricingSnapshot

logger = logging.getLogger(__name__)

GUEST_CART_KEY = "guest_cart"


def new_guest_line_id() -> LineId:
    return f"guest-{uuid.uuid4().hex}"


def _is_quantity(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class GuestCartStore:
    """
    CRUD over the persisted guest cart.

    Backed by a cache executor used purely as keyed storage (no expiry).
    Failures come back as Error(CartStoreError), never as exceptions.

    Example:
        storage = C.cache(lambda k: k).tier(device_tier).forever().build()
        store = GuestCartStore(storage)

        match await store.add(snapshot, 2):
            case Ok(outcome):
                print(outcome.action, outcome.cart.total_amount)
            case Error(e):
                print(e.kind, e.message)
    """

    def __init__(
        self,
        storage: CacheExecutor[str, Any, Any],
        *,
        key: str = GUEST_CART_KEY,
        clock: Clock = utc_now,
        line_id_factory: Callable[[], LineId] = new_guest_line_id,
        default_wholesale_min_boxes: int = DEFAULT_WHOLESALE_MIN_BOXES,
    ) -> None:
        self._storage = storage
        self._key = key
        self._clock = clock
        self._new_line_id = line_id_factory
        self._default_min_boxes = default_wholesale_min_boxes
        self._lock = asyncio.Lock()

    # ───────────────────────────────────────────────────────────────────────
    # Storage primitives (callers hold the lock)
    # ───────────────────────────────────────────────────────────────────────

    async def _read(self) -> Result[Cart, CartStoreError]:
        result = await self._storage.read(self._key)
        match result:
            case Ok(None):
                return Ok(Cart.empty())
            case Ok(entry):
                decoded = decode_cart(
                    entry.payload, default_wholesale_min_boxes=self._default_min_boxes
                )
                if decoded.corrupt:
                    logger.warning("Guest cart record was corrupt; treating as empty")
                return Ok(decoded.cart)
            case Error(e):
                return Error(CartStoreError(CartStoreErrorKind.STORAGE, e.message, cause=e))

    async def _write(self, cart: Cart) -> Result[Cart, CartStoreError]:
        result = await self._storage.write(self._key, encode_cart(cart))
        match result:
            case Ok(_):
                return Ok(cart)
            case Error(e):
                logger.error(f"Guest cart persist failed: {e.message}")
                return Error(
                    CartStoreError(
                        CartStoreErrorKind.STORAGE, e.message, cause=e, unsaved=cart
                    )
                )

    async def _delete(self) -> Result[Cart, CartStoreError]:
        result = await self._storage.invalidate(self._key)
        match result:
            case Ok(_):
                logger.info("Guest cart cleared")
                return Ok(Cart.empty())
            case Error(e):
                logger.error(f"Guest cart clear failed: {e.message}")
                return Error(
                    CartStoreError(CartStoreErrorKind.STORAGE, e.message, cause=e)
                )

    # ───────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────

    async def load(self) -> Result[Cart, CartStoreError]:
        """Current cart. No record → empty RETAIL cart."""
        async with self._lock:
            return await self._read()

    async def quantity_of(self, product_id: ProductId) -> Result[int, CartStoreError]:
        """Boxes of one product in the cart (0 when absent)."""
        match await self.load():
            case Ok(cart):
                line = cart.line_for(product_id)
                return Ok(line.quantity_boxes if line else 0)
            case Error(e):
                return Error(e)

    async def has_items(self) -> Result[bool, CartStoreError]:
        match await self.load():
            case Ok(cart):
                return Ok(not cart.is_empty)
            case Error(e):
                return Error(e)

    # ───────────────────────────────────────────────────────────────────────
    # Mutations
    # ───────────────────────────────────────────────────────────────────────

    async def add(
        self,
        snapshot: PricingSnapshot,
        quantity_boxes: int = 1,
        tier: ClientTier | None = None,
    ) -> Result[AddOutcome, CartStoreError]:
        """
        Add boxes of a product.

        An existing line for the product is incremented and re-stamped
        with the given snapshot; otherwise a new line is inserted.
        """
        if not _is_quantity(quantity_boxes) or quantity_boxes <= 0:
            return Error(
                CartStoreError(
                    CartStoreErrorKind.INVALID_QUANTITY,
                    f"cannot add {quantity_boxes!r} boxes",
                )
            )

        async with self._lock:
            match await self._read():
                case Ok(cart):
                    pass
                case Error(e):
                    return Error(e)

            now = self._clock()
            existing = cart.line_for(snapshot.product_id)
            if existing is not None:
                line = existing.with_quantity(existing.quantity_boxes + quantity_boxes)
                line = line.with_snapshot(snapshot)
                lines = [line if c.id == existing.id else c for c in cart.lines]
                action = LineAction.UPDATED
            else:
                line = CartLine(
                    id=self._new_line_id(),
                    product_id=snapshot.product_id,
                    quantity_boxes=quantity_boxes,
                    snapshot=snapshot,
                    added_at=now,
                )
                lines = [*cart.lines, line]
                action = LineAction.INSERTED

            updated = Cart(
                lines=tuple(lines),
                client_tier=tier or cart.client_tier,
                updated_at=now,
            )
            match await self._write(updated):
                case Ok(saved):
                    return Ok(AddOutcome(cart=saved, line=line, action=action))
                case Error(e):
                    return Error(e)

    async def set_quantity(
        self, line_id: LineId, quantity_boxes: int
    ) -> Result[Cart, CartStoreError]:
        """Overwrite a line's quantity. Zero or less removes the line."""
        if not _is_quantity(quantity_boxes):
            return Error(
                CartStoreError(
                    CartStoreErrorKind.INVALID_QUANTITY,
                    f"quantity must be an integer, got {quantity_boxes!r}",
                )
            )

        async with self._lock:
            match await self._read():
                case Ok(cart):
                    pass
                case Error(e):
                    return Error(e)

            if cart.line(line_id) is None:
                if quantity_boxes <= 0:
                    return Ok(cart)
                return Error(
                    CartStoreError(
                        CartStoreErrorKind.LINE_NOT_FOUND, f"no cart line {line_id}"
                    )
                )

            if quantity_boxes <= 0:
                lines = [c for c in cart.lines if c.id != line_id]
            else:
                lines = [
                    c.with_quantity(quantity_boxes) if c.id == line_id else c
                    for c in cart.lines
                ]
            return await self._write(cart.with_lines(lines, at=self._clock()))

    async def remove(self, line_id: LineId) -> Result[Cart, CartStoreError]:
        """Delete a line. Absent line is a no-op."""
        return await self.remove_many((line_id,))

    async def remove_many(self, line_ids: Iterable[LineId]) -> Result[Cart, CartStoreError]:
        """Delete several lines at once. Unknown ids are ignored."""
        doomed = set(line_ids)
        async with self._lock:
            match await self._read():
                case Ok(cart):
                    pass
                case Error(e):
                    return Error(e)

            kept = [c for c in cart.lines if c.id not in doomed]
            if len(kept) == len(cart.lines):
                return Ok(cart)
            return await self._write(cart.with_lines(kept, at=self._clock()))

    async def replace_lines(self, lines: Iterable[CartLine]) -> Result[Cart, CartStoreError]:
        """Overwrite all lines, keeping the tier. Used for reconciled carts."""
        async with self._lock:
            match await self._read():
                case Ok(cart):
                    pass
                case Error(e):
                    return Error(e)
            return await self._write(cart.with_lines(lines, at=self._clock()))

    async def update(self, fn: Callable[[Cart], Cart]) -> Result[Cart, CartStoreError]:
        """
        Read, transform and persist under the store lock.

        fn must be pure; returning the same cart object skips the write.
        """
        async with self._lock:
            match await self._read():
                case Ok(cart):
                    pass
                case Error(e):
                    return Error(e)
            updated = fn(cart)
            if updated is cart:
                return Ok(cart)
            return await self._write(updated)

    async def subtract(
        self, quantities: Mapping[ProductId, int]
    ) -> Result[Cart, CartStoreError]:
        """
        Take boxes out of the cart, per product.

        Lines that drop to zero go away; when nothing is left the record
        is deleted as in clear(). Used to retire lines after a merge.
        """
        async with self._lock:
            match await self._read():
                case Ok(cart):
                    pass
                case Error(e):
                    return Error(e)

            remaining: list[CartLine] = []
            for line in cart.lines:
                left = line.quantity_boxes - quantities.get(line.product_id, 0)
                if left >= line.quantity_boxes:
                    remaining.append(line)
                elif left > 0:
                    remaining.append(line.with_quantity(left))

            if remaining:
                return await self._write(cart.with_lines(remaining, at=self._clock()))
            return await self._delete()

    async def set_tier(self, tier: ClientTier) -> Result[Cart, CartStoreError]:
        """Re-stamp the tier. Quantities are untouched; prices follow the tier."""
        async with self._lock:
            match await self._read():
                case Ok(cart):
                    pass
                case Error(e):
                    return Error(e)
            return await self._write(cart.with_tier(tier, at=self._clock()))

    async def save(self, cart: Cart) -> Result[Cart, CartStoreError]:
        """Persist a cart as-is. Retry path for an `unsaved` cart."""
        async with self._lock:
            return await self._write(cart)

    async def clear(self) -> Result[Cart, CartStoreError]:
        """Delete the record entirely."""
        async with self._lock:
            return await self._delete()


__all__ = ("GUEST_CART_KEY", "GuestCartStore", "new_guest_line_id")
