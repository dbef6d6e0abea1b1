"""
Cart — cart value types and the guest cart store.

    from boxcart import cart as K

    store = K.GuestCartStore(storage)
    outcome = await store.add(snapshot, quantity_boxes=2)
    cleared = await store.clear()
"""

from __future__ import annotations

from boxcart.cart._types import (
    CartLine,
    CartStats,
    compute_stats,
    Cart,
    LineAction,
    AddOutcome,
    CartStoreErrorKind,
    CartStoreError,
    InvariantViolation,
)
from boxcart.cart._codec import (
    encode_cart,
    decode_cart,
    DecodedCart,
)
from boxcart.cart._store import GUEST_CART_KEY, GuestCartStore, new_guest_line_id

__all__ = (
    "CartLine",
    "CartStats",
    "compute_stats",
    "Cart",
    "LineAction",
    "AddOutcome",
    "CartStoreErrorKind",
    "CartStoreError",
    "InvariantViolation",
    "encode_cart",
    "decode_cart",
    "DecodedCart",
    "GUEST_CART_KEY",
    "GuestCartStore",
    "new_guest_line_id",
)
