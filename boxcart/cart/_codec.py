"""
Cart codec — the persisted record layout.

    {
        "lines": [
            {"id": ..., "productId": ..., "quantityBoxes": ...,
             "priceSnapshot": {...}, "addedAt": "2026-01-01T00:00:00+00:00"}
        ],
        "clientTier": "RETAIL" | "WHOLESALE",
        "updatedAt": "..."
    }

Older app builds wrote {"items": [{"quantity", "product"}], "clientType"};
decode_cart() reads both.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from boxcart._types import utc_now
from boxcart.cart._types import Cart, CartLine, InvariantViolation
from boxcart.pricing import DEFAULT_WHOLESALE_MIN_BOXES, ClientTier, PricingSnapshot
from boxcart.pricing._types import to_product_id

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Encode
# ═══════════════════════════════════════════════════════════════════════════════


def encode_line(line: CartLine) -> dict[str, Any]:
    return {
        "id": line.id,
        "productId": line.product_id,
        "quantityBoxes": line.quantity_boxes,
        "priceSnapshot": line.snapshot.to_mapping(),
        "addedAt": line.added_at.isoformat(),
    }


def encode_cart(cart: Cart) -> dict[str, Any]:
    """JSON-ready record. Aggregates are never persisted."""
    return {
        "lines": [encode_line(line) for line in cart.lines],
        "clientTier": cart.client_tier.value,
        "updatedAt": cart.updated_at.isoformat(),
    }


# ═══════════════════════════════════════════════════════════════════════════════
# Decode
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class DecodedCart:
    """Decoded cart plus whatever had to be dropped to get it."""

    cart: Cart
    violations: tuple[InvariantViolation, ...] = ()
    corrupt: bool = False


def _timestamp(value: object) -> datetime:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return utc_now()
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return utc_now()
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return utc_now()


def decode_line(
    data: Mapping[str, Any],
    *,
    default_wholesale_min_boxes: int = DEFAULT_WHOLESALE_MIN_BOXES,
) -> CartLine:
    """Raises ValueError/TypeError when the line breaks an invariant."""
    raw_snapshot = data.get("priceSnapshot", data.get("product"))
    if not isinstance(raw_snapshot, Mapping):
        raise ValueError("missing price snapshot")
    product_id = to_product_id(
        data.get("productId", raw_snapshot.get("productId", raw_snapshot.get("id")))
    )
    snapshot = PricingSnapshot.from_mapping(
        {**raw_snapshot, "productId": product_id},
        default_wholesale_min_boxes=default_wholesale_min_boxes,
    )
    return CartLine(
        id=str(data["id"]),
        product_id=product_id,
        quantity_boxes=data.get("quantityBoxes", data.get("quantity")),  # type: ignore[arg-type]
        snapshot=snapshot,
        added_at=_timestamp(data.get("addedAt")),
    )


def decode_cart(
    data: object,
    *,
    default_wholesale_min_boxes: int = DEFAULT_WHOLESALE_MIN_BOXES,
) -> DecodedCart:
    """
    Decode a persisted record.

    Never raises. A record of the wrong shape decodes as an empty cart
    (corrupt=True); individual bad lines are dropped and reported as
    violations. Duplicate products keep their first line.
    """
    if data is None:
        return DecodedCart(cart=Cart.empty())
    if not isinstance(data, Mapping):
        logger.warning(f"Guest cart record is {type(data).__name__}, not a mapping")
        return DecodedCart(cart=Cart.empty(), corrupt=True)

    raw_lines = data.get("lines", data.get("items"))
    tier = ClientTier.parse(data.get("clientTier", data.get("clientType")))
    if raw_lines is None:
        raw_lines = []
    if not isinstance(raw_lines, list):
        logger.warning("Guest cart record has no line list")
        return DecodedCart(cart=Cart.empty(tier), corrupt=True)

    lines: list[CartLine] = []
    seen: set[int] = set()
    violations: list[InvariantViolation] = []
    for raw in raw_lines:
        line_id = str(raw.get("id")) if isinstance(raw, Mapping) else None
        if not isinstance(raw, Mapping):
            violations.append(InvariantViolation(line_id, "line is not a mapping"))
            continue
        try:
            line = decode_line(raw, default_wholesale_min_boxes=default_wholesale_min_boxes)
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            violations.append(InvariantViolation(line_id, str(e)))
            continue
        if line.product_id in seen:
            violations.append(
                InvariantViolation(line.id, f"duplicate line for product {line.product_id}")
            )
            continue
        seen.add(line.product_id)
        lines.append(line)

    for v in violations:
        logger.warning(f"Dropping guest cart line {v.line_id}: {v.reason}")

    cart = Cart(lines=tuple(lines), client_tier=tier, updated_at=_timestamp(data.get("updatedAt")))
    return DecodedCart(cart=cart, violations=tuple(violations))


__all__ = ("encode_line", "encode_cart", "decode_line", "decode_cart", "DecodedCart")
