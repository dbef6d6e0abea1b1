"""
Pricing calculator — pure, total functions.

Nothing here raises: a missing snapshot prices at zero, a negative or
malformed quantity counts as zero boxes.
"""

from __future__ import annotations

from decimal import Decimal

from boxcart.pricing._types import (
    ZERO,
    ClientTier,
    LinePricing,
    PricingSnapshot,
    to_count,
)


def _boxes(quantity_boxes: object) -> int:
    return to_count(quantity_boxes, default=0, minimum=0)


# ═══════════════════════════════════════════════════════════════════════════════
# Tier Rule
# ═══════════════════════════════════════════════════════════════════════════════


def wholesale_applies(
    quantity_boxes: int,
    snapshot: PricingSnapshot | None,
    tier: ClientTier,
) -> bool:
    """WHOLESALE tier, threshold reached and a wholesale box price set."""
    if snapshot is None or tier is not ClientTier.WHOLESALE:
        return False
    if snapshot.wholesale_box_price is None:
        return False
    return _boxes(quantity_boxes) >= snapshot.wholesale_min_boxes


def unit_box_price(
    quantity_boxes: int,
    snapshot: PricingSnapshot | None,
    tier: ClientTier,
) -> Decimal:
    """Price of one box for this quantity and tier."""
    if snapshot is None:
        return ZERO
    wholesale = snapshot.wholesale_box_price
    if wholesale is not None and wholesale_applies(quantity_boxes, snapshot, tier):
        return wholesale
    return snapshot.effective_box_price


# ═══════════════════════════════════════════════════════════════════════════════
# price() / savings()
# ═══════════════════════════════════════════════════════════════════════════════


def price(
    quantity_boxes: int,
    snapshot: PricingSnapshot | None,
    tier: ClientTier = ClientTier.RETAIL,
) -> Decimal:
    """
    Monetary amount for a quantity of boxes.

    Example:
        snap = PricingSnapshot(1, box_price=100, wholesale_box_price=80)
        price(60, snap, ClientTier.WHOLESALE)  # Decimal("4800")
    """
    boxes = _boxes(quantity_boxes)
    return boxes * unit_box_price(boxes, snapshot, tier)


def savings(
    quantity_boxes: int,
    snapshot: PricingSnapshot | None,
    tier: ClientTier = ClientTier.RETAIL,
) -> Decimal:
    """Amount saved against retail. Zero unless the wholesale rule holds."""
    boxes = _boxes(quantity_boxes)
    if snapshot is None or snapshot.wholesale_box_price is None:
        return ZERO
    if not wholesale_applies(boxes, snapshot, tier):
        return ZERO
    per_box = snapshot.effective_box_price - snapshot.wholesale_box_price
    return boxes * max(ZERO, per_box)


def line_pricing(
    quantity_boxes: int,
    snapshot: PricingSnapshot | None,
    tier: ClientTier = ClientTier.RETAIL,
) -> LinePricing:
    """All pricing facts for one line."""
    boxes = _boxes(quantity_boxes)
    return LinePricing(
        unit_box_price=unit_box_price(boxes, snapshot, tier),
        amount=price(boxes, snapshot, tier),
        savings=savings(boxes, snapshot, tier),
        wholesale=wholesale_applies(boxes, snapshot, tier),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Presentation
# ═══════════════════════════════════════════════════════════════════════════════


def items_in(quantity_boxes: int, items_per_box: int) -> int:
    """Individual items contained in a number of boxes."""
    return _boxes(quantity_boxes) * to_count(items_per_box, default=1, minimum=1)


def _plural(count: int, one: str, many: str) -> str:
    return f"{count} {one if count == 1 else many}"


def format_quantity(quantity_boxes: int, items_per_box: int = 1) -> str:
    """
    Human string for a box quantity.

        format_quantity(3, 12)  # "3 boxes (36 items)"
        format_quantity(5, 1)   # "5 items"
    """
    boxes = _boxes(quantity_boxes)
    per_box = to_count(items_per_box, default=1, minimum=1)
    if per_box == 1:
        return _plural(boxes, "item", "items")
    return f"{_plural(boxes, 'box', 'boxes')} ({_plural(boxes * per_box, 'item', 'items')})"


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "wholesale_applies",
    "unit_box_price",
    "price",
    "savings",
    "line_pricing",
    "items_in",
    "format_quantity",
)
