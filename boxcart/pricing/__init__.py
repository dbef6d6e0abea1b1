"""
Pricing — box prices under retail and wholesale tiers.

    from boxcart import pricing as Pr

    snap = Pr.PricingSnapshot(product_id=7, box_price=100, wholesale_box_price=80)
    Pr.price(60, snap, Pr.ClientTier.WHOLESALE)    # Decimal("4800")
    Pr.savings(60, snap, Pr.ClientTier.WHOLESALE)  # Decimal("1200")
"""

from __future__ import annotations

from boxcart.pricing._types import (
    ZERO,
    DEFAULT_WHOLESALE_MIN_BOXES,
    ClientTier,
    PricingSnapshot,
    LinePricing,
)
from boxcart.pricing._calc import (
    wholesale_applies,
    unit_box_price,
    price,
    savings,
    line_pricing,
    items_in,
    format_quantity,
)

__all__ = (
    "ZERO",
    "DEFAULT_WHOLESALE_MIN_BOXES",
    "ClientTier",
    "PricingSnapshot",
    "LinePricing",
    "wholesale_applies",
    "unit_box_price",
    "price",
    "savings",
    "line_pricing",
    "items_in",
    "format_quantity",
)
