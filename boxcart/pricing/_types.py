"""
Pricing types — client tier and the product pricing snapshot.

A snapshot is captured into every cart line. Its optional fields carry
explicit defaulting rules, so every fallback path is enumerable:

    box_price            absent → unit_price × items_per_box
    items_per_box        absent / < 1 → 1
    wholesale_box_price  absent → wholesale never applies
    wholesale_min_boxes  absent / < 1 → 50
    stock_boxes          absent / < 0 → 0
    is_active            absent → True
    money fields         malformed / negative → absent (0 for unit_price)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from boxcart._types import ProductId

ZERO = Decimal("0")
DEFAULT_WHOLESALE_MIN_BOXES = 50


# ═══════════════════════════════════════════════════════════════════════════════
# Client Tier
# ═══════════════════════════════════════════════════════════════════════════════


class ClientTier(Enum):
    """Pricing mode of a cart."""

    RETAIL = "RETAIL"
    WHOLESALE = "WHOLESALE"

    @classmethod
    def parse(cls, value: object) -> ClientTier:
        """Lenient parse. Anything unrecognised is RETAIL."""
        if isinstance(value, ClientTier):
            return value
        if isinstance(value, str) and value.upper() == cls.WHOLESALE.value:
            return cls.WHOLESALE
        return cls.RETAIL


# ═══════════════════════════════════════════════════════════════════════════════
# Field Coercion
# ═══════════════════════════════════════════════════════════════════════════════


def to_money(value: object) -> Decimal | None:
    """Decimal for a well-formed non-negative amount, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def to_count(value: object, *, default: int, minimum: int) -> int:
    """Integer count, or default when malformed or below minimum."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    if not number.is_finite() or number != number.to_integral_value():
        return default
    count = int(number)
    return count if count >= minimum else default


def to_flag(value: object, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no", "")
    return bool(value)


def to_product_id(value: object) -> ProductId:
    """Coerce wire/persisted product id. Raises ValueError when absent or malformed."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"invalid product id: {value!r}")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValueError(f"invalid product id: {value!r}") from None


# ═══════════════════════════════════════════════════════════════════════════════
# Pricing Snapshot
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PricingSnapshot:
    """
    Product pricing attributes at the moment they were captured.

    Fields are normalised on construction, so a snapshot built from
    loose wire data never carries None/NaN into arithmetic.
    """

    product_id: ProductId
    unit_price: Decimal = ZERO
    box_price: Decimal | None = None
    items_per_box: int = 1
    wholesale_box_price: Decimal | None = None
    wholesale_min_boxes: int = DEFAULT_WHOLESALE_MIN_BOXES
    stock_boxes: int = 0
    is_active: bool = True
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "product_id", to_product_id(self.product_id))
        object.__setattr__(self, "unit_price", to_money(self.unit_price) or ZERO)
        object.__setattr__(self, "box_price", to_money(self.box_price))
        object.__setattr__(
            self, "items_per_box", to_count(self.items_per_box, default=1, minimum=1)
        )
        object.__setattr__(
            self, "wholesale_box_price", to_money(self.wholesale_box_price)
        )
        object.__setattr__(
            self,
            "wholesale_min_boxes",
            to_count(
                self.wholesale_min_boxes,
                default=DEFAULT_WHOLESALE_MIN_BOXES,
                minimum=1,
            ),
        )
        object.__setattr__(
            self, "stock_boxes", to_count(self.stock_boxes, default=0, minimum=0)
        )
        object.__setattr__(self, "is_active", to_flag(self.is_active, default=True))
        object.__setattr__(self, "name", "" if self.name is None else str(self.name))

    @property
    def effective_box_price(self) -> Decimal:
        """Price of one box at retail."""
        if self.box_price is not None:
            return self.box_price
        return self.unit_price * self.items_per_box

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        default_wholesale_min_boxes: int = DEFAULT_WHOLESALE_MIN_BOXES,
    ) -> PricingSnapshot:
        """
        Build from a camelCase mapping (wire or persisted form).

        Accepts the catalog's legacy names too: `id`, `price`,
        `stockQuantity`. Raises ValueError only when the product id is
        missing or malformed.
        """
        product_id = data.get("productId", data.get("id"))
        stock = data.get("stockBoxes", data.get("stockQuantity"))
        min_boxes = data.get("wholesaleMinBoxes")
        return cls(
            product_id=product_id,  # type: ignore[arg-type]
            unit_price=data.get("unitPrice", data.get("price")),  # type: ignore[arg-type]
            box_price=data.get("boxPrice"),
            items_per_box=data.get("itemsPerBox"),  # type: ignore[arg-type]
            wholesale_box_price=data.get("wholesaleBoxPrice"),
            wholesale_min_boxes=(
                default_wholesale_min_boxes if min_boxes is None else min_boxes
            ),
            stock_boxes=stock,  # type: ignore[arg-type]
            is_active=data.get("isActive", True),
            name=data.get("name", ""),
        )

    def to_mapping(self) -> dict[str, Any]:
        """camelCase mapping; money as strings so JSON never sees a float."""
        return {
            "productId": self.product_id,
            "name": self.name,
            "unitPrice": str(self.unit_price),
            "boxPrice": None if self.box_price is None else str(self.box_price),
            "itemsPerBox": self.items_per_box,
            "wholesaleBoxPrice": (
                None
                if self.wholesale_box_price is None
                else str(self.wholesale_box_price)
            ),
            "wholesaleMinBoxes": self.wholesale_min_boxes,
            "stockBoxes": self.stock_boxes,
            "isActive": self.is_active,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Line Pricing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LinePricing:
    """Effective price of one line under a tier."""

    unit_box_price: Decimal
    amount: Decimal
    savings: Decimal
    wholesale: bool


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ZERO",
    "DEFAULT_WHOLESALE_MIN_BOXES",
    "ClientTier",
    "PricingSnapshot",
    "LinePricing",
    "to_money",
    "to_count",
    "to_flag",
    "to_product_id",
)
