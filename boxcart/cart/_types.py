"""
Cart types — lines, the cart value and its aggregates.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum, auto

from boxcart._types import LineId, ProductId, utc_now
from boxcart.pricing import (
    ZERO,
    ClientTier,
    LinePricing,
    PricingSnapshot,
    items_in,
    line_pricing,
)

# ═══════════════════════════════════════════════════════════════════════════════
# Cart Line
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    """
    One product in a cart.

    quantity_boxes is a positive integer for every line that exists;
    zero or less is a removal, never a state.
    """

    id: LineId
    product_id: ProductId
    quantity_boxes: int
    snapshot: PricingSnapshot
    added_at: datetime

    def __post_init__(self) -> None:
        q = self.quantity_boxes
        if isinstance(q, bool) or not isinstance(q, int) or q <= 0:
            raise ValueError(f"line {self.id}: quantity_boxes must be a positive int, got {q!r}")
        if self.snapshot.product_id != self.product_id:
            raise ValueError(
                f"line {self.id}: snapshot is for product {self.snapshot.product_id}, "
                f"line is for {self.product_id}"
            )

    @property
    def name(self) -> str:
        return self.snapshot.name

    @property
    def total_items(self) -> int:
        return items_in(self.quantity_boxes, self.snapshot.items_per_box)

    def with_quantity(self, quantity_boxes: int) -> CartLine:
        return replace(self, quantity_boxes=quantity_boxes)

    def with_snapshot(self, snapshot: PricingSnapshot) -> CartLine:
        return replace(self, snapshot=snapshot)

    def pricing(self, tier: ClientTier) -> LinePricing:
        return line_pricing(self.quantity_boxes, self.snapshot, tier)


# ═══════════════════════════════════════════════════════════════════════════════
# Aggregates
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartStats:
    """Derived totals. Only ever produced by compute_stats()."""

    total_boxes: int = 0
    total_items: int = 0
    total_amount: Decimal = ZERO
    total_savings: Decimal = ZERO
    line_count: int = 0


def compute_stats(lines: Iterable[CartLine], tier: ClientTier) -> CartStats:
    """Aggregates from scratch. Pure function of lines and tier."""
    total_boxes = 0
    total_items = 0
    total_amount = ZERO
    total_savings = ZERO
    line_count = 0
    for line in lines:
        p = line.pricing(tier)
        total_boxes += line.quantity_boxes
        total_items += line.total_items
        total_amount += p.amount
        total_savings += p.savings
        line_count += 1
    return CartStats(
        total_boxes=total_boxes,
        total_items=total_items,
        total_amount=total_amount,
        total_savings=total_savings,
        line_count=line_count,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Cart:
    """
    Immutable cart value.

    stats is not an init argument: it is recomputed from lines and
    client_tier every time a Cart is built, so it cannot drift.
    """

    lines: tuple[CartLine, ...] = ()
    client_tier: ClientTier = ClientTier.RETAIL
    updated_at: datetime = field(default_factory=utc_now)
    stats: CartStats = field(init=False)

    def __post_init__(self) -> None:
        lines = tuple(self.lines)
        seen: set[ProductId] = set()
        for line in lines:
            if line.product_id in seen:
                raise ValueError(f"duplicate line for product {line.product_id}")
            seen.add(line.product_id)
        object.__setattr__(self, "lines", lines)
        object.__setattr__(self, "stats", compute_stats(lines, self.client_tier))

    @classmethod
    def empty(cls, client_tier: ClientTier = ClientTier.RETAIL) -> Cart:
        return cls(lines=(), client_tier=client_tier)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    # Shorthands used throughout the UI layer
    @property
    def total_boxes(self) -> int:
        return self.stats.total_boxes

    @property
    def total_items(self) -> int:
        return self.stats.total_items

    @property
    def total_amount(self) -> Decimal:
        return self.stats.total_amount

    @property
    def total_savings(self) -> Decimal:
        return self.stats.total_savings

    @property
    def line_count(self) -> int:
        return self.stats.line_count

    def line(self, line_id: LineId) -> CartLine | None:
        return next((c for c in self.lines if c.id == line_id), None)

    def line_for(self, product_id: ProductId) -> CartLine | None:
        return next((c for c in self.lines if c.product_id == product_id), None)

    def pricing_of(self, line: CartLine) -> LinePricing:
        return line.pricing(self.client_tier)

    def with_lines(self, lines: Iterable[CartLine], *, at: datetime | None = None) -> Cart:
        return Cart(lines=tuple(lines), client_tier=self.client_tier, updated_at=at or utc_now())

    def with_tier(self, tier: ClientTier, *, at: datetime | None = None) -> Cart:
        return Cart(lines=self.lines, client_tier=tier, updated_at=at or utc_now())


# ═══════════════════════════════════════════════════════════════════════════════
# Store Results & Errors
# ═══════════════════════════════════════════════════════════════════════════════


class LineAction(Enum):
    """What add() did to the cart."""

    INSERTED = auto()
    UPDATED = auto()


@dataclass(frozen=True, slots=True)
class AddOutcome:
    """Cart after add() and the line it touched."""

    cart: Cart
    line: CartLine
    action: LineAction


class CartStoreErrorKind(Enum):
    """Guest cart store error kinds."""

    STORAGE = auto()  # Local persistence unavailable
    LINE_NOT_FOUND = auto()
    INVALID_QUANTITY = auto()


@dataclass(frozen=True, slots=True)
class CartStoreError:
    """Guest cart store error."""

    kind: CartStoreErrorKind
    message: str
    cause: object | None = None
    unsaved: Cart | None = None  # mutated cart that failed to persist

    @property
    def retriable(self) -> bool:
        return self.kind is CartStoreErrorKind.STORAGE


@dataclass(frozen=True, slots=True)
class InvariantViolation:
    """A stored line that broke a cart invariant. Logged and dropped."""

    line_id: str | None
    reason: str


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

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
)
