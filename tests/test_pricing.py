"""Tests for box/wholesale pricing rules."""

from decimal import Decimal

import pytest

from boxcart.pricing import (
    ClientTier,
    PricingSnapshot,
    format_quantity,
    items_in,
    line_pricing,
    price,
    savings,
    wholesale_applies,
)

from conftest import make_snapshot

RETAIL = ClientTier.RETAIL
WHOLESALE = ClientTier.WHOLESALE


def test_retail_uses_box_price():
    snap = make_snapshot()
    assert price(3, snap, RETAIL) == Decimal("300")
    assert savings(3, snap, RETAIL) == Decimal("0")


def test_box_price_falls_back_to_unit_price_times_items_per_box():
    snap = PricingSnapshot(7, unit_price=Decimal("2.50"), items_per_box=12)
    assert price(2, snap, RETAIL) == Decimal("60.00")


def test_wholesale_at_threshold():
    snap = make_snapshot(wholesale_min_boxes=50)
    assert wholesale_applies(50, snap, WHOLESALE)
    assert price(50, snap, WHOLESALE) == Decimal("4000")
    assert savings(50, snap, WHOLESALE) == Decimal("1000")


def test_wholesale_below_threshold_prices_at_retail():
    snap = make_snapshot(wholesale_min_boxes=50)
    assert not wholesale_applies(49, snap, WHOLESALE)
    assert price(49, snap, WHOLESALE) == Decimal("4900")
    assert savings(49, snap, WHOLESALE) == Decimal("0")


def test_retail_tier_never_gets_wholesale_price():
    snap = make_snapshot()
    assert price(60, snap, RETAIL) == Decimal("6000")
    assert savings(60, snap, RETAIL) == Decimal("0")


def test_wholesale_without_wholesale_price_prices_at_retail():
    snap = make_snapshot(wholesale_box_price=None)
    assert price(60, snap, WHOLESALE) == Decimal("6000")
    assert not line_pricing(60, snap, WHOLESALE).wholesale


def test_wholesale_example_sixty_boxes():
    snap = PricingSnapshot(1, box_price=100, wholesale_box_price=80, wholesale_min_boxes=50)
    assert price(60, snap, WHOLESALE) == Decimal("4800")
    assert savings(60, snap, WHOLESALE) == Decimal("1200")


@pytest.mark.parametrize("quantity", [0, -3, None, "x", 2.5])
def test_degenerate_quantities_price_at_zero(quantity):
    snap = make_snapshot()
    assert price(quantity, snap, RETAIL) == Decimal("0")
    assert savings(quantity, snap, WHOLESALE) == Decimal("0")


def test_missing_snapshot_prices_at_zero():
    assert price(5, None, RETAIL) == Decimal("0")
    assert savings(5, None, WHOLESALE) == Decimal("0")
    assert line_pricing(5, None, WHOLESALE).unit_box_price == Decimal("0")


def test_malformed_snapshot_fields_are_normalised():
    snap = PricingSnapshot(
        "3",  # type: ignore[arg-type]
        unit_price="abc",  # type: ignore[arg-type]
        box_price=float("nan"),  # type: ignore[arg-type]
        items_per_box=0,
        wholesale_box_price=-5,  # type: ignore[arg-type]
        stock_boxes=None,  # type: ignore[arg-type]
    )
    assert snap.product_id == 3
    assert snap.unit_price == Decimal("0")
    assert snap.box_price is None
    assert snap.items_per_box == 1
    assert snap.wholesale_box_price is None
    assert snap.stock_boxes == 0
    assert price(4, snap, WHOLESALE) == Decimal("0")


def test_snapshot_from_mapping_accepts_legacy_names():
    snap = PricingSnapshot.from_mapping(
        {"id": 9, "price": "1.5", "itemsPerBox": 10, "stockQuantity": 4, "name": "Tea"}
    )
    assert snap.product_id == 9
    assert snap.effective_box_price == Decimal("15.0")
    assert snap.stock_boxes == 4
    assert snap.wholesale_min_boxes == 50


def test_snapshot_mapping_keeps_money_as_strings():
    data = make_snapshot(box_price=Decimal("99.90")).to_mapping()
    assert data["boxPrice"] == "99.90"
    assert PricingSnapshot.from_mapping(data).box_price == Decimal("99.90")


def test_client_tier_parse_is_lenient():
    assert ClientTier.parse("wholesale") is WHOLESALE
    assert ClientTier.parse("WHOLESALE") is WHOLESALE
    assert ClientTier.parse(None) is RETAIL
    assert ClientTier.parse("vip") is RETAIL


def test_items_in_boxes():
    assert items_in(3, 12) == 36
    assert items_in(-1, 12) == 0


def test_format_quantity():
    assert format_quantity(3, 12) == "3 boxes (36 items)"
    assert format_quantity(1, 6) == "1 box (6 items)"
    assert format_quantity(5, 1) == "5 items"
    assert format_quantity(1, 1) == "1 item"
