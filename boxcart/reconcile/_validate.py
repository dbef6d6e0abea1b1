"""
Reconciliation — check cart lines against live catalog truth.

Pure: no I/O, no clock. Every line is examined, in input order; the
first rule that fires decides its fate.

    1. product missing       → NOT_FOUND          ERROR    dropped
    2. product inactive      → INACTIVE           ERROR    dropped
    3. zero stock            → OUT_OF_STOCK       ERROR    dropped
    4. quantity > stock      → QUANTITY_ADJUSTED  WARNING  clamped, refreshed
    5. otherwise             →                             refreshed
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from boxcart._types import ProductId
from boxcart.cart import Cart, CartLine
from boxcart.pricing import PricingSnapshot, format_quantity
from boxcart.reconcile._types import (
    IssueKind,
    ReconciliationIssue,
    ReconciliationResult,
    Severity,
)

UNKNOWN_PRODUCT = "Unknown product"


def _dropped(kind: IssueKind, line: CartLine, name: str, message: str) -> ReconciliationIssue:
    return ReconciliationIssue(
        kind=kind,
        line_id=line.id,
        product_name=name,
        message=message,
        severity=Severity.ERROR,
    )


def check_line(
    line: CartLine, truth: PricingSnapshot | None
) -> tuple[CartLine | None, ReconciliationIssue | None]:
    """Reconcile one line. Returns (kept line or None, issue or None)."""
    if truth is None:
        name = line.name or UNKNOWN_PRODUCT
        return None, _dropped(IssueKind.NOT_FOUND, line, name, "Product not found")

    name = truth.name or line.name or UNKNOWN_PRODUCT
    if not truth.is_active:
        return None, _dropped(IssueKind.INACTIVE, line, name, "Product is no longer sold")
    if truth.stock_boxes == 0:
        return None, _dropped(IssueKind.OUT_OF_STOCK, line, name, "Product is out of stock")

    if line.quantity_boxes > truth.stock_boxes:
        per_box = truth.items_per_box
        before = format_quantity(line.quantity_boxes, per_box)
        after = format_quantity(truth.stock_boxes, per_box)
        issue = ReconciliationIssue(
            kind=IssueKind.QUANTITY_ADJUSTED,
            line_id=line.id,
            product_name=name,
            message=f"Quantity changed from {before} to {after}",
            severity=Severity.WARNING,
            previous_quantity=line.quantity_boxes,
            adjusted_quantity=truth.stock_boxes,
        )
        return line.with_quantity(truth.stock_boxes).with_snapshot(truth), issue

    return line.with_snapshot(truth), None


def validate(
    lines: Cart | Iterable[CartLine],
    catalog_truth: Mapping[ProductId, PricingSnapshot],
) -> ReconciliationResult:
    """
    Validate lines against catalog truth.

    Example:
        result = validate(cart, {7: PricingSnapshot(7, box_price=100, stock_boxes=3)})
        if not result.can_checkout:
            show(result.errors)
    """
    source = lines.lines if isinstance(lines, Cart) else tuple(lines)
    accepted: list[CartLine] = []
    issues: list[ReconciliationIssue] = []

    for line in source:
        kept, issue = check_line(line, catalog_truth.get(line.product_id))
        if kept is not None:
            accepted.append(kept)
        if issue is not None:
            issues.append(issue)

    return ReconciliationResult(
        accepted_lines=tuple(accepted),
        issues=tuple(issues),
        can_checkout=not any(i.severity is Severity.ERROR for i in issues),
    )


__all__ = ("validate", "check_line", "UNKNOWN_PRODUCT")
