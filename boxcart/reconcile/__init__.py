"""
Reconcile — revalidate cart lines against live catalog and stock.

    from boxcart import reconcile as R

    result = R.validate(cart, truth)
    result.accepted_lines   # clamped / refreshed lines
    result.issues           # per-line problems
    result.can_checkout     # no ERROR-severity issue
"""

from __future__ import annotations

from boxcart.reconcile._types import (
    IssueKind,
    Severity,
    ReconciliationIssue,
    ReconciliationResult,
)
from boxcart.reconcile._validate import validate, check_line, UNKNOWN_PRODUCT

__all__ = (
    "IssueKind",
    "Severity",
    "ReconciliationIssue",
    "ReconciliationResult",
    "validate",
    "check_line",
    "UNKNOWN_PRODUCT",
)
