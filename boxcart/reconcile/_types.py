"""
Reconciliation types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from boxcart._types import LineId
from boxcart.cart import CartLine


class IssueKind(Enum):
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    QUANTITY_ADJUSTED = "QUANTITY_ADJUSTED"


class Severity(Enum):
    ERROR = "ERROR"  # Line dropped, blocks checkout
    WARNING = "WARNING"  # Line kept with a change, shown to the user


@dataclass(frozen=True, slots=True)
class ReconciliationIssue:
    """One problem found with one line."""

    kind: IssueKind
    line_id: LineId
    product_name: str
    message: str
    severity: Severity
    previous_quantity: int | None = None
    adjusted_quantity: int | None = None

    @property
    def blocking(self) -> bool:
        return self.severity is Severity.ERROR


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """
    Lines that survived, issues found and whether checkout may proceed.

    Accepted lines carry the catalog's current snapshot.
    """

    accepted_lines: tuple[CartLine, ...]
    issues: tuple[ReconciliationIssue, ...]
    can_checkout: bool

    @property
    def errors(self) -> tuple[ReconciliationIssue, ...]:
        return tuple(i for i in self.issues if i.severity is Severity.ERROR)

    @property
    def warnings(self) -> tuple[ReconciliationIssue, ...]:
        return tuple(i for i in self.issues if i.severity is Severity.WARNING)

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)


__all__ = (
    "IssueKind",
    "Severity",
    "ReconciliationIssue",
    "ReconciliationResult",
)
