"""
Remote cart types — wire models and errors.

Every endpoint answers with the same envelope:

    {"status": "success" | "error", "message": "...", "data": {...}}
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum, auto
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from boxcart.cart import Cart, CartStats

# ═══════════════════════════════════════════════════════════════════════════════
# Wire Models
# ═══════════════════════════════════════════════════════════════════════════════


class Envelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: Literal["success", "error"]
    message: str | None = None
    data: Any = None


class RemoteCartItem(BaseModel):
    """One server cart line. Product is a catalog-shaped mapping."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int | str
    product_id: int = Field(validation_alias=AliasChoices("productId", "product_id"))
    quantity_boxes: int = Field(
        validation_alias=AliasChoices("quantityBoxes", "quantity_boxes", "quantity")
    )
    product: dict[str, Any] = Field(default_factory=dict)
    added_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("addedAt", "createdAt", "added_at")
    )


class RemoteCartSummary(BaseModel):
    """Server-computed aggregates, kept for comparison only."""

    model_config = ConfigDict(extra="ignore")

    total_boxes: int = Field(default=0, validation_alias=AliasChoices("totalBoxes", "total_boxes"))
    total_items: int = Field(default=0, validation_alias=AliasChoices("totalItems", "total_items"))
    total_amount: Decimal = Field(
        default=Decimal("0"), validation_alias=AliasChoices("totalAmount", "total_amount")
    )
    total_savings: Decimal = Field(
        default=Decimal("0"), validation_alias=AliasChoices("totalSavings", "total_savings")
    )
    items_count: int = Field(default=0, validation_alias=AliasChoices("itemsCount", "items_count"))


class RemoteCartPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: list[RemoteCartItem] = Field(default_factory=list)
    summary: RemoteCartSummary | None = None
    client_tier: str | None = Field(
        default=None, validation_alias=AliasChoices("clientTier", "clientType", "client_tier")
    )


class MergeResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    merged: int = 0
    stats: dict[str, Any] | None = None


class RemoteValidationIssue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str | None = None
    item_id: int | str | None = Field(default=None, validation_alias=AliasChoices("itemId", "item_id"))
    product_name: str | None = Field(
        default=None, validation_alias=AliasChoices("productName", "product_name")
    )
    message: str = ""


class RemoteValidation(BaseModel):
    """Server's own opinion of the cart, returned by POST /cart/validate."""

    model_config = ConfigDict(extra="ignore")

    is_valid: bool = Field(default=True, validation_alias=AliasChoices("isValid", "is_valid"))
    issues: list[RemoteValidationIssue] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════════
# Client Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ServerCart:
    """
    Authenticated cart as the client sees it.

    cart carries locally recomputed aggregates; server_summary is what
    the server claimed, kept for diagnostics.
    """

    cart: Cart
    server_summary: RemoteCartSummary | None = None

    @property
    def stats(self) -> CartStats:
        return self.cart.stats

    @property
    def summary_mismatch(self) -> bool:
        if self.server_summary is None:
            return False
        s = self.cart.stats
        return (
            s.total_boxes != self.server_summary.total_boxes
            or s.total_amount != self.server_summary.total_amount
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Error Types
# ═══════════════════════════════════════════════════════════════════════════════


class RemoteErrorKind(Enum):
    """Kinds of remote cart errors."""

    NETWORK = auto()  # Transport failure, timeout or 5xx; outcome unknown
    REJECTED = auto()  # Server refused (4xx or status="error")
    PROTOCOL = auto()  # Response not understood


@dataclass(frozen=True, slots=True)
class RemoteError:
    """Remote cart call failure."""

    kind: RemoteErrorKind
    message: str
    status_code: int | None = None

    @property
    def retriable(self) -> bool:
        return self.kind is RemoteErrorKind.NETWORK


__all__ = (
    "Envelope",
    "RemoteCartItem",
    "RemoteCartSummary",
    "RemoteCartPayload",
    "MergeResponse",
    "RemoteValidationIssue",
    "RemoteValidation",
    "ServerCart",
    "RemoteErrorKind",
    "RemoteError",
)
