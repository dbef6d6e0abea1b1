"""
Merge types — request, marker and result.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Any, Protocol

from kungfu import Result

from boxcart._types import ProductId
from boxcart.cart import Cart
from boxcart.pricing._types import to_count, to_product_id

# ═══════════════════════════════════════════════════════════════════════════════
# Request
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MergeItem:
    """Product and box count. Prices are not sent: the server prices merged lines."""

    product_id: ProductId
    quantity_boxes: int

    def to_wire(self) -> dict[str, Any]:
        return {"productId": self.product_id, "quantityBoxes": self.quantity_boxes}


@dataclass(frozen=True, slots=True)
class MergeRequest:
    """
    One merge submission.

    Note: token is generated once per guest cart and reused on every
    retry, so the server can recognise a resubmission.
    """

    token: str
    items: tuple[MergeItem, ...]

    def to_wire(self) -> dict[str, Any]:
        return {"items": [i.to_wire() for i in self.items]}


def merge_items(cart: Cart) -> tuple[MergeItem, ...]:
    return tuple(MergeItem(line.product_id, line.quantity_boxes) for line in cart.lines)


@dataclass(frozen=True, slots=True)
class MergeReceipt:
    """Server acknowledgement of a merge."""

    merged_count: int
    stats: Mapping[str, Any] | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Marker — Merge Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class MergeState(Enum):
    """
    State of a persisted merge marker.

    Lifecycle:
        PENDING → COMPLETED (server accepted) → (deleted once guest cart cleared)
                → (deleted on rejection)
    """

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True, slots=True)
class MergeMarker:
    """Merge in flight, persisted next to the guest cart."""

    request: MergeRequest
    state: MergeState
    created_at: datetime
    receipt: MergeReceipt | None = None

    @property
    def is_pending(self) -> bool:
        return self.state is MergeState.PENDING

    @property
    def is_completed(self) -> bool:
        return self.state is MergeState.COMPLETED

    def to_mapping(self) -> dict[str, Any]:
        return {
            "token": self.request.token,
            "items": [i.to_wire() for i in self.request.items],
            "state": self.state.value,
            "createdAt": self.created_at.isoformat(),
            "receipt": (
                None
                if self.receipt is None
                else {
                    "merged": self.receipt.merged_count,
                    "stats": None if self.receipt.stats is None else dict(self.receipt.stats),
                }
            ),
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> MergeMarker:
        """Raises KeyError/TypeError/ValueError on a malformed marker."""
        items = tuple(
            MergeItem(
                to_product_id(raw["productId"]),
                to_count(raw["quantityBoxes"], default=0, minimum=0),
            )
            for raw in data["items"]
        )
        receipt_raw = data.get("receipt")
        receipt = (
            None
            if receipt_raw is None
            else MergeReceipt(
                merged_count=to_count(receipt_raw.get("merged"), default=0, minimum=0),
                stats=receipt_raw.get("stats"),
            )
        )
        return cls(
            request=MergeRequest(token=str(data["token"]), items=items),
            state=MergeState(data["state"]),
            created_at=datetime.fromisoformat(data["createdAt"]),
            receipt=receipt,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Result Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MergeResult:
    """
    Outcome of merge().

    recovered=True: an earlier merge had already been accepted and this
    call only finished retiring the guest cart; merged_count is 0.
    """

    merged_count: int
    stats: Mapping[str, Any] | None = None
    token: str | None = None
    recovered: bool = False


class MergeErrorKind(Enum):
    """Kinds of merge errors."""

    STORAGE = auto()  # Guest cart or marker unreadable / unwritable
    NETWORK = auto()  # Submission outcome unknown; retry resubmits same token
    REJECTED = auto()  # Server refused; guest cart untouched


@dataclass(frozen=True, slots=True)
class MergeError:
    """Merge failure. Guest cart is untouched in every case."""

    kind: MergeErrorKind
    message: str
    cause: object | None = None

    @property
    def retriable(self) -> bool:
        return self.kind is not MergeErrorKind.REJECTED


# ═══════════════════════════════════════════════════════════════════════════════
# Submitter Protocol — the remote cart implements this
# ═══════════════════════════════════════════════════════════════════════════════


class SubmitFailure(Protocol):
    @property
    def message(self) -> str: ...

    @property
    def retriable(self) -> bool: ...


class MergeSubmitter(Protocol):
    """Sends a merge request to the server-authoritative cart."""

    async def merge(self, request: MergeRequest) -> Result[MergeReceipt, SubmitFailure]:
        ...


__all__ = (
    "MergeItem",
    "MergeRequest",
    "merge_items",
    "MergeReceipt",
    "MergeState",
    "MergeMarker",
    "MergeResult",
    "MergeErrorKind",
    "MergeError",
    "SubmitFailure",
    "MergeSubmitter",
)
