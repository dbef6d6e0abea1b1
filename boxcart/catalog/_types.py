"""
Catalog types.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol

from kungfu import Result

from boxcart._types import ProductId
from boxcart.pricing import PricingSnapshot


class CatalogErrorKind(Enum):
    """Kinds of catalog errors."""

    NOT_FOUND = auto()
    NETWORK = auto()
    PROTOCOL = auto()


@dataclass(frozen=True, slots=True)
class CatalogError:
    kind: CatalogErrorKind
    message: str
    product_id: ProductId | None = None

    @property
    def retriable(self) -> bool:
        return self.kind is CatalogErrorKind.NETWORK


class CatalogSource(Protocol):
    """
    Current product truth.

    fetch_product_snapshots() leaves unknown products out of the
    mapping instead of failing the batch.
    """

    async def fetch_product_snapshot(
        self, product_id: ProductId, *, force_refresh: bool = False
    ) -> Result[PricingSnapshot, CatalogError]: ...

    async def fetch_product_snapshots(
        self, product_ids: Iterable[ProductId], *, force_refresh: bool = False
    ) -> Result[Mapping[ProductId, PricingSnapshot], CatalogError]: ...


__all__ = ("CatalogErrorKind", "CatalogError", "CatalogSource")
