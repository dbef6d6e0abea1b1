"""
HTTP catalog — product snapshots from the catalog API, cached per product.

    GET /products/{id}          → one product
    GET /products?ids=1,2,3     → several products (unknown ids omitted)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import timedelta
from typing import Any

from kungfu import LazyCoroResult, Result, Ok, Error

from boxcart import cache as C
from boxcart._types import Clock, ProductId, utc_now
from boxcart.catalog._types import CatalogError, CatalogErrorKind
from boxcart.pricing import DEFAULT_WHOLESALE_MIN_BOXES, PricingSnapshot
from boxcart.remote import ApiTransport, RemoteError, RemoteErrorKind

logger = logging.getLogger(__name__)


def _catalog_error(e: RemoteError, product_id: ProductId | None = None) -> CatalogError:
    match e.kind:
        case RemoteErrorKind.NETWORK:
            return CatalogError(CatalogErrorKind.NETWORK, e.message, product_id)
        case RemoteErrorKind.REJECTED if e.status_code == 404:
            return CatalogError(CatalogErrorKind.NOT_FOUND, e.message, product_id)
        case _:
            return CatalogError(CatalogErrorKind.PROTOCOL, e.message, product_id)


class HttpCatalog:
    """
    CatalogSource over HTTP with a time-boxed cache.

    A product fetched within ttl is served from cache; force_refresh
    skips the cache and refreshes it.
    """

    def __init__(
        self,
        transport: ApiTransport,
        *,
        ttl: timedelta = timedelta(minutes=5),
        clock: Clock = utc_now,
        default_wholesale_min_boxes: int = DEFAULT_WHOLESALE_MIN_BOXES,
        max_cached: int | None = 1000,
    ) -> None:
        self._transport = transport
        self._default_min_boxes = default_wholesale_min_boxes
        self._products = (
            C.cache(lambda pid: f"product:{pid}", self._fetch_one)
            .tier(C.LocalTier(max_size=max_cached, name="catalog"))
            .ttl(delta=ttl)
            .clock(clock)
            .build()
        )

    def _snapshot(self, data: Any) -> PricingSnapshot:
        if not isinstance(data, Mapping):
            raise ValueError(f"product is {type(data).__name__}, not a mapping")
        return PricingSnapshot.from_mapping(
            data, default_wholesale_min_boxes=self._default_min_boxes
        )

    def _fetch_one(self, product_id: ProductId) -> LazyCoroResult[PricingSnapshot, CatalogError]:
        async def execute() -> Result[PricingSnapshot, CatalogError]:
            match await self._transport.request("GET", f"/products/{product_id}"):
                case Ok(data):
                    pass
                case Error(e):
                    return Error(_catalog_error(e, product_id))
            if isinstance(data, Mapping) and isinstance(data.get("product"), Mapping):
                data = data["product"]
            try:
                return Ok(self._snapshot(data))
            except ValueError as e:
                logger.error(f"Product {product_id} did not parse: {e}")
                return Error(CatalogError(CatalogErrorKind.PROTOCOL, str(e), product_id))

        return LazyCoroResult(execute)

    async def fetch_product_snapshot(
        self, product_id: ProductId, *, force_refresh: bool = False
    ) -> Result[PricingSnapshot, CatalogError]:
        result = await self._products.get(product_id, force_refresh=force_refresh)
        match result:
            case Ok(cached):
                return Ok(cached.value)
            case Error(CatalogError() as e):
                return Error(e)
            case Error(e):
                return Error(CatalogError(CatalogErrorKind.PROTOCOL, e.message, product_id))

    async def fetch_product_snapshots(
        self, product_ids: Iterable[ProductId], *, force_refresh: bool = False
    ) -> Result[Mapping[ProductId, PricingSnapshot], CatalogError]:
        """
        Several products in one round trip.

        Fresh cache entries are used unless force_refresh; the rest are
        requested together and written back to the cache.
        """
        wanted = list(dict.fromkeys(product_ids))
        found: dict[ProductId, PricingSnapshot] = {}

        if not force_refresh:
            for pid in wanted:
                match await self._products.read(pid):
                    case Ok(entry) if entry is not None and self._products.is_valid(entry):
                        found[pid] = entry.payload
                    case _:
                        pass

        missing = [pid for pid in wanted if pid not in found]
        if not missing:
            return Ok(found)

        params = {"ids": ",".join(str(pid) for pid in missing)}
        match await self._transport.request("GET", "/products", params=params):
            case Ok(data):
                pass
            case Error(e):
                return Error(_catalog_error(e))

        if isinstance(data, Mapping):
            data = data.get("products", data.get("items"))
        if not isinstance(data, list):
            logger.error("Product batch response carried no product list")
            return Error(CatalogError(CatalogErrorKind.PROTOCOL, "no product list"))

        requested = set(missing)
        for raw in data:
            try:
                snapshot = self._snapshot(raw)
            except ValueError as e:
                logger.warning(f"Skipping unparseable product in batch: {e}")
                continue
            if snapshot.product_id not in requested:
                continue
            found[snapshot.product_id] = snapshot
            match await self._products.write(snapshot.product_id, snapshot):
                case Error(err):
                    logger.warning(f"Catalog cache not updated for {snapshot.product_id}: {err.message}")
                case Ok(_):
                    pass

        absent = requested - found.keys()
        if absent:
            logger.info(f"Catalog has no products {sorted(absent)}")
        return Ok(found)

    async def invalidate(self, product_id: ProductId | None = None) -> None:
        """Drop one cached product, or all of them."""
        if product_id is None:
            result = await self._products.invalidate_pattern("product:*")
        else:
            result = await self._products.invalidate(product_id)
        match result:
            case Error(e):
                logger.warning(f"Catalog cache invalidation failed: {e.message}")
            case Ok(_):
                pass


__all__ = ("HttpCatalog",)
