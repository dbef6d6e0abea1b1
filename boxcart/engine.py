"""
Cart engine — one entry point for both cart modes.

    GUEST          → GuestCartStore (device storage)
    AUTHENTICATED  → RemoteCartService (server is authoritative)

sign_in() flips to AUTHENTICATED and merges the guest cart exactly
once; sign_out() flips back. Every operation returns a Result.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum
from typing import Any

import httpx
from kungfu import Result, Ok, Error

from boxcart import cache as C
from boxcart._types import LineId, ProductId
from boxcart.cart import (
    Cart,
    CartStats,
    CartStoreError,
    CartStoreErrorKind,
    GuestCartStore,
)
from boxcart.catalog import CatalogError, CatalogSource, HttpCatalog
from boxcart.config import EngineConfig
from boxcart.merge import MergeCoordinator, MergeError, MergeJournal, MergeResult
from boxcart.pricing import ClientTier, PricingSnapshot
from boxcart.reconcile import ReconciliationResult, validate
from boxcart.remote import ApiTransport, RemoteCartService, RemoteError, TokenProvider

logger = logging.getLogger(__name__)

type CartError = CartStoreError | RemoteError
type ReconcileError = CartStoreError | RemoteError | CatalogError


class CartMode(Enum):
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


def _positive(quantity_boxes: int) -> CartStoreError | None:
    if isinstance(quantity_boxes, bool) or not isinstance(quantity_boxes, int) or quantity_boxes <= 0:
        return CartStoreError(
            CartStoreErrorKind.INVALID_QUANTITY, f"cannot add {quantity_boxes!r} boxes"
        )
    return None


class CartEngine:
    """
    Cart facade routed by session mode.

    Example:
        engine = await CartEngine.open(EngineConfig(), token_provider=session.token)

        await engine.add_to_cart(snapshot, 3)
        report = await engine.validate_cart()

        match await engine.sign_in():
            case Ok(result):
                print(f"{result.merged_count} lines moved to your account")
            case Error(e):
                print(f"merge pending: {e.message}")
    """

    def __init__(
        self,
        guest: GuestCartStore,
        remote: RemoteCartService,
        catalog: CatalogSource,
        coordinator: MergeCoordinator,
        *,
        mode: CartMode = CartMode.GUEST,
        resources: Iterable[Any] = (),
    ) -> None:
        self._guest = guest
        self._remote = remote
        self._catalog = catalog
        self._coordinator = coordinator
        self._mode = mode
        self._resources = tuple(resources)

    @classmethod
    async def open(
        cls,
        config: EngineConfig,
        *,
        token_provider: TokenProvider | None = None,
        device_tier: C.Tier[Any] | None = None,
        http_client: httpx.AsyncClient | None = None,
        mode: CartMode = CartMode.GUEST,
    ) -> CartEngine:
        """
        Wire the engine from config and finish any interrupted merge.

        device_tier defaults to a SQLite tier at config.database_url.
        """
        resources: list[Any] = []
        if device_tier is None:
            device_tier = await C.open_sqlite_tier(config.database_url)
            resources.append(device_tier)

        storage = C.cache(lambda key: key).tier(device_tier).forever().build()
        transport = ApiTransport(
            config.base_url,
            token_provider=token_provider,
            timeout=config.request_timeout,
            client=http_client,
        )
        resources.append(transport)

        guest = GuestCartStore(
            storage,
            key=config.guest_cart_key,
            default_wholesale_min_boxes=config.default_wholesale_min_boxes,
        )
        remote = RemoteCartService(
            transport,
            cart_ttl=config.remote_cart_ttl,
            default_wholesale_min_boxes=config.default_wholesale_min_boxes,
        )
        catalog = HttpCatalog(
            transport,
            ttl=config.catalog_ttl,
            default_wholesale_min_boxes=config.default_wholesale_min_boxes,
        )
        coordinator = MergeCoordinator(
            guest, MergeJournal(storage, key=config.merge_marker_key), remote
        )

        engine = cls(guest, remote, catalog, coordinator, mode=mode, resources=resources)
        match await engine.recover():
            case Ok(MergeResult() as result):
                logger.info(f"Recovered merge {result.token} on launch")
            case Ok(None):
                pass
            case Error(e):
                logger.warning(f"Merge recovery on launch failed: {e.message}")
        return engine

    async def close(self) -> None:
        for resource in self._resources:
            if isinstance(resource, ApiTransport):
                await resource.close()
            elif isinstance(resource, C.SQLAlchemyTier):
                await resource.dispose()

    @property
    def mode(self) -> CartMode:
        return self._mode

    @property
    def is_authenticated(self) -> bool:
        return self._mode is CartMode.AUTHENTICATED

    # ═══════════════════════════════════════════════════════════════════════
    # Session transitions
    # ═══════════════════════════════════════════════════════════════════════

    async def sign_in(self) -> Result[MergeResult, MergeError]:
        """
        Switch to the server cart and merge the guest cart into it.

        The mode switches even when the merge fails; the guest cart is
        kept and the next sign_in() or merge_guest_cart_on_sign_in()
        retries it.
        """
        self._mode = CartMode.AUTHENTICATED
        logger.info("Signed in; cart is now server-authoritative")
        return await self.merge_guest_cart_on_sign_in()

    async def sign_out(self) -> None:
        await self._remote.forget()
        self._mode = CartMode.GUEST
        logger.info("Signed out; cart is now the guest cart")

    async def merge_guest_cart_on_sign_in(self) -> Result[MergeResult, MergeError]:
        return await self._coordinator.merge()

    async def recover(self) -> Result[MergeResult | None, MergeError]:
        return await self._coordinator.recover()

    # ═══════════════════════════════════════════════════════════════════════
    # Cart operations
    # ═══════════════════════════════════════════════════════════════════════

    async def get_cart(self, *, force_refresh: bool = False) -> Result[Cart, CartError]:
        if not self.is_authenticated:
            return await self._guest.load()
        match await self._remote.fetch_cart(force_refresh=force_refresh):
            case Ok(server_cart):
                return Ok(server_cart.cart)
            case Error(e):
                return Error(e)

    async def add_to_cart(
        self, product: PricingSnapshot, quantity_boxes: int = 1
    ) -> Result[Cart, CartError]:
        if not self.is_authenticated:
            match await self._guest.add(product, quantity_boxes):
                case Ok(outcome):
                    return Ok(outcome.cart)
                case Error(e):
                    return Error(e)

        if (invalid := _positive(quantity_boxes)) is not None:
            return Error(invalid)
        return self._unwrap(await self._remote.add(product.product_id, quantity_boxes))

    async def update_cart_line(
        self, line_id: LineId, quantity_boxes: int
    ) -> Result[Cart, CartError]:
        """Set a line's box count. Zero or less removes the line."""
        if not self.is_authenticated:
            return await self._guest.set_quantity(line_id, quantity_boxes)
        return self._unwrap(await self._remote.update_item(line_id, quantity_boxes))

    async def remove_cart_line(self, line_id: LineId) -> Result[Cart, CartError]:
        if not self.is_authenticated:
            return await self._guest.remove(line_id)
        return self._unwrap(await self._remote.remove_item(line_id))

    async def remove_cart_lines(self, line_ids: Iterable[LineId]) -> Result[Cart, CartError]:
        ids = list(line_ids)
        if not self.is_authenticated:
            return await self._guest.remove_many(ids)
        return self._unwrap(await self._remote.bulk_remove(ids))

    async def clear_cart(self) -> Result[Cart, CartError]:
        if not self.is_authenticated:
            return await self._guest.clear()
        return self._unwrap(await self._remote.clear())

    async def set_client_tier(self, tier: ClientTier) -> Result[Cart, CartError]:
        if not self.is_authenticated:
            return await self._guest.set_tier(tier)
        return self._unwrap(await self._remote.set_client_tier(tier))

    async def quantity_of(self, product_id: ProductId) -> Result[int, CartError]:
        if not self.is_authenticated:
            return await self._guest.quantity_of(product_id)
        match await self.get_cart():
            case Ok(cart):
                line = cart.line_for(product_id)
                return Ok(line.quantity_boxes if line else 0)
            case Error(e):
                return Error(e)

    async def guest_cart_summary(self) -> Result[CartStats, CartStoreError]:
        """Guest cart totals regardless of mode (e.g. for a pre-sign-in prompt)."""
        match await self._guest.load():
            case Ok(cart):
                return Ok(cart.stats)
            case Error(e):
                return Error(e)

    # ═══════════════════════════════════════════════════════════════════════
    # Validation
    # ═══════════════════════════════════════════════════════════════════════

    async def validate_cart(self) -> Result[ReconciliationResult, ReconcileError]:
        """
        Check the cart against current catalog truth.

        Guest mode persists the accepted lines, re-stamped with current
        prices, as the repaired cart. In authenticated mode the report is
        returned and the server cart is left for the server to repair.
        """
        match await self.get_cart(force_refresh=self.is_authenticated):
            case Ok(cart):
                pass
            case Error(e):
                return Error(e)

        checked = {line.product_id for line in cart.lines}
        match await self._catalog.fetch_product_snapshots(checked, force_refresh=True):
            case Ok(truth):
                pass
            case Error(e):
                return Error(e)

        result = validate(cart, truth)
        if self.is_authenticated:
            return Ok(result)

        def repair(current: Cart) -> Cart:
            nonlocal result
            if {line.product_id for line in current.lines} - checked:
                # A product was added meanwhile; leave it for the next validation.
                return current
            result = validate(current, truth)
            return current.with_lines(result.accepted_lines)

        match await self._guest.update(repair):
            case Ok(_):
                if result.has_issues:
                    logger.info(f"Guest cart repaired: {len(result.issues)} issue(s)")
                return Ok(result)
            case Error(e):
                return Error(e)

    @staticmethod
    def _unwrap(result: Result[Any, RemoteError]) -> Result[Cart, CartError]:
        match result:
            case Ok(server_cart):
                return Ok(server_cart.cart)
            case Error(e):
                return Error(e)


__all__ = ("CartEngine", "CartMode", "CartError", "ReconcileError")
