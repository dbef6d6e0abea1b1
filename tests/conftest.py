"""Shared fixtures: fake clock, device storage, fake cart server."""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import httpx
import pytest

from boxcart import cache as C
from boxcart.cart import GuestCartStore
from boxcart.pricing import PricingSnapshot
from boxcart.remote import ApiTransport

BASE_URL = "http://shop.test/api"
T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FlakyTier(C.LocalTier):
    """LocalTier whose writes/deletes can be made to fail."""

    def __init__(self) -> None:
        super().__init__(name="flaky")
        self.fail_writes = False
        self.fail_deletes = False

    async def set(self, key: str, value: Any) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        await super().set(key, value)

    async def delete(self, key: str) -> bool:
        if self.fail_deletes:
            raise OSError("disk busy")
        return await super().delete(key)


def make_snapshot(product_id: int = 1, **overrides: Any) -> PricingSnapshot:
    fields: dict[str, Any] = {
        "box_price": Decimal("100"),
        "items_per_box": 12,
        "wholesale_box_price": Decimal("80"),
        "wholesale_min_boxes": 50,
        "stock_boxes": 100,
        "is_active": True,
        "name": f"Product {product_id}",
    }
    fields.update(overrides)
    return PricingSnapshot(product_id, **fields)


def product_wire(product_id: int, **overrides: Any) -> dict[str, Any]:
    """Catalog-shaped product as the API returns it."""
    data: dict[str, Any] = {
        "id": product_id,
        "name": f"Product {product_id}",
        "boxPrice": "100",
        "wholesaleBoxPrice": "80",
        "itemsPerBox": 12,
        "wholesaleMinBoxes": 50,
        "stockBoxes": 100,
        "isActive": True,
    }
    data.update(overrides)
    return data


def _ok(data: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json={"status": "success", "data": data})


def _rejected(message: str, status: int = 400) -> httpx.Response:
    return httpx.Response(status, json={"status": "error", "message": message})


class FakeCartServer:
    """
    In-memory cart API for httpx.MockTransport.

    failures: queued per-request failures. An exception is raised from
    the transport, an int becomes an error response with that status.
    lose_merge_response: apply the next merge, then time out.
    """

    def __init__(self, products: dict[int, dict[str, Any]] | None = None) -> None:
        self.products = products if products is not None else {1: product_wire(1), 2: product_wire(2)}
        self.items: list[dict[str, Any]] = []
        self.client_type = "RETAIL"
        self.requests: list[httpx.Request] = []
        self.failures: list[Exception | int] = []
        self.merges: dict[str, dict[str, Any]] = {}
        self.lose_merge_response = False
        self._next_id = 1

    # ── helpers ──────────────────────────────────────────────────────────

    def paths(self) -> list[str]:
        return [f"{r.method} {r.url.path.removeprefix('/api')}" for r in self.requests]

    def quantity_of(self, product_id: int) -> int:
        return sum(i["quantityBoxes"] for i in self.items if i["productId"] == product_id)

    def payload(self) -> dict[str, Any]:
        return {
            "items": [
                {**item, "product": self.products.get(item["productId"], {"id": item["productId"]})}
                for item in self.items
            ],
            "clientType": self.client_type,
            "summary": {"totalBoxes": sum(i["quantityBoxes"] for i in self.items)},
        }

    def _add(self, product_id: int, quantity: int) -> None:
        for item in self.items:
            if item["productId"] == product_id:
                item["quantityBoxes"] += quantity
                return
        self.items.append({"id": self._next_id, "productId": product_id, "quantityBoxes": quantity})
        self._next_id += 1

    # ── handler ──────────────────────────────────────────────────────────

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return _rejected("failure injected", status=failure)

        method = request.method
        path = request.url.path.removeprefix("/api")
        body = json.loads(request.content) if request.content else {}

        if path == "/products" and method == "GET":
            ids = [int(i) for i in request.url.params.get("ids", "").split(",") if i]
            return _ok({"products": [self.products[i] for i in ids if i in self.products]})
        if path.startswith("/products/") and method == "GET":
            pid = int(path.rsplit("/", 1)[1])
            if pid not in self.products:
                return _rejected("Product not found", status=404)
            return _ok(self.products[pid])

        if path == "/cart" and method == "GET":
            return _ok(self.payload())
        if path == "/cart/add" and method == "POST":
            if body["productId"] not in self.products:
                return _rejected("Product not found", status=404)
            self._add(body["productId"], body["quantityBoxes"])
            return _ok({"cart": self.payload()})
        if path.startswith("/cart/items/"):
            line_id = int(path.rsplit("/", 1)[1])
            if method == "PUT":
                for item in self.items:
                    if item["id"] == line_id:
                        item["quantityBoxes"] = body["quantityBoxes"]
            elif method == "DELETE":
                self.items = [i for i in self.items if i["id"] != line_id]
            return _ok({"cart": self.payload()})
        if path == "/cart/clear" and method == "DELETE":
            self.items = []
            return _ok({"cart": self.payload()})
        if path == "/cart/client-type" and method == "POST":
            self.client_type = body["clientType"]
            return _ok(self.payload())
        if path == "/cart/bulk/remove" and method == "DELETE":
            doomed = {int(i) for i in body["itemIds"]}
            self.items = [i for i in self.items if i["id"] not in doomed]
            return _ok({"cart": self.payload()})
        if path == "/cart/bulk/update" and method == "PATCH":
            for update in body["updates"]:
                for item in self.items:
                    if item["id"] == int(update["itemId"]):
                        item["quantityBoxes"] = update["quantityBoxes"]
            return _ok({"message": "updated"})
        if path == "/cart/validate" and method == "POST":
            return _ok({"isValid": True, "issues": []})
        if path == "/cart/merge" and method == "POST":
            token = request.headers.get("Idempotency-Key", "")
            if token not in self.merges:
                for item in body["items"]:
                    self._add(item["productId"], item["quantityBoxes"])
                self.merges[token] = {"merged": len(body["items"]), "stats": {"added": len(body["items"])}}
            if self.lose_merge_response:
                self.lose_merge_response = False
                raise httpx.ReadTimeout("response lost")
            return _ok(self.merges[token])

        return _rejected(f"no route {method} {path}", status=404)


# ═══════════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def device_tier() -> FlakyTier:
    return FlakyTier()


@pytest.fixture
def storage(device_tier, clock):
    return C.cache(lambda key: key).tier(device_tier).forever().clock(clock).build()


@pytest.fixture
def guest_store(storage, clock) -> GuestCartStore:
    return GuestCartStore(storage, clock=clock)


@pytest.fixture
def server() -> FakeCartServer:
    return FakeCartServer()


@pytest.fixture
async def http_client(server):
    client = httpx.AsyncClient(transport=httpx.MockTransport(server.handler))
    yield client
    await client.aclose()


@pytest.fixture
def transport(http_client) -> ApiTransport:
    async def token() -> str:
        return "secret-token"

    return ApiTransport(BASE_URL, token_provider=token, client=http_client)
