"""Tests for the cached HTTP catalog."""

from decimal import Decimal

import pytest
from kungfu import Error, Ok

from boxcart.catalog import CatalogErrorKind, HttpCatalog

from conftest import product_wire


@pytest.fixture
def catalog(transport, clock) -> HttpCatalog:
    return HttpCatalog(transport, clock=clock)


async def test_single_product(catalog):
    snap = (await catalog.fetch_product_snapshot(1)).value
    assert snap.product_id == 1
    assert snap.box_price == Decimal("100")
    assert snap.items_per_box == 12


async def test_single_product_is_cached_for_ttl(catalog, server, clock):
    await catalog.fetch_product_snapshot(1)
    clock.advance(minutes=4)
    await catalog.fetch_product_snapshot(1)
    assert server.paths() == ["GET /products/1"]

    clock.advance(minutes=1)
    await catalog.fetch_product_snapshot(1)
    assert server.paths() == ["GET /products/1", "GET /products/1"]


async def test_force_refresh_sees_new_price(catalog, server):
    await catalog.fetch_product_snapshot(1)
    server.products[1] = product_wire(1, boxPrice="150")

    cached = (await catalog.fetch_product_snapshot(1)).value
    fresh = (await catalog.fetch_product_snapshot(1, force_refresh=True)).value
    assert cached.box_price == Decimal("100")
    assert fresh.box_price == Decimal("150")


async def test_unknown_product_is_not_found(catalog):
    result = await catalog.fetch_product_snapshot(42)
    match result:
        case Error(e):
            assert e.kind is CatalogErrorKind.NOT_FOUND
            assert e.product_id == 42
        case Ok(_):
            pytest.fail("expected NOT_FOUND")


async def test_batch_omits_unknown_products(catalog, server):
    snaps = (await catalog.fetch_product_snapshots([1, 2, 42])).value
    assert set(snaps) == {1, 2}
    assert server.paths() == ["GET /products"]
    assert server.requests[0].url.params["ids"] == "1,2,42"


async def test_batch_uses_fresh_cache_entries(catalog, server):
    await catalog.fetch_product_snapshot(1)
    await catalog.fetch_product_snapshots([1, 2])
    assert server.requests[-1].url.params["ids"] == "2"

    await catalog.fetch_product_snapshots([1, 2])
    assert len(server.requests) == 2


async def test_batch_force_refresh_fetches_everything(catalog, server):
    await catalog.fetch_product_snapshots([1, 2])
    await catalog.fetch_product_snapshots([1, 2], force_refresh=True)
    assert server.requests[-1].url.params["ids"] == "1,2"


async def test_network_failure(catalog, server):
    server.failures.append(503)
    result = await catalog.fetch_product_snapshots([1])
    match result:
        case Error(e):
            assert e.kind is CatalogErrorKind.NETWORK
            assert e.retriable
        case Ok(_):
            pytest.fail("expected NETWORK")


async def test_invalidate_all(catalog, server):
    await catalog.fetch_product_snapshots([1, 2])
    await catalog.invalidate()
    await catalog.fetch_product_snapshots([1, 2])
    assert len(server.requests) == 2
