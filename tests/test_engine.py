"""Tests for the cart engine across guest and authenticated modes."""

from decimal import Decimal

import pytest
from kungfu import Error, Ok

from boxcart import CartEngine, CartMode, EngineConfig
from boxcart.cart import CartStoreErrorKind
from boxcart.pricing import ClientTier
from boxcart.reconcile import IssueKind

from conftest import BASE_URL, make_snapshot, product_wire


async def _token() -> str:
    return "secret-token"


@pytest.fixture
async def engine(device_tier, http_client) -> CartEngine:
    return await CartEngine.open(
        EngineConfig().with_base_url(BASE_URL),
        token_provider=_token,
        device_tier=device_tier,
        http_client=http_client,
    )


async def test_guest_mode_uses_device_storage(engine, server):
    assert engine.mode is CartMode.GUEST
    cart = (await engine.add_to_cart(make_snapshot(1), 2)).value
    assert cart.total_boxes == 2
    assert server.requests == []


async def test_guest_operations(engine):
    line = (await engine.add_to_cart(make_snapshot(1), 2)).value.lines[0]
    await engine.add_to_cart(make_snapshot(2), 1)

    assert (await engine.update_cart_line(line.id, 4)).value.total_boxes == 5
    assert (await engine.quantity_of(1)).value == 4
    assert (await engine.remove_cart_line(line.id)).value.total_boxes == 1
    assert (await engine.set_client_tier(ClientTier.WHOLESALE)).value.client_tier is ClientTier.WHOLESALE
    assert (await engine.clear_cart()).value.is_empty


async def test_guest_invalid_quantity(engine):
    result = await engine.add_to_cart(make_snapshot(1), 0)
    match result:
        case Error(e):
            assert e.kind is CartStoreErrorKind.INVALID_QUANTITY
        case Ok(_):
            pytest.fail("expected INVALID_QUANTITY")


async def test_sign_in_merges_guest_cart_once(engine, server):
    await engine.add_to_cart(make_snapshot(1), 2)
    await engine.add_to_cart(make_snapshot(2), 3)

    result = (await engine.sign_in()).value
    assert result.merged_count == 2
    assert engine.is_authenticated

    cart = (await engine.get_cart()).value
    assert cart.total_boxes == 5
    assert (await engine.guest_cart_summary()).value.total_boxes == 0

    again = (await engine.merge_guest_cart_on_sign_in()).value
    assert again.merged_count == 0
    assert server.paths().count("POST /cart/merge") == 1


async def test_lost_merge_response_retried_without_duplication(engine, server):
    await engine.add_to_cart(make_snapshot(1), 2)
    server.lose_merge_response = True

    failed = await engine.sign_in()
    match failed:
        case Error(e):
            assert e.retriable
        case Ok(_):
            pytest.fail("expected merge failure")
    assert (await engine.guest_cart_summary()).value.total_boxes == 2

    retried = (await engine.merge_guest_cart_on_sign_in()).value
    assert retried.merged_count == 1
    assert server.quantity_of(1) == 2
    merges = [r for r in server.requests if r.url.path.endswith("/cart/merge")]
    assert len({r.headers["Idempotency-Key"] for r in merges}) == 1


async def test_authenticated_operations_go_to_server(engine, server):
    await engine.sign_in()

    cart = (await engine.add_to_cart(make_snapshot(1), 3)).value
    assert cart.total_amount == Decimal("300")
    line_id = cart.lines[0].id

    assert (await engine.update_cart_line(line_id, 60)).value.total_boxes == 60
    wholesale = (await engine.set_client_tier(ClientTier.WHOLESALE)).value
    assert wholesale.total_amount == Decimal("4800")
    assert (await engine.quantity_of(1)).value == 60
    assert (await engine.remove_cart_lines([line_id])).value.is_empty
    assert (await engine.guest_cart_summary()).value.total_boxes == 0


async def test_sign_out_returns_to_guest_cart(engine, server):
    await engine.sign_in()
    await engine.add_to_cart(make_snapshot(1), 3)
    await engine.sign_out()

    assert engine.mode is CartMode.GUEST
    assert (await engine.get_cart()).value.is_empty


async def test_guest_validation_repairs_cart(engine, server):
    server.products[1] = product_wire(1, stockBoxes=3)
    server.products[2] = product_wire(2, isActive=False)
    await engine.add_to_cart(make_snapshot(1), 10)
    await engine.add_to_cart(make_snapshot(2), 1)

    report = (await engine.validate_cart()).value
    assert not report.can_checkout
    assert {i.kind for i in report.issues} == {IssueKind.QUANTITY_ADJUSTED, IssueKind.INACTIVE}

    cart = (await engine.get_cart()).value
    assert [(line.product_id, line.quantity_boxes) for line in cart.lines] == [(1, 3)]

    clean = (await engine.validate_cart()).value
    assert clean.can_checkout
    assert not clean.has_issues


async def test_guest_validation_persists_current_prices(engine, server):
    server.products[1] = product_wire(1, boxPrice="125")
    await engine.add_to_cart(make_snapshot(1), 2)

    await engine.validate_cart()
    assert (await engine.get_cart()).value.total_amount == Decimal("250")


async def test_authenticated_validation_reports_only(engine, server):
    await engine.sign_in()
    await engine.add_to_cart(make_snapshot(1), 10)
    server.products[1] = product_wire(1, stockBoxes=3)

    report = (await engine.validate_cart()).value
    assert report.can_checkout
    assert report.accepted_lines[0].quantity_boxes == 3
    assert server.quantity_of(1) == 10


async def test_validation_network_failure(engine, server):
    await engine.add_to_cart(make_snapshot(1), 1)
    server.failures.append(503)
    assert isinstance(await engine.validate_cart(), Error)
    assert (await engine.get_cart()).value.total_boxes == 1


async def test_open_finishes_interrupted_merge(device_tier, http_client, server):
    config = EngineConfig().with_base_url(BASE_URL)
    first = await CartEngine.open(config, token_provider=_token, device_tier=device_tier, http_client=http_client)
    await first.add_to_cart(make_snapshot(1), 2)

    device_tier.fail_deletes = True
    assert (await first.sign_in()).value.merged_count == 1
    assert (await first.guest_cart_summary()).value.total_boxes == 2

    device_tier.fail_deletes = False
    second = await CartEngine.open(config, token_provider=_token, device_tier=device_tier, http_client=http_client)
    assert (await second.guest_cart_summary()).value.total_boxes == 0
    assert server.paths().count("POST /cart/merge") == 1
