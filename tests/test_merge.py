"""Tests for exactly-once guest cart merge."""

import asyncio
from dataclasses import dataclass

import pytest
from kungfu import Error, Ok

from boxcart.merge import (
    MergeCoordinator,
    MergeErrorKind,
    MergeJournal,
    MergeReceipt,
    MergeRequest,
    MergeState,
)

from conftest import make_snapshot


@dataclass(frozen=True)
class SubmitFailed:
    message: str
    retriable: bool


class FakeSubmitter:
    """Server stand-in that dedupes by token, like the real merge endpoint."""

    def __init__(self) -> None:
        self.requests: list[MergeRequest] = []
        self.applied: dict[str, MergeRequest] = {}
        self.failures: list[SubmitFailed] = []
        self.lose_response = False
        self.gate: asyncio.Event | None = None

    def boxes(self) -> int:
        return sum(i.quantity_boxes for r in self.applied.values() for i in r.items)

    async def merge(self, request: MergeRequest):
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            return Error(self.failures.pop(0))
        self.applied.setdefault(request.token, request)
        if self.lose_response:
            self.lose_response = False
            return Error(SubmitFailed("response lost", retriable=True))
        return Ok(MergeReceipt(merged_count=len(request.items), stats={"added": len(request.items)}))


@pytest.fixture
def submitter() -> FakeSubmitter:
    return FakeSubmitter()


@pytest.fixture
def journal(storage, clock) -> MergeJournal:
    return MergeJournal(storage, clock=clock)


@pytest.fixture
def coordinator(guest_store, journal, submitter) -> MergeCoordinator:
    tokens = iter(f"token-{n}" for n in range(1, 100))
    return MergeCoordinator(guest_store, journal, submitter, token_factory=lambda: next(tokens))


async def _fill(guest_store) -> None:
    await guest_store.add(make_snapshot(1), 2)
    await guest_store.add(make_snapshot(2), 3)


async def test_merge_moves_lines_and_empties_guest_cart(coordinator, guest_store, submitter, journal):
    await _fill(guest_store)

    result = (await coordinator.merge()).value
    assert result.merged_count == 2
    assert result.stats == {"added": 2}
    assert result.token == "token-1"
    assert not result.recovered

    [request] = submitter.requests
    assert [(i.product_id, i.quantity_boxes) for i in request.items] == [(1, 2), (2, 3)]
    assert (await guest_store.load()).value.is_empty
    assert (await journal.read()).value is None


async def test_second_merge_reports_zero(coordinator, guest_store, submitter):
    await _fill(guest_store)
    await coordinator.merge()

    again = (await coordinator.merge()).value
    assert again.merged_count == 0
    assert len(submitter.requests) == 1
    assert submitter.boxes() == 5


async def test_empty_guest_cart_makes_no_request(coordinator, submitter):
    result = (await coordinator.merge()).value
    assert result.merged_count == 0
    assert submitter.requests == []


async def test_concurrent_merges_submit_once(coordinator, guest_store, submitter):
    await _fill(guest_store)
    submitter.gate = asyncio.Event()

    first = asyncio.create_task(coordinator.merge())
    second = asyncio.create_task(coordinator.merge())
    await asyncio.sleep(0)
    submitter.gate.set()
    results = await asyncio.gather(first, second)

    assert sorted(r.value.merged_count for r in results) == [0, 2]
    assert len(submitter.requests) == 1
    assert submitter.boxes() == 5


async def test_network_failure_keeps_guest_cart_and_retry_reuses_token(
    coordinator, guest_store, submitter, journal
):
    await _fill(guest_store)
    submitter.failures.append(SubmitFailed("timeout", retriable=True))

    failed = await coordinator.merge()
    match failed:
        case Error(e):
            assert e.kind is MergeErrorKind.NETWORK
            assert e.retriable
        case Ok(_):
            pytest.fail("expected NETWORK error")

    assert (await guest_store.load()).value.total_boxes == 5
    marker = (await journal.read()).value
    assert marker.state is MergeState.PENDING

    retried = (await coordinator.merge()).value
    assert retried.merged_count == 2
    assert [r.token for r in submitter.requests] == ["token-1", "token-1"]
    assert (await guest_store.load()).value.is_empty


async def test_lost_response_does_not_duplicate(coordinator, guest_store, submitter):
    await _fill(guest_store)
    submitter.lose_response = True

    assert isinstance(await coordinator.merge(), Error)
    await coordinator.merge()

    assert len(submitter.applied) == 1
    assert submitter.boxes() == 5


async def test_pending_merge_resubmits_original_items(coordinator, guest_store, submitter):
    await _fill(guest_store)
    submitter.failures.append(SubmitFailed("timeout", retriable=True))
    await coordinator.merge()

    # Guest cart changes while the merge is pending
    await guest_store.add(make_snapshot(3), 1)
    await coordinator.merge()

    assert submitter.requests[1] == submitter.requests[0]

    # Only the merged boxes are retired; the later line waits for the next merge
    left = (await guest_store.load()).value
    assert [(line.product_id, line.quantity_boxes) for line in left.lines] == [(3, 1)]


async def test_rejection_keeps_guest_cart_and_drops_marker(
    coordinator, guest_store, submitter, journal
):
    await _fill(guest_store)
    submitter.failures.append(SubmitFailed("cart locked", retriable=False))

    result = await coordinator.merge()
    match result:
        case Error(e):
            assert e.kind is MergeErrorKind.REJECTED
            assert not e.retriable
        case Ok(_):
            pytest.fail("expected REJECTED error")

    assert (await guest_store.load()).value.total_boxes == 5
    assert (await journal.read()).value is None

    # A later attempt is a new merge with a new token
    await coordinator.merge()
    assert submitter.requests[-1].token == "token-2"


async def test_failed_clear_is_finished_by_recover(
    coordinator, guest_store, submitter, journal, device_tier
):
    await _fill(guest_store)
    device_tier.fail_deletes = True

    result = (await coordinator.merge()).value
    assert result.merged_count == 2
    assert (await guest_store.load()).value.total_boxes == 5
    assert (await journal.read()).value.state is MergeState.COMPLETED

    device_tier.fail_deletes = False
    recovered = (await coordinator.recover()).value
    assert recovered is not None
    assert recovered.recovered
    assert recovered.merged_count == 0
    assert (await guest_store.load()).value.is_empty
    assert (await journal.read()).value is None
    assert len(submitter.requests) == 1


async def test_failed_clear_is_finished_by_next_merge(coordinator, guest_store, submitter, device_tier):
    await _fill(guest_store)
    device_tier.fail_deletes = True
    await coordinator.merge()
    device_tier.fail_deletes = False

    result = (await coordinator.merge()).value
    assert result.recovered
    assert result.merged_count == 0
    assert len(submitter.requests) == 1
    assert (await guest_store.load()).value.is_empty


async def test_recover_leaves_pending_marker_alone(coordinator, guest_store, submitter, journal):
    await _fill(guest_store)
    submitter.failures.append(SubmitFailed("timeout", retriable=True))
    await coordinator.merge()

    assert (await coordinator.recover()).value is None
    assert (await journal.read()).value.state is MergeState.PENDING
    assert len(submitter.requests) == 1


async def test_unwritable_marker_aborts_before_network(coordinator, guest_store, submitter, device_tier):
    await _fill(guest_store)
    device_tier.fail_writes = True

    result = await coordinator.merge()
    match result:
        case Error(e):
            assert e.kind is MergeErrorKind.STORAGE
        case Ok(_):
            pytest.fail("expected STORAGE error")
    assert submitter.requests == []


async def test_malformed_marker_is_discarded(coordinator, guest_store, storage, submitter):
    await storage.write("guest_cart_merge", {"token": "x"})
    await _fill(guest_store)

    result = (await coordinator.merge()).value
    assert result.merged_count == 2
    assert submitter.requests[0].token == "token-1"
