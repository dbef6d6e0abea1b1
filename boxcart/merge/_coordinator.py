"""
Merge coordinator — guest cart into server cart, exactly once.

Sequence (under one lock):

    1. COMPLETED marker left over? finish: retire merged lines, drop marker.
    2. PENDING marker left over? resubmit its request verbatim.
       Otherwise snapshot the guest cart; empty → no-op.
       Persist a PENDING marker with a fresh token.
    3. Submit.
         network failure → keep marker, report retriable error
         rejection       → drop marker, report error
         accepted        → mark COMPLETED, retire merged lines, drop marker

Retiring subtracts exactly the merged boxes from the guest cart, so
anything added while the merge was in flight survives for the next
merge. It only happens after the server accepted the merge. A failed
retire leaves the COMPLETED marker behind; the next merge() or
recover() finishes the job without touching the network.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from kungfu import Result, Ok, Error

from boxcart.cart import GuestCartStore
from boxcart.merge._journal import MergeJournal
from boxcart.merge._types import (
    MergeError,
    MergeErrorKind,
    MergeMarker,
    MergeRequest,
    MergeResult,
    MergeSubmitter,
    merge_items,
)

logger = logging.getLogger(__name__)


def new_merge_token() -> str:
    return uuid.uuid4().hex


class MergeCoordinator:
    """
    Moves the guest cart into the authenticated cart.

    Example:
        coordinator = MergeCoordinator(guest_store, journal, remote)

        match await coordinator.merge():
            case Ok(result):
                print(f"merged {result.merged_count} lines")
            case Error(e) if e.retriable:
                ...  # try again later; guest cart untouched
            case Error(e):
                ...  # server refused; guest cart untouched
    """

    def __init__(
        self,
        guest: GuestCartStore,
        journal: MergeJournal,
        submitter: MergeSubmitter,
        *,
        token_factory: Callable[[], str] = new_merge_token,
    ) -> None:
        self._guest = guest
        self._journal = journal
        self._submitter = submitter
        self._new_token = token_factory
        self._lock = asyncio.Lock()

    async def merge(self) -> Result[MergeResult, MergeError]:
        async with self._lock:
            match await self._journal.read():
                case Ok(marker):
                    pass
                case Error(e):
                    return Error(_storage_error("merge marker unreadable", e))

            if marker is not None and marker.is_completed:
                return Ok(await self._finish(marker, recovered=True))

            if marker is None:
                match await self._guest.load():
                    case Ok(cart):
                        pass
                    case Error(e):
                        return Error(_storage_error("guest cart unreadable", e))

                items = merge_items(cart)
                if not items:
                    logger.debug("Guest cart empty; nothing to merge")
                    return Ok(MergeResult(merged_count=0))

                request = MergeRequest(token=self._new_token(), items=items)
                match await self._journal.begin(request):
                    case Ok(marker):
                        pass
                    case Error(e):
                        return Error(_storage_error("merge marker unwritable", e))
            else:
                logger.info(f"Resubmitting pending merge {marker.request.token}")

            return await self._submit(marker)

    async def recover(self) -> Result[MergeResult | None, MergeError]:
        """
        Finish a merge the server already accepted.

        Run on launch. A PENDING marker is left alone: it needs a
        session and is resubmitted by the next merge().
        """
        async with self._lock:
            match await self._journal.read():
                case Ok(None):
                    return Ok(None)
                case Ok(marker) if marker.is_completed:
                    return Ok(await self._finish(marker, recovered=True))
                case Ok(marker):
                    logger.info(f"Merge {marker.request.token} still pending")
                    return Ok(None)
                case Error(e):
                    return Error(_storage_error("merge marker unreadable", e))

    async def _submit(self, marker: MergeMarker) -> Result[MergeResult, MergeError]:
        request = marker.request
        match await self._submitter.merge(request):
            case Ok(receipt):
                pass
            case Error(e) if e.retriable:
                logger.warning(f"Merge {request.token} outcome unknown: {e.message}")
                return Error(MergeError(MergeErrorKind.NETWORK, e.message, cause=e))
            case Error(e):
                logger.error(f"Merge {request.token} rejected: {e.message}")
                match await self._journal.discard():
                    case Error(err):
                        logger.error(f"Could not drop rejected merge marker: {err.message}")
                    case Ok(_):
                        pass
                return Error(MergeError(MergeErrorKind.REJECTED, e.message, cause=e))

        logger.info(f"Merge {request.token} accepted: {receipt.merged_count} merged")
        match await self._journal.complete(marker, receipt):
            case Ok(done):
                marker = done
            case Error(e):
                # Marker stays PENDING; a later merge() resubmits the same token.
                logger.error(f"Could not record completed merge {request.token}: {e.message}")
                return Ok(_result(marker, receipt.merged_count, receipt.stats))

        await self._finish(marker, recovered=False)
        return Ok(_result(marker, receipt.merged_count, receipt.stats))

    async def _finish(self, marker: MergeMarker, *, recovered: bool) -> MergeResult:
        stats = marker.receipt.stats if marker.receipt else None
        outcome = MergeResult(
            merged_count=0,
            stats=stats,
            token=marker.request.token,
            recovered=recovered,
        )

        merged = {i.product_id: i.quantity_boxes for i in marker.request.items}
        match await self._guest.subtract(merged):
            case Ok(left) if not left.is_empty:
                logger.info(f"{left.line_count} guest line(s) added during merge kept")
            case Ok(_):
                pass
            case Error(e):
                # Merge already landed; report success and finish on the next call.
                logger.error(f"Guest cart not retired after merge {marker.request.token}: {e.message}")
                return outcome

        match await self._journal.discard():
            case Ok(_):
                pass
            case Error(e):
                logger.warning(f"Merge marker not removed: {e.message}")

        if recovered:
            logger.info(f"Finished earlier merge {marker.request.token}")
        return outcome


def _result(
    marker: MergeMarker, merged_count: int, stats: Mapping[str, Any] | None
) -> MergeResult:
    return MergeResult(
        merged_count=merged_count,
        stats=stats,
        token=marker.request.token,
        recovered=False,
    )


def _storage_error(context: str, cause: object) -> MergeError:
    message = getattr(cause, "message", str(cause))
    logger.error(f"Merge aborted, {context}: {message}")
    return MergeError(MergeErrorKind.STORAGE, f"{context}: {message}", cause=cause)


__all__ = ("MergeCoordinator", "new_merge_token")
