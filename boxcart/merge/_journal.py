"""
Merge journal — the persisted merge marker.

The marker lives in the same device storage as the guest cart. It is
written before the network call, so a crash or a lost response leaves
enough behind to resubmit the identical request (same token, same
items) instead of a fresh one.
"""

from __future__ import annotations

import logging
from typing import Any

from kungfu import Result, Ok, Error

from boxcart._types import Clock, utc_now
from boxcart.cache import CacheError, CacheExecutor
from boxcart.merge._types import MergeMarker, MergeReceipt, MergeRequest, MergeState

logger = logging.getLogger(__name__)

MERGE_MARKER_KEY = "guest_cart_merge"


class MergeJournal:
    """Read/write the single merge marker."""

    def __init__(
        self,
        storage: CacheExecutor[str, Any, Any],
        *,
        key: str = MERGE_MARKER_KEY,
        clock: Clock = utc_now,
    ) -> None:
        self._storage = storage
        self._key = key
        self._clock = clock

    async def read(self) -> Result[MergeMarker | None, CacheError]:
        """Current marker. Malformed markers are discarded and reported as absent."""
        result = await self._storage.read(self._key)
        match result:
            case Ok(None):
                return Ok(None)
            case Ok(entry):
                try:
                    return Ok(MergeMarker.from_mapping(entry.payload))
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    logger.warning(f"Discarding malformed merge marker: {e}")
                    match await self._storage.invalidate(self._key):
                        case Ok(_):
                            return Ok(None)
                        case Error(err):
                            return Error(err)
            case Error(e):
                return Error(e)

    async def begin(self, request: MergeRequest) -> Result[MergeMarker, CacheError]:
        marker = MergeMarker(
            request=request,
            state=MergeState.PENDING,
            created_at=self._clock(),
        )
        return await self._put(marker)

    async def complete(
        self, marker: MergeMarker, receipt: MergeReceipt
    ) -> Result[MergeMarker, CacheError]:
        done = MergeMarker(
            request=marker.request,
            state=MergeState.COMPLETED,
            created_at=marker.created_at,
            receipt=receipt,
        )
        return await self._put(done)

    async def discard(self) -> Result[bool, CacheError]:
        return await self._storage.invalidate(self._key)

    async def _put(self, marker: MergeMarker) -> Result[MergeMarker, CacheError]:
        match await self._storage.write(self._key, marker.to_mapping()):
            case Ok(_):
                return Ok(marker)
            case Error(e):
                return Error(e)


__all__ = ("MERGE_MARKER_KEY", "MergeJournal")
