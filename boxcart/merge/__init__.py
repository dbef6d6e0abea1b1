"""
Merge — move the guest cart into the server cart exactly once.

    from boxcart import merge as M

    journal = M.MergeJournal(device_storage)
    coordinator = M.MergeCoordinator(guest_store, journal, remote_cart)

    await coordinator.recover()         # on launch
    result = await coordinator.merge()  # on sign-in
"""

from __future__ import annotations

from boxcart.merge._types import (
    MergeItem,
    MergeRequest,
    merge_items,
    MergeReceipt,
    MergeState,
    MergeMarker,
    MergeResult,
    MergeErrorKind,
    MergeError,
    SubmitFailure,
    MergeSubmitter,
)
from boxcart.merge._journal import MERGE_MARKER_KEY, MergeJournal
from boxcart.merge._coordinator import MergeCoordinator, new_merge_token

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
    "MERGE_MARKER_KEY",
    "MergeJournal",
    "MergeCoordinator",
    "new_merge_token",
)
