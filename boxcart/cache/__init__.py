"""
Cache — time-boxed read-through cache over pluggable tiers.

    from boxcart import cache as C

    catalog = C.cache(key_fn, fetch_fn).tier(C.LocalTier()).ttl(minutes=5).build()
    result = await catalog.get(page)                      # valid entry or fetch
    result = await catalog.get(page, force_refresh=True)  # always fetch

    guest = C.cache(lambda k: k).tier(device_tier).forever().build()
    await guest.write("guest_cart", record)
    entry = await guest.read("guest_cart")
"""

from __future__ import annotations

from boxcart.cache._types import (
    CacheEntry,
    is_valid,
    Tier,
    LocalTier,
    CacheResult,
    CacheError,
    CacheErrorKind,
)
from boxcart.cache._builder import cache, Cache, CacheExecutor
from boxcart.cache._sqlalchemy import SQLAlchemyTier, open_sqlite_tier

__all__ = (
    "CacheEntry",
    "is_valid",
    "Tier",
    "LocalTier",
    "CacheResult",
    "CacheError",
    "CacheErrorKind",
    "cache",
    "Cache",
    "CacheExecutor",
    "SQLAlchemyTier",
    "open_sqlite_tier",
)
