"""
Cache builder — fluent API.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from collections.abc import Callable
from typing import Any

from kungfu import LazyCoroResult, Result, Ok, Error

from boxcart._types import Clock, utc_now
from boxcart.cache._types import (
    CacheEntry,
    CacheError,
    CacheErrorKind,
    CacheResult,
    Tier,
    is_valid,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Function Types
# ═══════════════════════════════════════════════════════════════════════════════

type KeyFn[K] = Callable[[K], str]
type FetchFn[K, T, E] = Callable[[K], LazyCoroResult[T, E]]


# ═══════════════════════════════════════════════════════════════════════════════
# Cache Builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Cache[K, T, E]:
    """
    Fluent cache builder.

    Type parameters:
        K: Key input type
        T: Payload type
        E: Error type from fetch

    Example:
        product_cache = (
            C.cache(lambda pid: f"product:{pid}", fetch_product)
            .tier(C.LocalTier())
            .ttl(minutes=5)
            .build()
        )
    """

    _key_fn: KeyFn[K]
    _fetch: FetchFn[K, T, E] | None
    _tiers: tuple[Tier[CacheEntry[Any]], ...]
    _ttl: timedelta | None
    _clock: Clock

    def tier(self, t: Tier[CacheEntry[Any]]) -> Cache[K, T, E]:
        """Add storage tier. Tiers are read in the order added."""
        return Cache(
            _key_fn=self._key_fn,
            _fetch=self._fetch,
            _tiers=(*self._tiers, t),
            _ttl=self._ttl,
            _clock=self._clock,
        )

    def ttl(
        self,
        *,
        seconds: float | None = None,
        minutes: float | None = None,
        delta: timedelta | None = None,
    ) -> Cache[K, T, E]:
        """
        Set validity window.

        Example:
            .ttl(minutes=5)
            .ttl(delta=timedelta(minutes=2))
        """
        if delta is None:
            delta = timedelta(seconds=(seconds or 0) + (minutes or 0) * 60)
        if delta.total_seconds() <= 0:
            raise ValueError("ttl must be positive; use forever() for no expiry")
        return Cache(
            _key_fn=self._key_fn,
            _fetch=self._fetch,
            _tiers=self._tiers,
            _ttl=delta,
            _clock=self._clock,
        )

    def forever(self) -> Cache[K, T, E]:
        """Entries never go stale; only explicit invalidation removes them."""
        return Cache(
            _key_fn=self._key_fn,
            _fetch=self._fetch,
            _tiers=self._tiers,
            _ttl=None,
            _clock=self._clock,
        )

    def clock(self, fn: Clock) -> Cache[K, T, E]:
        """Override the source of "now"."""
        return Cache(
            _key_fn=self._key_fn,
            _fetch=self._fetch,
            _tiers=self._tiers,
            _ttl=self._ttl,
            _clock=fn,
        )

    def build(self) -> CacheExecutor[K, T, E]:
        """Build executable cache."""
        if not self._tiers:
            raise ValueError("at least one tier() is required")
        return CacheExecutor(
            key_fn=self._key_fn,
            tiers=self._tiers,
            fetch=self._fetch,
            ttl=self._ttl,
            clock=self._clock,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Cache Executor
# ═══════════════════════════════════════════════════════════════════════════════


class CacheExecutor[K, T, E]:
    """
    Compiled cache executor.

    read()/write() are the persistence primitive: no staleness logic.
    get() is read-through with the validity check applied.
    """

    def __init__(
        self,
        key_fn: KeyFn[K],
        tiers: tuple[Tier[CacheEntry[Any]], ...],
        fetch: FetchFn[K, T, E] | None,
        ttl: timedelta | None,
        clock: Clock,
    ) -> None:
        self.key_fn = key_fn
        self.tiers = tiers
        self.fetch = fetch
        self.ttl = ttl
        self.clock = clock
        self._write_locks: dict[str, asyncio.Lock] = {}
        self._writers: dict[str, int] = {}

    def is_valid(self, entry: CacheEntry[Any]) -> bool:
        """Validity of entry against this cache's ttl, now."""
        return is_valid(entry, self.ttl, self.clock())

    def _remaining(self, entry: CacheEntry[Any]) -> timedelta | None:
        if self.ttl is None:
            return None
        return self.ttl - entry.age(self.clock())

    async def _read_tiers(
        self, cache_key: str
    ) -> Result[tuple[CacheEntry[T], str] | None, CacheError]:
        for t in self.tiers:
            try:
                value = await t.get(cache_key)
            except Exception as e:
                logger.warning(f"Cache tier {t.name} read failed for {cache_key}: {e}")
                return Error(CacheError(CacheErrorKind.STORAGE, str(e)))
            if value is None:
                continue
            if not isinstance(value, CacheEntry):
                logger.warning(f"Cache tier {t.name} returned corrupt entry for {cache_key}")
                continue
            return Ok((value, t.name))
        return Ok(None)

    async def read(self, key: K) -> Result[CacheEntry[T] | None, CacheError]:
        """Raw entry from the first tier holding one, valid or not."""
        result = await self._read_tiers(self.key_fn(key))
        match result:
            case Ok(None):
                return Ok(None)
            case Ok((entry, _)):
                return Ok(entry)
            case Error(e):
                return Error(e)

    async def write(self, key: K, payload: T) -> Result[CacheEntry[T], CacheError]:
        """Stamp payload with now and store it in every tier."""
        cache_key = self.key_fn(key)
        lock = self._write_locks.setdefault(cache_key, asyncio.Lock())
        self._writers[cache_key] = self._writers.get(cache_key, 0) + 1
        try:
            async with lock:
                return await self._write_tiers(cache_key, payload)
        finally:
            # Drop the lock once its last writer is done.
            self._writers[cache_key] -= 1
            if not self._writers[cache_key]:
                del self._writers[cache_key]
                del self._write_locks[cache_key]

    async def _write_tiers(self, cache_key: str, payload: T) -> Result[CacheEntry[T], CacheError]:
        entry = CacheEntry(key=cache_key, payload=payload, fetched_at=self.clock())
        for t in self.tiers:
            try:
                await t.set(cache_key, entry)
            except Exception as e:
                logger.error(f"Cache tier {t.name} write failed for {cache_key}: {e}")
                return Error(CacheError(CacheErrorKind.STORAGE, str(e)))
        return Ok(entry)

    def get(
        self, key: K, *, force_refresh: bool = False
    ) -> LazyCoroResult[CacheResult[T], CacheError | E]:
        """
        Read-through get.

        Returns the first valid entry unless force_refresh is set;
        otherwise fetches, stores and returns the fresh payload.
        """
        cache_key = self.key_fn(key)

        async def execute() -> Result[CacheResult[T], CacheError | E]:
            if not force_refresh:
                found = await self._read_tiers(cache_key)
                match found:
                    case Ok((entry, tier_name)) if self.is_valid(entry):
                        return Ok(
                            CacheResult(
                                value=entry.payload,
                                hit=True,
                                tier=tier_name,
                                fetched_at=entry.fetched_at,
                                ttl_remaining=self._remaining(entry),
                            )
                        )
                    case _:
                        pass

            if self.fetch is None:
                return Error(
                    CacheError(CacheErrorKind.NO_FETCH, f"no fresh entry for {cache_key}")
                )

            fetched = await self.fetch(key)
            match fetched:
                case Ok(value):
                    written = await self.write(key, value)
                    match written:
                        case Ok(entry):
                            fetched_at = entry.fetched_at
                        case Error(_):
                            # Best effort: the caller still gets the fresh value
                            fetched_at = self.clock()
                    return Ok(
                        CacheResult(
                            value=value,
                            hit=False,
                            tier=None,
                            fetched_at=fetched_at,
                            ttl_remaining=self.ttl,
                        )
                    )
                case Error(e):
                    return Error(e)

        return LazyCoroResult(execute)

    async def invalidate(self, key: K) -> Result[bool, CacheError]:
        """Invalidate key in all tiers."""
        cache_key = self.key_fn(key)
        deleted = False
        for t in self.tiers:
            try:
                if await t.delete(cache_key):
                    deleted = True
            except Exception as e:
                logger.error(f"Cache tier {t.name} delete failed for {cache_key}: {e}")
                return Error(CacheError(CacheErrorKind.STORAGE, str(e)))
        return Ok(deleted)

    async def invalidate_pattern(self, pattern: str) -> Result[int, CacheError]:
        """Invalidate keys matching glob pattern in all tiers."""
        total = 0
        for t in self.tiers:
            try:
                total += await t.delete_pattern(pattern)
            except Exception as e:
                logger.error(f"Cache tier {t.name} pattern delete failed for {pattern}: {e}")
                return Error(CacheError(CacheErrorKind.STORAGE, str(e)))
        return Ok(total)


# ═══════════════════════════════════════════════════════════════════════════════
# cache() — Entry Point (Type-Safe)
# ═══════════════════════════════════════════════════════════════════════════════


def cache[K, T, E](
    key: KeyFn[K],
    fetch: FetchFn[K, T, E] | None = None,
) -> Cache[K, T, E]:
    """
    Create cache builder with key function and optional fetch.

    Defaults: no expiry, UTC wall clock. Without fetch the executor is a
    keyed store: read()/write() work and get() misses with NO_FETCH.

    Example:
        from boxcart import cache as C

        def fetch_product(pid: int) -> LazyCoroResult[PricingSnapshot, CatalogError]:
            return LazyCoroResult(lambda: catalog.fetch_product_snapshot(pid))

        products = (
            C.cache(lambda pid: f"product:{pid}", fetch_product)
            .tier(C.LocalTier())
            .ttl(minutes=5)
            .build()
        )

        result = await products.get(42)
        fresh = await products.get(42, force_refresh=True)
    """
    return Cache(
        _key_fn=key,
        _fetch=fetch,
        _tiers=(),
        _ttl=None,
        _clock=utc_now,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("Cache", "CacheExecutor", "cache", "KeyFn", "FetchFn")
