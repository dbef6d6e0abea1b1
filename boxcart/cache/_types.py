"""
Cache types.
"""

from __future__ import annotations

import fnmatch
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, auto
from typing import Any, Protocol

# ═══════════════════════════════════════════════════════════════════════════════
# Cache Entry — payload + fetch time
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CacheEntry[T]:
    """
    A stored payload and the moment it was fetched.

    Entries never expire on their own. Validity is a question the
    caller asks with a ttl and a "now".
    """

    key: str
    payload: T
    fetched_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.fetched_at

    def is_valid(self, ttl: timedelta | None, now: datetime) -> bool:
        return is_valid(self, ttl, now)


def is_valid(entry: CacheEntry[Any], ttl: timedelta | None, now: datetime) -> bool:
    """
    now − fetched_at < ttl.

    ttl=None means the entry never goes stale (explicit clear only).
    """
    if ttl is None:
        return True
    return now - entry.fetched_at < ttl


# ═══════════════════════════════════════════════════════════════════════════════
# Tier Protocol — Storage Backends Implement This
# ═══════════════════════════════════════════════════════════════════════════════


class Tier[T](Protocol):
    """
    Cache tier protocol.

    A tier is plain storage: it keeps whatever it is given and never
    decides staleness. Raising from any method is reported by the cache
    as a STORAGE error.

    Example:
        class RedisTier:
            @property
            def name(self) -> str:
                return "redis"

            async def get(self, key: str) -> CacheEntry[Any] | None:
                data = await self.client.get(key)
                return pickle.loads(data) if data else None

            async def set(self, key: str, value: CacheEntry[Any]) -> None:
                await self.client.set(key, pickle.dumps(value))

            async def delete(self, key: str) -> bool:
                return await self.client.delete(key) > 0

            async def delete_pattern(self, pattern: str) -> int:
                keys = await self.client.keys(pattern)
                return await self.client.delete(*keys) if keys else 0
    """

    @property
    def name(self) -> str:
        """Tier name for debugging."""
        ...

    async def get(self, key: str) -> T | None:
        """Get value. Returns None on miss."""
        ...

    async def set(self, key: str, value: T) -> None:
        """Set value."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if existed."""
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching glob pattern. Returns count."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Local Tier — In-Memory, optionally bounded
# ═══════════════════════════════════════════════════════════════════════════════


class LocalTier[T]:
    """
    In-memory tier. LRU eviction when max_size is set.

    Example:
        tier = LocalTier[CacheEntry[dict[str, Any]]](max_size=100)
    """

    def __init__(self, max_size: int | None = None, name: str = "local") -> None:
        self._max_size = max_size
        self._name = name
        self._data: OrderedDict[str, T] = OrderedDict()

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        return len(self._data)

    async def get(self, key: str) -> T | None:
        if key not in self._data:
            return None
        self._data.move_to_end(key)
        return self._data[key]

    async def set(self, key: str, value: T) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        if self._max_size is not None:
            while len(self._data) > self._max_size:
                self._data.popitem(last=False)

    async def delete(self, key: str) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        return True

    async def delete_pattern(self, pattern: str) -> int:
        doomed = [k for k in self._data if fnmatch.fnmatch(k, pattern)]
        for key in doomed:
            del self._data[key]
        return len(doomed)


# ═══════════════════════════════════════════════════════════════════════════════
# Cache Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CacheResult[T]:
    """Read-through result with metadata."""

    value: T
    hit: bool
    tier: str | None
    fetched_at: datetime
    ttl_remaining: timedelta | None


class CacheErrorKind(Enum):
    """Cache error kinds."""

    MISS = auto()
    STORAGE = auto()
    CORRUPT = auto()
    NO_FETCH = auto()


@dataclass(frozen=True, slots=True)
class CacheError:
    """Cache operation error."""

    kind: CacheErrorKind
    message: str


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CacheEntry",
    "is_valid",
    "Tier",
    "LocalTier",
    "CacheResult",
    "CacheError",
    "CacheErrorKind",
)
