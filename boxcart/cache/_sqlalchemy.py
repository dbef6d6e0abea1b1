"""
SQLAlchemy tier — on-device persistence for cache entries.

One key/value table; payloads are JSON text. This is the durable
storage the guest cart and the merge marker live in.

Usage:
    tier = await open_sqlite_tier("sqlite+aiosqlite:///cart.db")
    guest_cart = C.cache(lambda k: k).tier(tier).forever().build()
    ...
    await tier.dispose()
"""

from __future__ import annotations

import fnmatch
import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy import String, Text, delete, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from boxcart.cache._types import CacheEntry

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Table
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


class CacheEntryRow(Base):
    """
    Persisted cache entry.

    Note: fetched_at is ISO-8601 text so the timezone survives SQLite.
    """

    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    fetched_at: Mapped[str] = mapped_column(String(64), nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy Tier
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyTier:
    """
    Tier persisting CacheEntry values in cache_entries.

    Rows that cannot be decoded are reported as a miss, never raised.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        encode: Callable[[Any], str] = json.dumps,
        decode: Callable[[str], Any] = json.loads,
        name: str = "sqlalchemy",
    ) -> None:
        self._session = session_factory
        self._encode = encode
        self._decode = decode
        self._name = name
        self._engine: AsyncEngine | None = None

    @property
    def name(self) -> str:
        return self._name

    async def get(self, key: str) -> CacheEntry[Any] | None:
        async with self._session() as session:
            row = await session.get(CacheEntryRow, key)
            if row is None:
                return None
            try:
                payload = self._decode(row.payload)
                fetched_at = datetime.fromisoformat(row.fetched_at)
            except (ValueError, TypeError) as e:
                logger.warning(f"Discarding corrupt cache row {key}: {e}")
                return None
            return CacheEntry(key=key, payload=payload, fetched_at=fetched_at)

    async def set(self, key: str, value: CacheEntry[Any]) -> None:
        row = CacheEntryRow(
            key=key,
            payload=self._encode(value.payload),
            fetched_at=value.fetched_at.isoformat(),
        )
        async with self._session() as session:
            await session.merge(row)
            await session.commit()

    async def delete(self, key: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                delete(CacheEntryRow).where(CacheEntryRow.key == key)
            )
            await session.commit()
            return (result.rowcount or 0) > 0  # type: ignore[attr-defined]

    async def delete_pattern(self, pattern: str) -> int:
        async with self._session() as session:
            keys = (await session.execute(select(CacheEntryRow.key))).scalars().all()
            doomed = [k for k in keys if fnmatch.fnmatch(k, pattern)]
            if doomed:
                await session.execute(
                    delete(CacheEntryRow).where(CacheEntryRow.key.in_(doomed))
                )
                await session.commit()
            return len(doomed)

    async def dispose(self) -> None:
        """Dispose the engine if this tier created it."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None


# ═══════════════════════════════════════════════════════════════════════════════
# Setup
# ═══════════════════════════════════════════════════════════════════════════════


async def open_sqlite_tier(
    url: str = "sqlite+aiosqlite:///boxcart.db",
    *,
    name: str = "device",
) -> SQLAlchemyTier:
    """Create engine, ensure the table exists and return an owning tier."""
    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    tier = SQLAlchemyTier(async_sessionmaker(engine, expire_on_commit=False), name=name)
    tier._engine = engine
    return tier


__all__ = ("Base", "CacheEntryRow", "SQLAlchemyTier", "open_sqlite_tier")
