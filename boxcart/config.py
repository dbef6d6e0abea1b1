"""
Engine configuration.

EngineConfig is the immutable value the engine is built from.
EngineSettings loads the same fields from the environment (prefix
BOXCART_) for deployments that configure through env vars.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from boxcart.cart import GUEST_CART_KEY
from boxcart.merge import MERGE_MARKER_KEY
from boxcart.pricing import DEFAULT_WHOLESALE_MIN_BOXES

# ═══════════════════════════════════════════════════════════════════════════════
# EngineConfig — Fluent, Immutable
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Engine configuration.

    Example:
        config = (
            EngineConfig()
            .with_base_url("https://shop.example/api")
            .with_catalog_ttl(minutes=10)
        )
    """

    base_url: str = "http://localhost:8000/api"
    request_timeout: float = 30.0
    catalog_ttl: timedelta = timedelta(minutes=5)
    remote_cart_ttl: timedelta = timedelta(minutes=2)
    guest_cart_key: str = GUEST_CART_KEY
    merge_marker_key: str = MERGE_MARKER_KEY
    default_wholesale_min_boxes: int = DEFAULT_WHOLESALE_MIN_BOXES
    database_url: str = "sqlite+aiosqlite:///boxcart.db"

    def __post_init__(self) -> None:
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.catalog_ttl <= timedelta(0) or self.remote_cart_ttl <= timedelta(0):
            raise ValueError("cache ttls must be positive")
        if self.default_wholesale_min_boxes < 1:
            raise ValueError("default_wholesale_min_boxes must be at least 1")
        if self.guest_cart_key == self.merge_marker_key:
            raise ValueError("guest cart and merge marker need distinct keys")

    def with_base_url(self, url: str) -> EngineConfig:
        return replace(self, base_url=url)

    def with_request_timeout(self, seconds: float) -> EngineConfig:
        return replace(self, request_timeout=seconds)

    def with_catalog_ttl(
        self, *, seconds: float = 0, minutes: float = 0
    ) -> EngineConfig:
        return replace(self, catalog_ttl=timedelta(seconds=seconds, minutes=minutes))

    def with_remote_cart_ttl(
        self, *, seconds: float = 0, minutes: float = 0
    ) -> EngineConfig:
        return replace(self, remote_cart_ttl=timedelta(seconds=seconds, minutes=minutes))

    def with_storage_keys(
        self, *, guest_cart: str | None = None, merge_marker: str | None = None
    ) -> EngineConfig:
        return replace(
            self,
            guest_cart_key=guest_cart or self.guest_cart_key,
            merge_marker_key=merge_marker or self.merge_marker_key,
        )

    def with_database_url(self, url: str) -> EngineConfig:
        return replace(self, database_url=url)

    def with_default_wholesale_min_boxes(self, boxes: int) -> EngineConfig:
        return replace(self, default_wholesale_min_boxes=boxes)


# ═══════════════════════════════════════════════════════════════════════════════
# EngineSettings — Environment
# ═══════════════════════════════════════════════════════════════════════════════


class EngineSettings(BaseSettings):
    """Settings loaded from environment. Durations are in seconds."""

    model_config = SettingsConfigDict(
        env_prefix="BOXCART_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = "http://localhost:8000/api"
    request_timeout: float = 30.0
    catalog_ttl_seconds: float = 300.0
    remote_cart_ttl_seconds: float = 120.0
    guest_cart_key: str = GUEST_CART_KEY
    merge_marker_key: str = MERGE_MARKER_KEY
    default_wholesale_min_boxes: int = DEFAULT_WHOLESALE_MIN_BOXES
    database_url: str = "sqlite+aiosqlite:///boxcart.db"

    def to_config(self) -> EngineConfig:
        return EngineConfig(
            base_url=self.base_url,
            request_timeout=self.request_timeout,
            catalog_ttl=timedelta(seconds=self.catalog_ttl_seconds),
            remote_cart_ttl=timedelta(seconds=self.remote_cart_ttl_seconds),
            guest_cart_key=self.guest_cart_key,
            merge_marker_key=self.merge_marker_key,
            default_wholesale_min_boxes=self.default_wholesale_min_boxes,
            database_url=self.database_url,
        )


@lru_cache
def get_settings() -> EngineSettings:
    """Cached settings instance"""
    return EngineSettings()


__all__ = ("EngineConfig", "EngineSettings", "get_settings")
