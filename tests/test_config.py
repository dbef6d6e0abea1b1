"""Tests for engine configuration."""

from datetime import timedelta

import pytest

from boxcart import EngineConfig, EngineSettings


def test_defaults():
    config = EngineConfig()
    assert config.catalog_ttl == timedelta(minutes=5)
    assert config.remote_cart_ttl == timedelta(minutes=2)
    assert config.guest_cart_key == "guest_cart"
    assert config.default_wholesale_min_boxes == 50


def test_fluent_updates_return_new_config():
    base = EngineConfig()
    changed = base.with_base_url("https://shop.example/api").with_catalog_ttl(minutes=10)

    assert base.base_url == "http://localhost:8000/api"
    assert changed.base_url == "https://shop.example/api"
    assert changed.catalog_ttl == timedelta(minutes=10)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"request_timeout": 0},
        {"catalog_ttl": timedelta(0)},
        {"default_wholesale_min_boxes": 0},
        {"guest_cart_key": "same", "merge_marker_key": "same"},
    ],
)
def test_invalid_config_rejected(kwargs):
    with pytest.raises(ValueError):
        EngineConfig(**kwargs)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("BOXCART_BASE_URL", "https://api.example/v1")
    monkeypatch.setenv("BOXCART_CATALOG_TTL_SECONDS", "60")
    monkeypatch.setenv("BOXCART_DEFAULT_WHOLESALE_MIN_BOXES", "20")

    config = EngineSettings().to_config()
    assert config.base_url == "https://api.example/v1"
    assert config.catalog_ttl == timedelta(seconds=60)
    assert config.remote_cart_ttl == timedelta(minutes=2)
    assert config.default_wholesale_min_boxes == 20
