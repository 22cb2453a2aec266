"""Tests for configuration loading."""

from __future__ import annotations

from unittest.mock import patch

from iclock_server.config import ConfigLoader, Settings


def test_settings_direct_construction() -> None:
    """Direct Settings() construction works without YAML (for tests)."""
    s = Settings(database_url="sqlite+aiosqlite://", max_delivery_attempts=1)
    assert s.database_url == "sqlite+aiosqlite://"
    assert s.max_delivery_attempts == 1
    assert s.success_return_code == "0"


def test_load_settings_missing_env_uses_defaults() -> None:
    """load_settings for a nonexistent env falls back to field defaults."""
    with patch.dict("os.environ", {"ICLOCK_ENV": "nonexistent"}, clear=False):
        s = ConfigLoader.load_settings()
    assert s.database_url == "sqlite+aiosqlite:///iclock.db"
    assert s.log_level == "INFO"
    assert s.ack_text == "OK"


def test_load_settings_dev_loads_yaml() -> None:
    """load_settings with ICLOCK_ENV=dev loads from config/dev/settings.yaml."""
    with patch.dict("os.environ", {"ICLOCK_ENV": "dev"}, clear=False):
        s = ConfigLoader.load_settings()
    assert s.log_level == "DEBUG"
    assert s.database_url == "sqlite+aiosqlite:///iclock-dev.db"


def test_load_settings_explicit_overrides_yaml() -> None:
    """Explicit kwargs to load_settings override YAML values."""
    with patch.dict("os.environ", {"ICLOCK_ENV": "dev"}, clear=False):
        s = ConfigLoader.load_settings(log_level="ERROR")
    assert s.log_level == "ERROR"


def test_load_settings_env_var_overrides_yaml() -> None:
    """Environment variables override YAML values."""
    env = {"ICLOCK_ENV": "dev", "ICLOCK_MAX_DELIVERY_ATTEMPTS": "7"}
    with patch.dict("os.environ", env, clear=False):
        s = ConfigLoader.load_settings()
    assert s.max_delivery_attempts == 7
