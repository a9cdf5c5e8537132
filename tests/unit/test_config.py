"""
Unit tests for configuration loading and validation.
"""

import pydantic
import pytest

from guest_wifi_sync.config import (
    AppConfig,
    LoggingConfig,
    LookupConfig,
    PortalConfig,
    R710Config,
    SyncConfig,
    get_config,
    reset_config,
    set_config,
)
from guest_wifi_sync.constants import MAX_BATCH_SIZE


class TestDefaults:
    """Test default values."""

    def test_lookup_timings(self):
        config = LookupConfig()

        assert config.inter_key_gap_ms == 80
        assert config.idle_flush_ms == 150
        assert config.debounce_ms == 300
        assert config.dedupe_window_ms == 3000

    def test_sync_defaults(self):
        config = SyncConfig()

        assert config.max_batch_size == MAX_BATCH_SIZE
        assert "not found" in config.not_found_phrases

    def test_portal_timeouts(self):
        config = PortalConfig(base_url="http://portal.test")

        assert config.interactive_timeout == 5.0
        assert config.batch_timeout == 30.0


class TestEnvironment:
    """Test environment variable overrides."""

    def test_portal_from_env(self, monkeypatch):
        monkeypatch.setenv("PORTAL_BASE_URL", "http://10.0.0.2/")
        monkeypatch.setenv("PORTAL_API_KEY", "k1")

        config = PortalConfig()

        assert config.base_url == "http://10.0.0.2"
        assert config.api_key == "k1"

    def test_r710_from_env(self, monkeypatch):
        monkeypatch.setenv("R710_HOST", "https://10.0.0.3")
        monkeypatch.setenv("R710_PASSWORD", "secret")

        config = R710Config()

        assert config.host == "https://10.0.0.3"
        assert config.password == "secret"
        assert config.verify_tls is False

    def test_log_level_normalized(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert LoggingConfig().level == "DEBUG"


class TestValidation:
    """Test rejected values."""

    def test_invalid_log_level(self):
        with pytest.raises(pydantic.ValidationError):
            LoggingConfig(level="LOUD")

    @pytest.mark.parametrize("size", [0, MAX_BATCH_SIZE + 1])
    def test_batch_size_bounds(self, size):
        with pytest.raises(pydantic.ValidationError):
            SyncConfig(max_batch_size=size)

    def test_non_positive_timeout(self):
        with pytest.raises(pydantic.ValidationError):
            PortalConfig(base_url="http://portal.test", interactive_timeout=0)


class TestGlobalConfig:
    """Test the process-wide config instance."""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_set_and_reset(self):
        custom = AppConfig(environment="test")
        set_config(custom)
        assert get_config() is custom

        reset_config()
        assert get_config() is not custom
