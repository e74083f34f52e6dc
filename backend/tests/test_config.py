"""Tests for environment-driven settings."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from quotewatch.config import Settings, get_settings


class TestSettings:
    """Tests for Settings.from_env()."""

    def test_defaults(self):
        """Test defaults when no QUOTEWATCH_* variables are set."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()

        assert settings.API_BASE_URL == "https://api.cert.tastyworks.com"
        assert settings.STREAMER_URL == "wss://streamer.cert.tastyworks.com"
        assert settings.ENABLE_STREAMING is True
        assert settings.POLL_INTERVAL_SEC == 5.0
        assert settings.CONNECT_TIMEOUT_SEC == 10.0
        assert settings.HEARTBEAT_INTERVAL_SEC == 30.0
        assert settings.MAX_RECONNECT_ATTEMPTS == 5

    def test_overrides(self):
        """Test that environment values are read and coerced."""
        env = {
            "QUOTEWATCH_API_URL": "https://api.example.com",
            "QUOTEWATCH_STREAMER_URL": "wss://stream.example.com",
            "QUOTEWATCH_POLL_INTERVAL": "2.5",
            "QUOTEWATCH_MAX_RECONNECT_ATTEMPTS": "3",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()

        assert settings.API_BASE_URL == "https://api.example.com"
        assert settings.STREAMER_URL == "wss://stream.example.com"
        assert settings.POLL_INTERVAL_SEC == 2.5
        assert settings.MAX_RECONNECT_ATTEMPTS == 3

    def test_reconnect_delay_overrides(self):
        """Test that both backoff bounds can be set from the environment."""
        env = {
            "QUOTEWATCH_RECONNECT_BASE_DELAY": "0.5",
            "QUOTEWATCH_RECONNECT_MAX_DELAY": "10",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()

        assert settings.RECONNECT_BASE_DELAY_SEC == 0.5
        assert settings.RECONNECT_MAX_DELAY_SEC == 10.0

    def test_streaming_disabled_only_by_false(self):
        """Test that only "false" turns streaming off."""
        with patch.dict(os.environ, {"QUOTEWATCH_ENABLE_STREAMING": "FALSE"}, clear=True):
            assert Settings.from_env().ENABLE_STREAMING is False
        with patch.dict(os.environ, {"QUOTEWATCH_ENABLE_STREAMING": "no"}, clear=True):
            assert Settings.from_env().ENABLE_STREAMING is True

    def test_empty_values_ignored(self):
        """Test that blank variables fall back to defaults."""
        with patch.dict(os.environ, {"QUOTEWATCH_POLL_INTERVAL": "  "}, clear=True):
            assert Settings.from_env().POLL_INTERVAL_SEC == 5.0

    def test_invalid_interval_rejected(self):
        """Test that a non-positive poll interval fails validation."""
        with patch.dict(os.environ, {"QUOTEWATCH_POLL_INTERVAL": "0"}, clear=True):
            with pytest.raises(ValidationError):
                Settings.from_env()

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        with patch.dict(os.environ, {}, clear=True):
            assert get_settings() is get_settings()
        get_settings.cache_clear()
