"""
Unit tests for configuration models.
"""

import pytest
from pydantic import ValidationError

from educademy.config import get_config, reset_config
from educademy.config.models import AuthConfig, CORSConfig, DatabaseConfig, LoggingConfig, RealtimeConfig


def test_get_config_test_mode_returns_fresh_instances():
    """In test mode every call builds a new AppConfig."""
    assert get_config() is not get_config()


def test_reset_config_clears_state():
    config1 = get_config()
    reset_config()

    assert config1 is not get_config()


def test_environment_drives_nested_sections(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("REALTIME_HEARTBEAT_TIMEOUT_SECONDS", "15")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "42")

    config = get_config()

    assert config.realtime.heartbeat_timeout_seconds == 15
    assert config.cache.ttl_seconds == 42
    assert config.database.url.startswith("sqlite+aiosqlite://")


class TestValidators:
    """Test field validation."""

    def test_database_url_requires_async_driver(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(url="postgresql://localhost/educademy")

    def test_jwt_algorithm_must_be_hmac(self):
        with pytest.raises(ValidationError):
            AuthConfig(jwt_algorithm="RS256")

    def test_realtime_timings_must_be_positive(self):
        with pytest.raises(ValidationError):
            RealtimeConfig(heartbeat_timeout_seconds=0)
        with pytest.raises(ValidationError):
            RealtimeConfig(pending_drain_limit=0)

    def test_logging_level_is_normalised(self):
        assert LoggingConfig(level="debug").level == "DEBUG"
        with pytest.raises(ValidationError):
            LoggingConfig(environment="staging")

    def test_cors_lists_accept_csv_and_json(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example, https://b.example")
        monkeypatch.setenv("CORS_ALLOW_METHODS", '["GET", "POST"]')

        cors = CORSConfig()

        assert cors.allow_origins == ["https://a.example", "https://b.example"]
        assert cors.allow_methods == ["GET", "POST"]
