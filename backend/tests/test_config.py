"""
Tests for centralized configuration.
"""
import pytest
import os
from app.core.config import Settings, get_settings, reload_settings


def test_settings_defaults():
    """Test that settings have sensible defaults."""
    settings = Settings()

    assert settings.max_file_size_mb == 50
    assert settings.max_dataset_rows == 5000
    assert settings.rate_limit_per_minute == 10
    assert settings.request_timeout_seconds == 300
    assert settings.log_level == "INFO"
    assert settings.profile_sample_size == 500
    assert settings.storage_backend == "memory"
    assert settings.persist_max_records == 1000
    assert settings.query_cache_max_entries == 50
    assert settings.query_cache_ttl_seconds == 1800


def test_settings_from_env(monkeypatch):
    """Test loading settings from environment variables."""
    monkeypatch.setenv("MAX_FILE_SIZE_MB", "100")
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "20")
    monkeypatch.setenv("PROFILE_SAMPLE_SIZE", "50")
    monkeypatch.setenv("STORAGE_BACKEND", "Redis")
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setenv("QUERY_CACHE_TTL_SECONDS", "60")

    try:
        settings = reload_settings()

        assert settings.max_file_size_mb == 100
        assert settings.rate_limit_per_minute == 20
        assert settings.profile_sample_size == 50
        assert settings.storage_backend == "redis"
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.query_cache_ttl_seconds == 60
    finally:
        monkeypatch.undo()
        reload_settings()


def test_settings_validation():
    """Test that settings validate input ranges."""
    with pytest.raises(ValueError):
        Settings(max_file_size_mb=0)  # Below minimum

    with pytest.raises(ValueError):
        Settings(max_file_size_mb=2000)  # Above maximum

    with pytest.raises(ValueError):
        Settings(log_level="INVALID")  # Invalid log level

    with pytest.raises(ValueError):
        Settings(storage_backend="disk")

    with pytest.raises(ValueError):
        Settings(query_cache_max_entries=0)


def test_settings_log_level_is_normalised():
    assert Settings(log_level="debug").log_level == "DEBUG"


def test_settings_properties():
    """Test computed properties."""
    settings = Settings(max_file_size_mb=50, allowed_origins="http://a.test, ,http://b.test")

    assert settings.max_file_size_bytes == 50 * 1024 * 1024
    assert settings.allowed_origins_list == ["http://a.test", "http://b.test"]


def test_settings_singleton():
    """Test that get_settings returns singleton."""
    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2
