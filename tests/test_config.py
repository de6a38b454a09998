"""Tests for settings loading."""

import pytest

from app.config import Settings, get_settings
from ingestion.results_ingestion.core.exceptions import ConfigurationError

REQUIRED = (
    "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_HOST", "POSTGRES_PORT", "POSTGRES_DB",
    "REDIS_HOST", "REDIS_PORT", "API_SECRET_KEY",
)


@pytest.fixture
def clean_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:

    def test_missing_required_settings_is_configuration_error(self, clean_settings_cache, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for key in REQUIRED:
            monkeypatch.delenv(key, raising=False)

        with pytest.raises(ConfigurationError):
            get_settings()

    def test_settings_from_environment(self, clean_settings_cache, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        env = {
            "POSTGRES_USER": "u", "POSTGRES_PASSWORD": "p", "POSTGRES_HOST": "db", "POSTGRES_PORT": "5433",
            "POSTGRES_DB": "results", "REDIS_HOST": "cache", "REDIS_PORT": "6380", "REDIS_PASSWORD": "s3cret",
            "API_SECRET_KEY": "k", "SCRAPER_DELAY_MS": "250",
        }
        for key, value in env.items():
            monkeypatch.setenv(key, value)

        settings = get_settings()

        assert settings.DATABASE_URL == "postgresql://u:p@db:5433/results"
        assert settings.REDIS_URL == "redis://:s3cret@cache:6380/0"
        assert settings.scraper_delay_seconds == 0.25
        assert settings.SCRAPER_WORKER_COUNT == 10
        assert get_settings() is settings

    def test_defaults(self, settings):
        assert settings.CACHE_TTL_SECONDS == 604800
        assert settings.READ_REPAIR_TTL_SECONDS == 3600
        assert settings.RESULTS_EXAM_CODE == "1323"
        assert settings.scraper_timeout_seconds == 10.0
        assert settings.REDIS_URL == "redis://localhost:6379/0"
        assert isinstance(settings, Settings)
