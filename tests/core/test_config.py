"""
Tests for incidentlog configuration.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from incidentlog.core.config import (
    IncidentConfig,
    Settings,
    StorageType,
    get_settings,
    reset_settings,
)


class TestSettings:
    """Tests for environment-backed settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("INCIDENTLOG_DB_PATH", raising=False)
        settings = Settings()

        assert settings.db_path == Path.home() / ".incidentlog" / "incidents.db"
        assert settings.storage_type == StorageType.SQLITE
        assert settings.max_stored_incidents == 1000
        assert settings.environment == "debug"
        assert settings.worker_threads == 4
        assert settings.log_level == "INFO"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("INCIDENTLOG_DB_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("INCIDENTLOG_STORAGE_TYPE", "memory")
        monkeypatch.setenv("INCIDENTLOG_MAX_STORED_INCIDENTS", "25")
        monkeypatch.setenv("INCIDENTLOG_APP_VERSION", "3.1.4")

        settings = Settings()

        assert settings.db_path == tmp_path / "env.db"
        assert settings.storage_type == StorageType.MEMORY
        assert settings.max_stored_incidents == 25
        assert settings.app_version == "3.1.4"

    def test_negative_capacity_rejected(self):
        with pytest.raises(ValidationError):
            Settings(max_stored_incidents=-1)

    def test_worker_threads_bounds(self):
        with pytest.raises(ValidationError):
            Settings(worker_threads=0)

    def test_log_level_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError, match="Invalid log_level"):
            Settings(log_level="verbose")


class TestSettingsCache:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_reset_settings_reloads(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("INCIDENTLOG_ENVIRONMENT", "staging")

        reset_settings()

        second = get_settings()
        assert second is not first
        assert second.environment == "staging"


class TestIncidentConfig:
    def test_defaults(self):
        config = IncidentConfig(app_version="1.0.0")

        assert config.environment == "debug"
        assert config.storage_type == StorageType.SQLITE
        assert config.max_stored_incidents == 1000

    def test_from_settings(self, tmp_path):
        settings = Settings(
            db_path=tmp_path / "c.db",
            app_version="9.9",
            environment="production",
            storage_type=StorageType.MEMORY,
            max_stored_incidents=12,
        )

        config = IncidentConfig.from_settings(settings)

        assert config.app_version == "9.9"
        assert config.environment == "production"
        assert config.storage_type == StorageType.MEMORY
        assert config.max_stored_incidents == 12

    def test_rejects_negative_capacity(self):
        with pytest.raises(ValidationError):
            IncidentConfig(app_version="1", max_stored_incidents=-5)
