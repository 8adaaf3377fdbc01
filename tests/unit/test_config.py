"""Tests for domain-specific configuration."""

import pytest
from pydantic import SecretStr, ValidationError

from qa_analytics.core.config import Settings
from qa_analytics.core.settings import (
    AppConfig,
    DatabaseConfig,
    IngestConfig,
    ProgressConfig,
)


class TestAppConfig:
    """AppConfig frozen immutability and property tests."""

    def test_frozen_immutability(self) -> None:
        config = AppConfig(
            name="test", env="development", debug=True, log_level="INFO", log_json=False
        )
        with pytest.raises(ValidationError):
            config.name = "changed"  # type: ignore[misc]

    def test_environment_flags(self) -> None:
        config = AppConfig(
            name="app", env="production", debug=False, log_level="INFO", log_json=True
        )
        assert config.is_production is True
        assert config.is_development is False


class TestDatabaseConfig:
    def test_mysql_gets_charset(self) -> None:
        config = DatabaseConfig(url=SecretStr("mysql+aiomysql://u:p@db/qa"))
        assert config.async_url.endswith("?charset=utf8mb4")
        assert config.is_sqlite is False

    def test_sqlite_untouched(self) -> None:
        config = DatabaseConfig(url=SecretStr("sqlite+aiosqlite:///./qa.db"))
        assert config.async_url == "sqlite+aiosqlite:///./qa.db"
        assert config.is_sqlite is True


class TestSettings:
    """Flat environment variables grouped into domain configs."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("INGEST_TOKEN_POLICY", raising=False)
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert isinstance(settings.ingest, IngestConfig)
        assert settings.ingest.token_policy == "strict"
        assert settings.ingest.max_attempts == 3
        assert isinstance(settings.progress, ProgressConfig)
        assert settings.progress.window_seconds == 30.0
        assert settings.progress.stream_heartbeat_seconds == 5.0
        assert settings.progress.retention_seconds == 300.0

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INGEST_TOKEN_POLICY", "derive")
        monkeypatch.setenv("PROGRESS_WINDOW_SAMPLES", "50")
        monkeypatch.setenv("PROGRESS_INACTIVITY_SECONDS", "15")
        monkeypatch.setenv("PROGRESS_RETENTION_SECONDS", "0")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.ingest.token_policy == "derive"
        assert settings.progress.window_samples == 50
        assert settings.progress.inactivity_seconds == 15.0
        assert settings.progress.retention_seconds == 0.0

    def test_invalid_token_policy(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INGEST_TOKEN_POLICY", "lenient")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_secret_key_required(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_auth_config(self) -> None:
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.auth.algorithm == "HS256"
        assert settings.auth.secret_key.get_secret_value()
