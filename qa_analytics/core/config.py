"""Application configuration using Pydantic Settings V2."""

from functools import cached_property
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from qa_analytics.core.settings import (
    AppConfig,
    AuthConfig,
    DatabaseConfig,
    IngestConfig,
    ProgressConfig,
    RedisConfig,
    ServerConfig,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Flat fields are loaded directly from environment variables.
    Domain properties provide grouped access (e.g. settings.progress.window_seconds).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = Field(
        default="qa-analytics",
        description="Application name",
    )
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    debug: bool = Field(
        default=True,
        description="Debug mode",
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum log level",
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON instead of console output",
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Server host",
    )
    port: int = Field(
        default=8004,
        ge=1,
        le=65535,
        description="Server port",
    )

    # JWT Auth
    jwt_secret_key: SecretStr = Field(
        description="JWT secret key shared with the identity provider",
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm",
    )
    jwt_access_token_expire_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="Access token expiration in minutes",
    )
    jwt_refresh_token_expire_days: int = Field(
        default=7,
        ge=1,
        le=90,
        description="Refresh token expiration in days",
    )
    refresh_rate_limit: str = Field(
        default="10/minute",
        description="Token refresh endpoint rate limit",
    )

    # Database
    database_url: SecretStr = Field(
        description="Async database URL (mysql+aiomysql://... or sqlite+aiosqlite://...)",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # Ingest
    ingest_token_policy: Literal["strict", "derive"] = Field(
        default="strict",
        description="Reject mismatched total_tokens (strict) or recompute them (derive)",
    )
    ingest_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for the ingest transaction on storage errors",
    )
    ingest_backoff_initial_seconds: float = Field(
        default=0.1,
        ge=0,
        description="Initial backoff between ingest attempts",
    )
    ingest_backoff_max_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Maximum backoff between ingest attempts",
    )

    # Progress
    progress_window_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Sliding window duration for throughput",
    )
    progress_window_samples: int = Field(
        default=20,
        ge=2,
        le=1000,
        description="Maximum samples kept in the throughput window",
    )
    progress_inactivity_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Seconds without a tick before speed is reported as zero",
    )
    progress_kilo_threshold: float = Field(
        default=1000.0,
        gt=0,
        description="Throughput above which the display switches to k/s",
    )
    progress_stream_heartbeat_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between progress stream refreshes when no tick arrives",
    )
    progress_retention_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Seconds a finished run stays queryable before it is forgotten",
    )

    # --- Domain properties ---

    @cached_property
    def app(self) -> AppConfig:
        """Application environment configuration."""
        return AppConfig(
            name=self.app_name,
            env=self.app_env,
            debug=self.debug,
            log_level=self.log_level,
            log_json=self.log_json,
        )

    @cached_property
    def server(self) -> ServerConfig:
        """Server configuration."""
        return ServerConfig(
            host=self.host,
            port=self.port,
        )

    @cached_property
    def auth(self) -> AuthConfig:
        """JWT authentication configuration."""
        return AuthConfig(
            secret_key=self.jwt_secret_key,
            algorithm=self.jwt_algorithm,
            access_token_expire_minutes=self.jwt_access_token_expire_minutes,
            refresh_token_expire_days=self.jwt_refresh_token_expire_days,
            refresh_rate_limit=self.refresh_rate_limit,
        )

    @cached_property
    def database(self) -> DatabaseConfig:
        """Database connection configuration."""
        return DatabaseConfig(url=self.database_url)

    @cached_property
    def redis(self) -> RedisConfig:
        """Redis connection configuration."""
        return RedisConfig(url=self.redis_url)

    @cached_property
    def ingest(self) -> IngestConfig:
        """QA record ingest configuration."""
        return IngestConfig(
            token_policy=self.ingest_token_policy,
            max_attempts=self.ingest_max_attempts,
            backoff_initial_seconds=self.ingest_backoff_initial_seconds,
            backoff_max_seconds=self.ingest_backoff_max_seconds,
        )

    @cached_property
    def progress(self) -> ProgressConfig:
        """Run progress estimator configuration."""
        return ProgressConfig(
            window_seconds=self.progress_window_seconds,
            window_samples=self.progress_window_samples,
            inactivity_seconds=self.progress_inactivity_seconds,
            kilo_threshold=self.progress_kilo_threshold,
            stream_heartbeat_seconds=self.progress_stream_heartbeat_seconds,
            retention_seconds=self.progress_retention_seconds,
        )

    # --- Convenience properties (delegate to domain configs) ---

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app.is_development


# Global settings instance
settings = Settings()
