"""Domain-specific configuration models."""

from qa_analytics.core.settings.app_config import AppConfig
from qa_analytics.core.settings.auth_config import AuthConfig
from qa_analytics.core.settings.database_config import DatabaseConfig
from qa_analytics.core.settings.ingest_config import IngestConfig
from qa_analytics.core.settings.progress_config import ProgressConfig
from qa_analytics.core.settings.redis_config import RedisConfig
from qa_analytics.core.settings.server_config import ServerConfig

__all__ = [
    "AppConfig",
    "AuthConfig",
    "DatabaseConfig",
    "IngestConfig",
    "ProgressConfig",
    "RedisConfig",
    "ServerConfig",
]
