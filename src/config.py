"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.constants import DEFAULT_SCAN_BATCH_SIZE


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    redis_namespace: str = "resque"
    redis_socket_timeout_seconds: float = 5.0

    # Scheduler Configuration
    scheduler_inline: bool = False
    scheduler_default_queue: str | None = None
    scheduler_scan_batch_size: int = DEFAULT_SCAN_BATCH_SIZE

    # Poller Configuration
    poller_interval_seconds: float = 5.0

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_secret_key: str = "your-secret-key-change-in-production"
    api_algorithm: str = "HS256"
    api_access_token_expire_minutes: int = 30
    api_admin_key: str | None = None

    # Observability
    otel_exporter_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "delayed-scheduler"
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
