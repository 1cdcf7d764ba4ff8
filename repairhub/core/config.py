"""Application configuration and settings."""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    debug: bool = True

    # HTTP API (chat collaborators)
    api_base_url: str = "http://localhost:5000/api"
    api_token: str = ""
    api_timeout_seconds: float = 10.0

    # Realtime transport
    transport_url: str = "ws://localhost:8000/api/v1/ws"
    reconnect_delay_seconds: float = 5.0
    typing_timeout_seconds: float = 3.0

    # Local notification storage
    storage_dir: str = ".repairhub"
    notification_storage_key: str = "notifications"

    # Notifications
    approval_urgent_cost_threshold: float = 1000.0
    toast_duration_seconds: float = 4.0
    toast_priority_duration_seconds: float = 6.0
    toast_urgent_duration_seconds: float = 8.0

    # CORS (relay app)
    cors_origins: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
