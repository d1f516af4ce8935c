# automagic/config.py
"""Application configuration using pydantic-settings.

Provides a centralized Settings class for all environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings are loaded from .env file and environment variables.
    Environment variables take precedence over .env file values.
    """

    # Storage
    database_path: str = "data/automagic.db"

    # Scheduled message delivery
    dispatch_interval_seconds: int = 60
    mudslide_command: str = "npx mudslide@latest"
    sender_timeout_seconds: float = 120.0

    # Notifications ("log" or "notify-send")
    notify_strategy: str = "log"

    # Single instance lock (abstract unix socket name)
    single_instance_socket: str = "automagic_server_lock"

    # HTTP API
    api_host: str = "127.0.0.1"
    api_port: int = 3000
    api_auth_key: str = ""  # Empty disables X-API-Key checks
    api_rate_limit: int = 60  # Requests per minute

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AUTOMAGIC_",
        extra="ignore",  # Ignore unknown env vars
        case_sensitive=False,  # Allow case-insensitive env var names
    )


# Singleton instance - import this in your code
settings = Settings()
