"""Core configuration management using Pydantic settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator, field_validator


# Valid log levels
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/workshop_tracker.db"

    # Telegram
    telegram_bot_token: str

    # Logging
    log_level: str = "INFO"

    # Steam Workshop catalog
    steam_api_url: str = "https://api.steampowered.com/ISteamRemoteStorage"
    steam_item_url: str = "https://steamcommunity.com/sharedfiles/filedetails/?id={item_id}"
    catalog_timeout_seconds: float = 30.0
    catalog_fetch_concurrency: int = 3  # Max concurrent outbound catalog calls
    item_cache_ttl_minutes: int = 60  # Cached snapshots older than this are refetched

    # Notifications
    notification_chunk_size: int = 5
    note_max_length: int = 500

    # Scheduling
    bootstrap_window_seconds: int = 1800  # Job starts are spread across this window
    bootstrap_delay_seconds: int = 5
    min_schedule_hours: int = 1
    max_schedule_hours: int = 24 * 7

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return upper_v

    @model_validator(mode='after')
    def validate_config(self) -> 'Settings':
        """Validate configuration after all fields are set."""
        if self.catalog_fetch_concurrency < 1:
            raise ValueError("catalog_fetch_concurrency must be at least 1")
        if self.notification_chunk_size < 1:
            raise ValueError("notification_chunk_size must be at least 1")
        if self.min_schedule_hours < 1 or self.max_schedule_hours < self.min_schedule_hours:
            raise ValueError("Schedule bounds must satisfy 1 <= min_schedule_hours <= max_schedule_hours")
        return self

    def item_url(self, item_id: int) -> str:
        """Public Workshop page for an item."""
        return self.steam_item_url.format(item_id=item_id)


# Global settings instance
settings = Settings()
