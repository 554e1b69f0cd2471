"""Application configuration management."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.debug and self.log_level.upper() != "TRACE":
            self.log_level = "DEBUG"

    # Remote store
    store_backend: str = "postgrest"  # 'postgrest' or 'memory'
    store_url: str = "http://localhost:54321"
    store_api_key: str = "your_store_anon_key"
    store_timeout: float = 30.0

    # Aggregate cache (milliseconds, 5 minutes)
    cache_ttl_ms: int = 300000

    # Session persistence
    session_file: str = ".timetracker_session.json"
    session_key: str = "timeTracker_currentUser"
    bcrypt_rounds: int = 10

    # Access tokens
    secret_key: str = "change_this_secret_key"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440

    # Seed users, job addresses and CSI tasks into an empty store
    seed_on_initialize: bool = True

    # Application
    debug: bool = False
    log_level: str = "INFO"
    api_v1_str: str = "/api/v1"
    cors_origins: str = "http://localhost:5173"
    display_timezone: str = "UTC"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_ms / 1000


# Global settings instance
settings = Settings()
