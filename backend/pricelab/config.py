"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "PriceLab"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./pricelab.db"

    # Redis (optional) - enables cross-instance rotation locks when set
    redis_url: str = ""

    # Admin API key for manual rotation and scheduler control
    admin_api_key: str = "admin-key-change-in-production"

    # Shared secret for external cron triggers (empty = allow, local only)
    cron_secret: str = ""

    # Rotation scheduler
    scheduler_enabled: bool = True
    scheduler_tick_seconds: int = 60
    # Also the width of one live-variant slot for tenants without a setting
    default_rotation_interval_minutes: int = 1
    rotation_lock_ttl_seconds: int = 300  # safety net for crashed workers

    # Price resolution
    resolve_paused_experiments: bool = False

    # Commerce platform (Shopify Admin API)
    shopify_admin_api_version: str = "2025-01"
    commerce_request_timeout_seconds: float = 10.0
    sync_call_timeout_seconds: float = 15.0  # covers resolve + update

    # Upper bound for one database read or write made by the scheduler
    repository_call_timeout_seconds: float = 10.0

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
