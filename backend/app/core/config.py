"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Usage:
    from backend.app.core.config import settings
    print(settings.DISASTER_CACHE_TTL)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "RescueHub Relief Coordination"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    WORKERS: int = 1
    RELOAD: bool = True

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:5000",
        "http://localhost:5173",
        "http://localhost:5174",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Storage ──
    STORAGE_BACKEND: str = "memory"  # memory (only backend shipped)
    SEED_SAMPLE_DATA: bool = True

    # ── Volunteer matching ──
    DEFAULT_RADIUS_KM: float = 50.0
    MAX_RADIUS_KM: float = 500.0

    # ── Volunteer notification ──
    SMS_PROVIDER: str = "simulation"  # simulation | webhook
    SMS_WEBHOOK_URL: Optional[str] = None
    SMS_API_KEY: Optional[str] = None
    SMS_SENDER_ID: str = "RESCUE"
    SMS_SIMULATED_LATENCY: float = 0.1  # seconds
    NOTIFY_DELIVERY_TIMEOUT: float = 10.0  # seconds per recipient attempt
    NOTIFY_MAX_RETRIES: int = 1
    NOTIFY_RETRY_BACKOFF: float = 0.5  # seconds, doubled per retry

    # ── Disaster feeds ──
    RELIEFWEB_API_URL: str = "https://api.reliefweb.int/v1/disasters"
    RELIEFWEB_APPNAME: str = "rescuehub-platform"
    RELIEFWEB_UPDATES_RSS_URL: str = "https://reliefweb.int/updates?format=xml"
    GDACS_RSS_URL: str = "https://www.gdacs.org/xml/rss.xml"
    FEED_COUNTRIES: List[str] = ["India", "Bangladesh", "Nepal", "Sri Lanka"]
    FEED_RELIEFWEB_LIMIT: int = 20
    FEED_ITEM_LIMIT: int = 15  # max items taken from each RSS feed
    FEED_FETCH_TIMEOUT: float = 15.0  # seconds per source
    DISASTER_CACHE_TTL: int = 1800  # 30 minutes
    FEED_RETRY_AFTER: float = 60.0  # seconds a stale snapshot is served after all feeds fail

    # ── Geocoding ──
    GEOCODING_ENABLED: bool = True
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODER_USER_AGENT: str = "rescuehub-relief-api/1.0"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
