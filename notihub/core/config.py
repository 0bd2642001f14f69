"""
Hub settings, read from NOTIHUB_* environment variables or a .env file.

Complex values (the channel list, the backoff schedule) are read as JSON
from the environment, e.g.:

    NOTIHUB_CHANNELS='[{"name": "ops", "type": "webhook", "url": "https://..."}]'
    NOTIHUB_RETRY_BACKOFF='[1, 4, 10]'

Usage:
    from notihub.core.config import get_settings
    settings = get_settings()
    print(settings.DEDUP_TTL)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChannelSettings(BaseModel):
    """One entry of the ordered channel set."""
    name: str = Field(..., min_length=1)
    type: str = "console"            # console | webhook
    enabled: bool = True
    url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    timeout_seconds: float = Field(10.0, gt=0)
    event_types: Optional[List[str]] = None  # None = all event types


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTIHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "NotiHub"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # ── Server ──
    HOST: str = "127.0.0.1"
    PORT: int = 8787

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8787",
    ]
    CORS_ALLOW_ALL: bool = True

    # ── Storage ──
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/notihub.db"
    DATABASE_ECHO: bool = False
    PERSISTENCE_ENABLED: bool = True

    # ── Cache ──
    CACHE_BACKEND: str = "memory"  # memory | redis
    CACHE_MAX_ENTRIES: int = Field(1000, ge=1)
    CACHE_DEFAULT_TTL: int = Field(60, ge=1)
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "notihub:"

    # ── Policies ──
    DEDUP_ENABLED: bool = True
    DEDUP_TTL: int = Field(60, ge=1)  # seconds
    RETRY_ENABLED: bool = True
    RETRY_MAX_ATTEMPTS: int = Field(3, ge=1)
    RETRY_BACKOFF: List[float] = [1.0, 4.0, 10.0]

    # ── Channels ──
    CHANNELS: List[ChannelSettings] = [
        ChannelSettings(name="console", type="console"),
    ]

    # ── Live feed ──
    SUBSCRIBER_QUEUE_SIZE: int = Field(100, ge=1)

    @field_validator("RETRY_BACKOFF")
    @classmethod
    def _check_backoff(cls, value: List[float]) -> List[float]:
        if not value:
            raise ValueError("RETRY_BACKOFF must contain at least one delay")
        if any(delay < 0 for delay in value):
            raise ValueError("RETRY_BACKOFF delays must be non-negative")
        return value

    @field_validator("CHANNELS")
    @classmethod
    def _check_unique_channel_names(
        cls, value: List[ChannelSettings]
    ) -> List[ChannelSettings]:
        names = [c.name for c in value]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate channel names in CHANNELS: {names}")
        return value

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def effective_max_attempts(self) -> int:
        """Attempt budget after applying RETRY_ENABLED."""
        return self.RETRY_MAX_ATTEMPTS if self.RETRY_ENABLED else 1


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
