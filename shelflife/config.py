"""
Application configuration using pydantic-settings.
All settings read from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Central configuration for the Shelflife review service."""

    # ── Application ──────────────────────────────────────────
    APP_NAME: str = "shelflife"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Database ─────────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/shelflife.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    DB_ECHO: bool = False

    # ── Request tracking (Overseerr) ─────────────────────────
    OVERSEERR_URL: Optional[str] = None
    OVERSEERR_API_KEY: Optional[str] = None
    OVERSEERR_PAGE_SIZE: int = 50

    # ── Movie library (Radarr) ───────────────────────────────
    RADARR_URL: Optional[str] = None
    RADARR_API_KEY: Optional[str] = None

    # ── TV library (Sonarr) ──────────────────────────────────
    SONARR_URL: Optional[str] = None
    SONARR_API_KEY: Optional[str] = None

    # ── Watch history (Tautulli) ─────────────────────────────
    TAUTULLI_URL: Optional[str] = None
    TAUTULLI_API_KEY: Optional[str] = None
    TAUTULLI_HISTORY_LENGTH: int = 1000

    # ── External HTTP ────────────────────────────────────────
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # ── Scheduled sync ───────────────────────────────────────
    # Defaults only; admins override these at runtime (app_settings table)
    SYNC_SCHEDULE_ENABLED: bool = False
    SYNC_INTERVAL_MINUTES: int = 360
    SYNC_SCHEDULE_TYPE: str = "full"

    # ── Observability ────────────────────────────────────────
    SENTRY_DSN: Optional[str] = None
    PROMETHEUS_ENABLED: bool = True

    # ── Security ─────────────────────────────────────────────
    API_KEY: Optional[str] = None
    CORS_ORIGINS: str = "*"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


# Singleton instance
settings = Settings()
