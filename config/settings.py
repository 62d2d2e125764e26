"""
config/settings.py
Application settings loaded from environment variables.
Uses Pydantic BaseSettings for validation and type safety.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    APP_NAME: str = "Campus Match API"
    APP_ENV: str = "development"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # ── Server ───────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # ── Database ─────────────────────────────────────────────
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    DATABASE_POOL_TIMEOUT: int = 30

    # ── Redis ────────────────────────────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"

    # ── JWT (shared with the identity provider) ──────────────
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # ── Frontend ─────────────────────────────────────────────
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # ── Rate Limiting ────────────────────────────────────────
    RATE_LIMIT_BACKEND: str = "redis"       # "redis" | "memory"
    RATE_LIMIT_FAIL_OPEN: bool = True
    RATE_LIMIT_AUTH_MAX: int = 5
    RATE_LIMIT_AUTH_WINDOW: int = 15 * 60
    RATE_LIMIT_PROFILE_MAX: int = 3
    RATE_LIMIT_PROFILE_WINDOW: int = 60 * 60
    RATE_LIMIT_MESSAGE_MAX: int = 60
    RATE_LIMIT_MESSAGE_WINDOW: int = 60
    RATE_LIMIT_REPORT_MAX: int = 5
    RATE_LIMIT_REPORT_WINDOW: int = 24 * 60 * 60

    # ── Realtime ─────────────────────────────────────────────
    REALTIME_BACKEND: str = "redis"         # "redis" | "local"

    # ── Business Config ──────────────────────────────────────
    CANDIDATE_LIMIT: int = 50
    MESSAGE_MAX_LENGTH: int = 1000
    REPORT_DETAILS_MAX_LENGTH: int = 1000
    ACCOUNT_RECREATE_COOLDOWN_HOURS: int = 24

    @property
    def allowed_origins_list(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance, call this everywhere."""
    return Settings()


settings = get_settings()
