# luukahead/app/core/config.py
"""
Luukahead settings, read once from the environment and ``.env``.

OAuth client secrets have no usable defaults: a provider stays switched
off until its id, secret and redirect URI are all supplied. Everything
else defaults to values that are safe on a developer machine.
"""
from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./luukahead.db"


def normalize_database_url(url: str) -> str:
    """
    Point a plain database URL at its async driver.

    postgres:// and postgresql:// become postgresql+asyncpg://,
    sqlite:/// becomes sqlite+aiosqlite:///. URLs that already name a
    driver are returned unchanged.
    """
    url = url.strip()
    if not url:
        return SQLITE_FALLBACK_URL

    # Heroku/Render hand out postgres://
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    if url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + url[len("sqlite://"):]
    return url


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ─────────────────────────────────────────────────────────────
    # Service
    # ─────────────────────────────────────────────────────────────
    PROJECT_NAME: str = "Luukahead"
    PROJECT_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ─────────────────────────────────────────────────────────────
    # Storage
    # ─────────────────────────────────────────────────────────────
    DATABASE_URL: str = SQLITE_FALLBACK_URL
    # Logs every statement; keep off outside local debugging
    DATABASE_ECHO: bool = False

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _async_driver(cls, value):
        return normalize_database_url(value or "")

    # ─────────────────────────────────────────────────────────────
    # Browser access
    # Comma-separated; an empty value disables CORS entirely
    # ─────────────────────────────────────────────────────────────
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # ─────────────────────────────────────────────────────────────
    # Sessions
    # The raw token only ever lives in the cookie; the table keys on
    # SHA-256(token).
    # ─────────────────────────────────────────────────────────────
    SESSION_COOKIE_NAME: str = "auth-session"
    SESSION_EXPIRE_DAYS: int = 30
    SESSION_RENEW_THRESHOLD_DAYS: int = 15
    COOKIE_SECURE: bool = False

    # ─────────────────────────────────────────────────────────────
    # OAuth providers
    # A provider is offered on the login page only when its client id,
    # secret and redirect URI are all set.
    # ─────────────────────────────────────────────────────────────
    OAUTH_STATE_MAX_AGE: int = 60 * 10
    OAUTH_HTTP_TIMEOUT: float = 10.0

    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:5173/login/google/callback"

    MICROSOFT_CLIENT_ID: str = ""
    MICROSOFT_CLIENT_SECRET: str = ""
    MICROSOFT_REDIRECT_URI: str = "http://localhost:8787/login/microsoft/callback"
    # 'common' allows any Microsoft account; set a tenant id to restrict
    MICROSOFT_TENANT: str = "common"

    # ─────────────────────────────────────────────────────────────
    # Where the login flows send the browser
    # ─────────────────────────────────────────────────────────────
    LOGIN_URL: str = "/login"
    POST_LOGIN_REDIRECT: str = "/projects"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
