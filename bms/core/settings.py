from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
import os


def _coerce_async_url(url: str) -> str:
    """Convert common Postgres/SQLite URLs to async driver DSNs for SQLAlchemy."""
    if not url:
        return url
    # Heroku provides postgres:// or postgresql://
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    if url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + url[len("sqlite://"):]
    return url


class Settings(BaseSettings):
    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    # ------------------------------------------------------------------
    # Auth/session
    # ------------------------------------------------------------------
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRES_MIN: int = 60 * 24 * 7  # 7 days

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------
    # Optional here to allow Heroku-style DATABASE_URL fallback.
    DB_URL: Optional[str] = None  # resolved in get_settings() if missing

    # ------------------------------------------------------------------
    # Startup behaviour
    # ------------------------------------------------------------------
    RUN_DDL_ON_START: bool = True          # run create_all on startup (disable in prod)
    SEED_DEMO_USERS: bool = True           # admin / senior_bidder / finance_manager
    START_SCHEDULER_WEB: bool = False      # start APScheduler in the web process
    MISSED_SWEEP_MINUTES: int = 60

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    CORS_ORIGINS: str = "*"                # comma separated

    # ------------------------------------------------------------------
    # Storage (S3 / R2 / Local)
    # ------------------------------------------------------------------
    DOCS_BUCKET: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_REGION: str = "us-east-1"  # R2 accepts 'auto' as well
    S3_ADDRESSING_STYLE: str = "virtual"  # or 'path'
    LOCAL_UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_MB: int = 50

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # ignore any unrecognized vars instead of erroring
    )

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


def get_settings(**overrides) -> Settings:
    """Build settings from the environment and normalize the DB URL."""
    settings = Settings(**overrides)

    # Fallback: allow DATABASE_URL
    if not settings.DB_URL:
        settings.DB_URL = os.getenv("DATABASE_URL", "") or None

    if settings.DB_URL:
        settings.DB_URL = _coerce_async_url(settings.DB_URL)
    return settings
