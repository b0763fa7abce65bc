import os
from typing import List
from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _get_database_url_from_env_vars() -> str:
    DB_SCHEME = os.getenv("DB_SCHEME", "postgresql")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "invoices")
    return f"{DB_SCHEME}://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


def _get_cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Settings(BaseModel):
    """
    Application settings.

    Every field falls back to an environment variable so the same object can
    be built from the process environment in production and from explicit
    values in tests.
    """

    env: str = Field(default_factory=lambda: os.getenv("ENV", "development"))
    database_url: str = Field(
        default_factory=lambda: os.getenv("DATABASE_URL", _get_database_url_from_env_vars()))
    db_echo: bool = Field(
        default_factory=lambda: os.getenv("DB_ECHO", "false").lower() == "true")
    db_connect_timeout: int = Field(
        default_factory=lambda: int(os.getenv("DB_CONNECT_TIMEOUT", "5")), ge=1)
    db_pool_timeout: int = Field(
        default_factory=lambda: int(os.getenv("DB_POOL_TIMEOUT", "30")), ge=1)
    db_statement_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("DB_STATEMENT_TIMEOUT", "15000")), ge=1)
    cors_origins: List[str] = Field(default_factory=_get_cors_origins)
    number_retry_attempts: int = Field(default=3, ge=1, le=10)
    rate_limit: str = Field(
        default_factory=lambda: os.getenv("RATE_LIMIT", "100/15 minutes"))
    rate_limit_enabled: bool = Field(
        default_factory=lambda: os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true")
    max_body_bytes: int = Field(
        default_factory=lambda: int(os.getenv("MAX_BODY_BYTES", str(10 * 1024 * 1024))), ge=1)

    @property
    def is_production(self) -> bool:
        return self.env == "production"
