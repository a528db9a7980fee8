"""
Application settings loaded from environment variables or .env file.

Priority:
  1. Environment variables (always win)
  2. .env file in project root (local dev)
  3. Defaults

When ENVIRONMENT=development the LOCAL_DB_* credentials are used; deployed
environments read DB_*. DATABASE_URL_OVERRIDE short-circuits both (tests,
one-off scripts).

When DEV_SKIP_AUTH=true (only allowed in development), bearer token
verification is bypassed and requests are authenticated via X-Dev-User-ID.
"""
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_repo_root = Path(__file__).resolve().parents[3]  # backend/savtrack/core → project root


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_repo_root / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    environment: str = "development"

    # ------------------------------------------------------------------ #
    # Database
    # ------------------------------------------------------------------ #
    db_host: str = ""
    db_port: int = 5432
    db_name: str = "savtrack"
    db_user: str = "postgres"
    db_password: str = ""

    # Local dev overrides (used when ENVIRONMENT=development)
    local_db_host: str = "localhost"
    local_db_port: int = 5433
    local_db_name: str = "savtrack_dev"
    local_db_user: str = "postgres"
    local_db_password: str = "localpassword"

    database_url_override: str = ""

    # ------------------------------------------------------------------ #
    # Tokens issued by the external auth provider
    # ------------------------------------------------------------------ #
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"

    # ------------------------------------------------------------------ #
    # Dev-mode bypass (only honoured when environment == "development")
    # ------------------------------------------------------------------ #
    dev_skip_auth: bool = False

    cors_origins: str = "*"

    # ------------------------------------------------------------------ #
    # Catalog cache TTL (seconds)
    # ------------------------------------------------------------------ #
    catalog_cache_ttl: int = 300

    # ------------------------------------------------------------------ #
    # Delay alert scheduler
    # ------------------------------------------------------------------ #
    delay_alert_interval_seconds: int = 3600
    delay_alert_start_hour: int = 8
    delay_alert_end_hour: int = 18

    statistics_top_n: int = 5

    # ------------------------------------------------------------------ #
    # Computed properties
    # ------------------------------------------------------------------ #

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def auth_disabled(self) -> bool:
        """True only when running in development with explicit opt-in."""
        return self.is_development and self.dev_skip_auth

    @property
    def auth_configured(self) -> bool:
        return bool(self.jwt_secret)

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def database_url(self) -> str:
        """Async asyncpg URL."""
        if self.database_url_override:
            return self.database_url_override
        host, port, name, user, password = self._resolve_db_credentials()
        return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"

    @property
    def database_url_sync(self) -> str:
        """Sync psycopg2 URL (Alembic)."""
        host, port, name, user, password = self._resolve_db_credentials()
        return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"

    def _resolve_db_credentials(self) -> tuple[str, int, str, str, str]:
        if self.is_development:
            return (
                self.local_db_host,
                self.local_db_port,
                self.local_db_name,
                self.local_db_user,
                self.local_db_password,
            )

        if not self.db_host:
            raise RuntimeError("DB_HOST is not set. Update your environment or .env.")

        return self.db_host, self.db_port, self.db_name, self.db_user, self.db_password

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of {allowed}")
        return v.lower()

    @field_validator("delay_alert_start_hour", "delay_alert_end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("alert hours must be between 0 and 23")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
