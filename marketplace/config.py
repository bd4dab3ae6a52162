# marketplace/config.py
"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate all environment variables at startup.
Fail fast with clear error messages if required config is missing.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = Field(
        ...,
        description="PostgreSQL connection URL",
    )

    # Authentication
    ADMIN_API_KEY: str | None = Field(
        default=None,
        description="API key for admin endpoints (X-API-Key header)",
    )
    CRON_SECRET: str | None = Field(
        default=None,
        description="Bearer secret the scheduler presents to the cron endpoints",
    )

    # Application
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    LOG_JSON: bool = Field(
        default=True,
        description="Emit single-line JSON logs (set False for local development)",
    )

    # Expiration sweep
    SWEEP_BATCH_SIZE: int = Field(
        default=500,
        ge=1,
        le=500,
        description="Maximum listing mutations committed per batch",
    )
    INACTIVE_TIMEOUT_DAYS: int = Field(
        default=7,
        ge=1,
        description="Inactive listings untouched for this many days get archived",
    )

    # Tier resolution cache
    TIER_CACHE_TTL_SECONDS: int = Field(
        default=300,
        ge=0,
        description="How long a resolved account tier may be reused",
    )
    TIER_CACHE_MAX_SIZE: int = Field(
        default=1024,
        ge=1,
        description="Maximum number of cached user tiers",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        """Hosted Postgres provides postgresql:// but SQLAlchemy needs postgresql+psycopg2://"""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg2://", 1)
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()
