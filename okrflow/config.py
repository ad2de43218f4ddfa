"""
Configuration and settings for the OKRFlow backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    app_base_url: str = Field(default="http://localhost:3000")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Queue + rate limiting (Redis)
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="okrflow:exports")

    # S3-compatible storage for export artifacts
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    export_url_expires_seconds: int = Field(default=3600)

    # Auth
    session_days: int = Field(default=30)
    invite_expiry_days: int = Field(default=14)
    register_rate_limit: int = Field(default=10)
    login_rate_limit: int = Field(default=20)
    rate_limit_window_seconds: int = Field(default=60)

    # Scheduled jobs
    cron_secret: Optional[str] = Field(default=None)
    disable_internal_scheduler: bool = Field(default=False)
    scheduler_interval_seconds: int = Field(default=15 * 60)
    reminder_cadence_hours: float = Field(default=24)
    scoring_cadence_hours: float = Field(default=6)

    # Organization locale defaults (India-first, overridable)
    fiscal_year_start_month: int = Field(default=4, ge=1, le=12)
    week_start: str = Field(default="monday")
    scoring_scale: str = Field(default="percent")
    number_locale: str = Field(default="en-IN")
    date_format: str = Field(default="dd-mm-yyyy")
    high_contrast_status: bool = Field(default=False)
    label_company: str = Field(default="Company")
    label_department: str = Field(default="Department")
    label_team: str = Field(default="Team")
    label_individual: str = Field(default="Individual")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
