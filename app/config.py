"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"

_WEEKDAYS = {"mon", "tue", "wed", "thu", "fri", "sat", "sun"}


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    app_timezone: str | None = Field(
        default=None,
        description="IANA timezone (or UTC±HH:MM offset) used for schedules and day boundaries",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Origins allowed to call the API from a browser",
    )

    scheduler_enabled: bool = Field(
        default=True,
        description="Start the reminder scheduler inside this process",
    )
    due_scan_interval_minutes: int = Field(default=15, gt=0)
    reminder_scan_interval_minutes: int = Field(default=5, gt=0)
    daily_summary_hour: int = Field(default=8, ge=0, le=23)
    stale_scan_weekday: str = Field(default="mon")
    stale_scan_hour: int = Field(default=9, ge=0, le=23)
    purge_interval_minutes: int = Field(default=60, gt=0)

    notification_dedup_window_minutes: int = Field(
        default=60,
        gt=0,
        description="Trailing window used by the scanners to avoid re-alerting",
    )
    aggregation_window_minutes: int = Field(
        default=60,
        gt=0,
        description="Window in which social notifications are merged into one",
    )
    plan_tier_cache_seconds: int = Field(
        default=300,
        ge=0,
        description="How long a resolved plan tier is reused before re-reading the user",
    )

    @model_validator(mode="after")
    def _validate_stale_weekday(self) -> "Settings":
        weekday = self.stale_scan_weekday.strip().lower()
        if weekday not in _WEEKDAYS:
            raise ValueError(
                "STALE_SCAN_WEEKDAY must be one of " + ", ".join(sorted(_WEEKDAYS))
            )
        self.stale_scan_weekday = weekday
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
