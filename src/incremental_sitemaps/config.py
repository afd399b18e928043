"""Application settings loaded from environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CronFrequency = Literal[
    "5min", "10min", "15min", "30min", "hourly", "2hourly", "3hourly"
]


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables and .env."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    DATABASE_URL: str
    SITE_URL: AnyHttpUrl = AnyHttpUrl("https://example.com")
    SITE_TIMEZONE: str = "UTC"
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=8000, ge=1, le=65535)
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "text"
    LOG_FILE: Path | None = None
    LOG_FILE_MAX_BYTES: int = Field(default=10_485_760, ge=1)
    LOG_FILE_BACKUP_COUNT: int = Field(default=5, ge=1)
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_JOBSTORE_URL: str = "sqlite:///./scheduler-jobs.sqlite"
    SITEMAP_CRON_ENABLED: bool = True
    SITEMAP_CRON_FREQUENCY: CronFrequency = "15min"
    FULL_GENERATION_TICK_INTERVAL_SECONDS: int = Field(default=60, ge=1)
    SITEMAP_MAX_ENTRIES: int = Field(default=50_000, ge=1, le=50_000)
    STALE_DETECTION_LOOKBACK_SECONDS: int = Field(default=86_400, ge=60)
    EARLIEST_CONTENT_DATE_CACHE_SECONDS: int = Field(default=604_800, ge=0)
    CONTENT_STATUS: str = "publish"
    DAILY_CONTENT_TYPES: list[str] = Field(default_factory=lambda: ["post"])
    INCLUDE_PAGES: bool = True
    INCLUDE_TAXONOMIES: bool = True
    ENABLED_TAXONOMIES: list[str] = Field(
        default_factory=lambda: ["category", "post_tag"]
    )
    INCLUDE_AUTHORS: bool = False
    JOB_RECOVERY_AUTO_RESUME: bool = False
    SHUTDOWN_GRACE_PERIOD_SECONDS: int = Field(default=30, ge=1)

    @field_validator("LOG_FILE", mode="before")
    @classmethod
    def parse_log_file(cls, value: object) -> object:
        if value in (None, ""):
            return None
        return value

    @property
    def site_base_url(self) -> str:
        return str(self.SITE_URL).rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]
