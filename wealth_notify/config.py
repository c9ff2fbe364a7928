"""Application configuration settings."""

from __future__ import annotations

import re
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"

_CLOCK_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    secret_key: str = Field(
        description="Secret key for signing JWT tokens", min_length=1
    )
    access_token_expire_minutes: int = Field(
        default=60,
        description="Number of minutes before access tokens expire",
        gt=0,
    )
    sendgrid_api_key: str | None = Field(
        default=None,
        description="SendGrid API key used for sending transactional emails via the REST API",
    )
    sendgrid_sender: str | None = Field(
        default=None,
        description="Email address that will appear as the sender of transactional messages",
        min_length=3,
    )
    app_timezone: str = Field(
        default="UTC",
        description="Server timezone used for stored timestamps and scheduled jobs",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed to call the API from a browser",
    )
    default_preference_timezone: str = Field(
        default="America/New_York",
        description="Timezone assigned to newly created notification preferences",
    )
    notification_page_size: int = Field(
        default=50,
        description="Number of notifications returned when no limit is requested",
        gt=0,
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Start the cleanup and digest jobs with the application",
    )
    cleanup_time: str = Field(
        default="00:00",
        description="Daily time (HH:mm, app timezone) for the expiry cleanup job",
    )
    digest_time: str = Field(
        default="08:00",
        description="Daily time (HH:mm, app timezone) for the digest job",
    )
    connection_lock_shards: int = Field(
        default=16,
        description="Number of lock shards guarding the live connection registry",
        gt=0,
    )

    @field_validator("cleanup_time", "digest_time")
    @classmethod
    def _validate_clock(cls, value: str) -> str:
        if not _CLOCK_PATTERN.match(value):
            raise ValueError("Scheduled job times must use the HH:mm format")
        return value

    @model_validator(mode="after")
    def _validate_sendgrid_pair(self) -> "Settings":
        if bool(self.sendgrid_api_key) ^ bool(self.sendgrid_sender):
            raise ValueError(
                "SENDGRID_API_KEY and SENDGRID_SENDER must both be provided to enable email"
            )
        if self.sendgrid_sender and "@" not in self.sendgrid_sender:
            raise ValueError("SENDGRID_SENDER must be a valid email address")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
