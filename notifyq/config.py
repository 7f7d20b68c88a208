"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    default_tenant_timezone: str = Field(
        default="America/New_York",
        description="Timezone applied to tenants without an explicit configuration",
    )

    default_max_attempts: int = Field(
        default=3, gt=0, description="Send attempts allowed before a message fails"
    )
    retry_backoff_base_seconds: int = Field(
        default=60, gt=0, description="Delay applied after the first transient failure"
    )
    retry_backoff_max_seconds: int = Field(
        default=3600, gt=0, description="Upper bound for the exponential retry delay"
    )
    default_messages_per_second: int = Field(
        default=10, gt=0, description="Per-tenant burst limit when none is configured"
    )
    default_daily_limit: int = Field(
        default=1000, gt=0, description="Per-tenant daily cap when none is configured"
    )

    worker_enabled: bool = Field(
        default=False, description="Start the delivery worker pool with the API process"
    )
    worker_count: int = Field(default=2, gt=0)
    worker_poll_interval_seconds: float = Field(default=5.0, gt=0)
    worker_batch_size: int = Field(default=50, gt=0)
    claim_stale_minutes: int = Field(
        default=10,
        gt=0,
        description="Minutes after which a processing claim is considered abandoned",
    )
    delivery_report_retention_hours: int = Field(
        default=24,
        gt=0,
        description="Hours an unmatched delivery report is kept waiting for its message",
    )

    twilio_account_sid: str | None = Field(default=None)
    twilio_auth_token: str | None = Field(default=None)
    twilio_from_number: str | None = Field(
        default=None, description="E.164 number used as the SMS sender"
    )
    twilio_status_callback_url: str | None = Field(
        default=None,
        description="Public URL of the delivery status webhook passed to Twilio",
    )
    twilio_api_base_url: str = Field(default="https://api.twilio.com/2010-04-01")
    provider_timeout_seconds: float = Field(default=15.0, gt=0)

    sendgrid_api_key: str | None = Field(
        default=None,
        description="SendGrid API key used for sending email notifications via the REST API",
    )
    sendgrid_sender: str | None = Field(
        default=None,
        description="Email address that will appear as the sender of email notifications",
        min_length=3,
    )

    @model_validator(mode="after")
    def _validate_provider_pairs(self) -> "Settings":
        if bool(self.sendgrid_api_key) ^ bool(self.sendgrid_sender):
            raise ValueError(
                "SENDGRID_API_KEY and SENDGRID_SENDER must both be provided to enable email"
            )
        if self.sendgrid_sender and "@" not in self.sendgrid_sender:
            raise ValueError("SENDGRID_SENDER must be a valid email address")
        twilio_values = (
            self.twilio_account_sid,
            self.twilio_auth_token,
            self.twilio_from_number,
        )
        if any(twilio_values) and not all(twilio_values):
            raise ValueError(
                "TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER must be provided together"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
