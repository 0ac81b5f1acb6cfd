"""Notification engine configuration settings.

Controls adapter timeouts, webhook transport details, inbox retention and
list pagination for the notification feature.
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationSettings(BaseSettings):
    """Configuration for routing, dispatch and inbox materialization.

    Environment variables use the NOTIFICATIONS_ prefix.
    Example: NOTIFICATIONS_SEND_TIMEOUT_SECONDS=5
    """

    email_from: str = Field(
        default="noreply@example.com",
        description="Sender address used by the email adapter",
    )
    send_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Upper bound on a single external channel send (seconds)",
    )
    webhook_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Timeout for webhook HTTP requests (seconds)",
    )
    webhook_user_agent: str = Field(
        default="notification-service/1.0",
        description="User-Agent header sent with webhook deliveries",
    )
    inbox_user_limit: int = Field(
        default=200,
        ge=1,
        description="Non-archived inbox entries kept per user; older entries are archived",
    )
    default_page_size: int = Field(
        default=25,
        ge=1,
        description="Page size used when a list call does not specify one",
    )
    max_page_size: int = Field(
        default=100,
        ge=1,
        description="Largest page size a list call may request",
    )

    @model_validator(mode="after")
    def _check_page_sizes(self) -> NotificationSettings:
        if self.default_page_size > self.max_page_size:
            msg = "default_page_size must not exceed max_page_size"
            raise ValueError(msg)
        return self

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


__all__ = ["NotificationSettings"]
