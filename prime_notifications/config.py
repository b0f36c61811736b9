"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import quote

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
        default="sqlite:///./notifications.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    secret_key: str = Field(
        default="change-me",
        description="Secret key for signing JWT tokens",
        min_length=1,
    )
    access_token_expire_minutes: int = Field(
        default=60,
        description="Number of minutes before access tokens expire",
        gt=0,
    )
    app_timezone: str | None = Field(
        default=None,
        description="IANA timezone name (or UTC offset) used for stored timestamps",
    )
    api_prefix: str = Field(
        default="/api/v1",
        description="Prefix applied to every REST router",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:3001",
            "http://localhost:3002",
            "http://localhost:8081",
        ],
        description="Origins allowed to call the API from a browser",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    rabbitmq_host: str = Field(default="localhost")
    rabbitmq_port: int = Field(default=5672, gt=0)
    rabbitmq_username: str = Field(default="guest")
    rabbitmq_password: str = Field(default="guest")
    rabbitmq_vhost: str = Field(default="/")
    rabbitmq_connection_name: str = Field(default="prime-app-connection")
    rabbitmq_heartbeat: int = Field(
        default=60, ge=0, description="AMQP heartbeat interval in seconds"
    )
    rabbitmq_reconnect_delay: float = Field(
        default=5.0,
        ge=0,
        description="Fixed delay in seconds between connection attempts",
    )
    rabbitmq_max_reconnect_attempts: int = Field(
        default=10,
        gt=0,
        description="Connection attempts made before the broker is reported unavailable",
    )
    rabbitmq_max_channels: int = Field(
        default=10, gt=0, description="Upper bound for the pooled AMQP channels"
    )
    rabbitmq_prefetch_count: int = Field(
        default=10, gt=0, description="Per-channel QoS prefetch count"
    )
    rabbitmq_publish_timeout: float = Field(
        default=10.0,
        ge=0,
        description="Seconds to wait for a publish to be confirmed (0 waits forever)",
    )
    rabbitmq_requeue_delay: float = Field(
        default=1.0,
        ge=0,
        description="Seconds to hold a transiently failed message before requeueing it",
    )
    rabbitmq_fanout_queue_max_length: int = Field(
        default=10000,
        ge=0,
        description=(
            "x-max-length for the durable queues bound with '#' "
            "(oldest messages are dropped, 0 leaves them unbounded)"
        ),
    )

    expo_access_token: str | None = Field(
        default=None,
        description="Optional Expo access token sent with push requests",
    )
    push_chunk_size: int = Field(
        default=100,
        gt=0,
        le=100,
        description="Maximum number of push messages sent to Expo per request",
    )
    ws_idle_timeout_seconds: float = Field(
        default=0,
        ge=0,
        description="Close websocket connections idle for longer than this (0 disables)",
    )

    @model_validator(mode="after")
    def _validate_vhost(self) -> "Settings":
        if not self.rabbitmq_vhost.startswith("/"):
            raise ValueError("RABBITMQ_VHOST must start with '/'")
        return self

    @property
    def rabbitmq_url(self) -> str:
        """Return the AMQP URL assembled from the individual broker settings."""

        vhost = self.rabbitmq_vhost
        if vhost != "/":
            vhost = "/" + quote(vhost[1:], safe="")
        return (
            f"amqp://{quote(self.rabbitmq_username, safe='')}:"
            f"{quote(self.rabbitmq_password, safe='')}@"
            f"{self.rabbitmq_host}:{self.rabbitmq_port}{vhost}"
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
