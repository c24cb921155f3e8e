"""Configuration management for Herald."""

import logging
import warnings
from typing import Literal

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_HUBSPOT_EVENTS = [
    "contact.creation",
    "contact.propertyChange",
    "company.creation",
    "company.propertyChange",
    "deal.creation",
    "deal.propertyChange",
    "ticket.creation",
    "ticket.propertyChange",
]


class Settings(BaseSettings):
    """Herald configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the HERALD_ prefix. For example:
        HERALD_QDRANT_URL=http://localhost:6333
        HERALD_STALE_THRESHOLD_MINUTES=30

    The older deployment variable names are accepted, from the environment
    or .env, when the HERALD_ name is unset: WISDOMOS_BASE_URL (or
    NEXT_PUBLIC_SITE_URL), SLACK_WEBHOOK_URL, HEARTBEAT_INTERVAL_MIN and
    STALE_MIN.
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Storage
    storage_backend: Literal["qdrant", "memory"] = Field(
        default="qdrant",
        description=(
            "Subscription and heartbeat store. 'memory' loses all health "
            "history on restart and is meant for tests and local runs."
        ),
    )
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant connection URL",
    )
    qdrant_api_key: str | None = Field(
        default=None,
        description="Qdrant API key (for cloud)",
    )
    collection_prefix: str = Field(
        default="herald",
        description="Prefix for Qdrant collection names",
    )

    # Outbound delivery
    delivery_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-request timeout; a timed-out request is a failed attempt",
    )
    delivery_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Delivery attempts per subscription per event",
    )
    delivery_retry_delays: list[float] = Field(
        default_factory=lambda: [1.0, 5.0, 15.0],
        description="Seconds to wait after attempt N fails (index N-1)",
    )
    delivery_retry_jitter: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description=(
            "Random jitter as a fraction of each retry delay. "
            "0 keeps the fixed schedule."
        ),
    )
    delivery_max_concurrent: int | None = Field(
        default=10,
        ge=1,
        description="Maximum in-flight deliveries per dispatcher (None for unbounded)",
    )
    failure_threshold: int = Field(
        default=10,
        ge=1,
        description="Cumulative failed deliveries before a subscription is disabled",
    )
    user_agent: str = Field(
        default="WisdomOS-Webhook/1.0",
        description="User-Agent header for outbound webhook requests",
    )

    # Heartbeat monitor
    heartbeat_source: str = Field(
        default="hubspot_webhook",
        description="Name of the monitored inbound webhook source",
    )
    heartbeat_interval_minutes: float = Field(
        default=5.0,
        gt=0,
        validation_alias=AliasChoices(
            "HERALD_HEARTBEAT_INTERVAL_MINUTES", "HEARTBEAT_INTERVAL_MIN"
        ),
        description="Minutes between heartbeat checks",
    )
    stale_threshold_minutes: float = Field(
        default=15.0,
        gt=0,
        validation_alias=AliasChoices("HERALD_STALE_THRESHOLD_MINUTES", "STALE_MIN"),
        description="Heartbeat age after which the source is considered stale",
    )
    reconnect_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Reconnect attempts when the source is stale",
    )
    reconnect_delays_seconds: list[float] = Field(
        default_factory=lambda: [60.0, 120.0, 240.0],
        description="Seconds to wait after reconnect attempt N fails (index N-1)",
    )
    base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "HERALD_BASE_URL", "WISDOMOS_BASE_URL", "NEXT_PUBLIC_SITE_URL"
        ),
        description="Public base URL of this deployment, used for the self-test",
    )
    self_test_path: str = Field(
        default="/api/v1/hubspot/webhook",
        description="Path of the inbound webhook endpoint that the self-test posts to",
    )
    self_test_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for the self-test request",
    )
    assume_healthy_without_self_test: bool = Field(
        default=False,
        description=(
            "Treat a reconnect as successful when no base URL is configured "
            "and the self-test cannot run. Off by default: an untested "
            "reconnect is reported as unverified instead of healthy."
        ),
    )

    # Alerts
    alert_webhook_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HERALD_ALERT_WEBHOOK_URL", "SLACK_WEBHOOK_URL"),
        description="Chat webhook URL (e.g. Slack incoming webhook) for monitor alerts",
    )
    alert_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for alert notification requests",
    )

    # HubSpot
    hubspot_app_id: str | None = Field(
        default=None,
        description="HubSpot app ID owning the webhook subscriptions",
    )
    hubspot_private_app_token: str | None = Field(
        default=None,
        description="HubSpot private app token",
    )
    hubspot_webhook_secret: str | None = Field(
        default=None,
        description="Secret for verifying inbound HubSpot webhook signatures",
    )
    hubspot_api_base: str = Field(
        default="https://api.hubapi.com",
        description="HubSpot API base URL",
    )
    hubspot_events: list[str] = Field(
        default_factory=lambda: list(DEFAULT_HUBSPOT_EVENTS),
        description="HubSpot webhook topics that must be subscribed",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    # CORS Configuration
    cors_enabled: bool = Field(
        default=False,
        description="Enable CORS middleware",
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="List of allowed CORS origins",
    )

    model_config = {
        "env_prefix": "HERALD_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_retry_schedules(self) -> "Settings":
        """Validate that every retry gap has a configured delay.

        With N attempts there are N-1 waits, so the delay lists must be at
        least that long. Extra entries are allowed and ignored.
        """
        if len(self.delivery_retry_delays) < self.delivery_max_attempts - 1:
            raise ValueError(
                f"delivery_retry_delays has {len(self.delivery_retry_delays)} entries, "
                f"need at least {self.delivery_max_attempts - 1} for "
                f"delivery_max_attempts={self.delivery_max_attempts}"
            )
        if len(self.reconnect_delays_seconds) < self.reconnect_max_attempts - 1:
            raise ValueError(
                f"reconnect_delays_seconds has {len(self.reconnect_delays_seconds)} entries, "
                f"need at least {self.reconnect_max_attempts - 1} for "
                f"reconnect_max_attempts={self.reconnect_max_attempts}"
            )
        if any(delay < 0 for delay in self.delivery_retry_delays + self.reconnect_delays_seconds):
            raise ValueError("Retry delays must be non-negative")
        return self

    @model_validator(mode="after")
    def warn_on_production_gaps(self) -> "Settings":
        """Warn about production deployments that cannot verify or persist health."""
        if self.env != "production":
            return self

        if self.storage_backend == "memory":
            warnings.warn(
                "In-memory storage in production loses subscription health and "
                "heartbeat history on restart. Set HERALD_STORAGE_BACKEND=qdrant.",
                UserWarning,
                stacklevel=2,
            )
            logger.warning("In-memory storage configured in production")

        if not self.base_url:
            logger.warning(
                "No base URL configured; heartbeat reconnects cannot be verified by self-test"
            )
        return self

    @property
    def heartbeat_interval_seconds(self) -> float:
        """Heartbeat check interval in seconds."""
        return self.heartbeat_interval_minutes * 60.0


# Global settings instance
settings = Settings()
