"""Webhook subscription model.

A subscription is an external endpoint registered by a profile to receive
signed event notifications. Its health fields are owned by the
HealthTracker and change only as a result of delivery outcomes or an
explicit reactivation.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from .base import generate_id, utc_now


class WebhookSubscription(BaseModel):
    """A registered webhook endpoint and its delivery health.

    Attributes:
        id: Unique identifier for this subscription.
        profile_id: Profile that owns the subscription.
        url: Endpoint that receives POSTed events.
        secret: Shared secret for HMAC-SHA256 signatures. Never empty.
        events: Event types this subscription receives.
        is_active: False once auto-disabled or switched off by an admin.
        last_success_at: When a delivery last succeeded.
        last_failure_at: When a delivery last exhausted its attempts.
        failure_count: Failed deliveries since the last success.
        created_at: When the subscription was registered.
        updated_at: When the subscription was last modified.
        description: Optional human-readable description.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("whk"))
    profile_id: str = Field(min_length=1, description="Profile that owns this subscription")
    url: HttpUrl = Field(description="Endpoint to receive events")
    secret: str = Field(repr=False, description="Shared secret for HMAC-SHA256 signatures")
    events: set[str] = Field(min_length=1, description="Event types to receive")
    is_active: bool = Field(default=True, description="Whether deliveries are attempted")
    last_success_at: datetime | None = Field(default=None, description="Last successful delivery")
    last_failure_at: datetime | None = Field(default=None, description="Last failed delivery")
    failure_count: int = Field(default=0, ge=0, description="Failures since last success")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    description: str | None = Field(default=None, description="Human-readable description")

    @field_validator("secret")
    @classmethod
    def _secret_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("secret must not be empty")
        return value

    @field_validator("events")
    @classmethod
    def _events_not_blank(cls, value: set[str]) -> set[str]:
        if any(not event.strip() for event in value):
            raise ValueError("event types must not be empty")
        return value

    def subscribes_to(self, event_type: str) -> bool:
        """Check if this subscription is active and registered for the event type."""
        return self.is_active and event_type in self.events

    def mark_success(self) -> "WebhookSubscription":
        """Record a successful delivery. Does not reactivate a disabled subscription."""
        now = utc_now()
        self.last_success_at = now
        self.failure_count = 0
        self.updated_at = now
        return self

    def mark_failure(self, threshold: int) -> bool:
        """Record a failed delivery.

        Args:
            threshold: Failure count at which the subscription is disabled.

        Returns:
            True if this failure disabled the subscription.
        """
        now = utc_now()
        self.failure_count += 1
        self.last_failure_at = now
        self.updated_at = now
        if self.is_active and self.failure_count >= threshold:
            self.is_active = False
            return True
        return False

    def reactivate(self) -> "WebhookSubscription":
        """Re-enable after an auto-disable and start counting failures afresh."""
        self.is_active = True
        self.failure_count = 0
        self.updated_at = utc_now()
        return self


__all__ = ["WebhookSubscription"]
