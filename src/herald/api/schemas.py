"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from herald.models import Heartbeat, WebhookSubscription


class SendEventRequest(BaseModel):
    """Request body for triggering an outbound event.

    profile_id and event_type are optional here so a missing value is
    reported as a 400 by the service rather than a schema error.

    Attributes:
        profile_id: Profile whose subscribers receive the event.
        event_type: Event name, e.g. "journal.created".
        data: Arbitrary JSON payload.
    """

    model_config = ConfigDict(extra="forbid")

    profile_id: str | None = Field(default=None, description="Owning profile ID")
    event_type: str | None = Field(default=None, description="Event type to deliver")
    data: Any = Field(default=None, description="Event payload")


class CreateSubscriptionRequest(BaseModel):
    """Request body for registering a webhook subscription.

    Attributes:
        profile_id: Owning profile.
        url: HTTPS endpoint to deliver to.
        events: Event types to receive.
        secret: Shared secret. Generated when omitted.
        description: Optional label.
    """

    model_config = ConfigDict(extra="forbid")

    profile_id: str = Field(min_length=1, description="Owning profile ID")
    url: str = Field(min_length=1, description="Subscriber endpoint URL")
    events: list[str] = Field(min_length=1, description="Event types to subscribe to")
    secret: str | None = Field(default=None, description="Signing secret (generated if omitted)")
    description: str | None = Field(default=None, description="Optional label")


class SubscriptionResponse(BaseModel):
    """A webhook subscription with its delivery health. Never includes the secret."""

    model_config = ConfigDict(extra="forbid")

    id: str
    profile_id: str
    url: str
    events: list[str]
    is_active: bool
    failure_count: int
    last_success_at: datetime | None = None
    last_failure_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    description: str | None = None

    @classmethod
    def from_subscription(cls, subscription: WebhookSubscription) -> SubscriptionResponse:
        return cls(
            id=subscription.id,
            profile_id=subscription.profile_id,
            url=str(subscription.url),
            events=sorted(subscription.events),
            is_active=subscription.is_active,
            failure_count=subscription.failure_count,
            last_success_at=subscription.last_success_at,
            last_failure_at=subscription.last_failure_at,
            created_at=subscription.created_at,
            updated_at=subscription.updated_at,
            description=subscription.description,
        )


class CreateSubscriptionResponse(SubscriptionResponse):
    """Returned once on creation. The only response carrying the secret."""

    secret: str

    @classmethod
    def from_subscription(cls, subscription: WebhookSubscription) -> CreateSubscriptionResponse:
        base = SubscriptionResponse.from_subscription(subscription)
        return cls(**base.model_dump(), secret=subscription.secret)


class SubscriptionListResponse(BaseModel):
    """Subscriptions of one profile."""

    model_config = ConfigDict(extra="forbid")

    profile_id: str
    subscriptions: list[SubscriptionResponse] = Field(default_factory=list)
    count: int = 0


class HeartbeatResponse(BaseModel):
    """Latest heartbeat of an inbound source.

    Attributes:
        source: Source name.
        timestamp: When the source last delivered (or was last verified).
        count: Events processed in the last batch.
        status: Last recorded status.
        age_minutes: Minutes since timestamp.
    """

    model_config = ConfigDict(extra="forbid")

    source: str
    timestamp: datetime
    count: int
    status: str
    age_minutes: float

    @classmethod
    def from_heartbeat(cls, heartbeat: Heartbeat) -> HeartbeatResponse:
        return cls(
            source=heartbeat.source,
            timestamp=heartbeat.timestamp,
            count=heartbeat.count,
            status=heartbeat.status,
            age_minutes=round(heartbeat.age_minutes(), 2),
        )


class InboundResults(BaseModel):
    """Counts for an inbound HubSpot batch."""

    processed: int
    skipped: int
    errors: int


class InboundWebhookResponse(BaseModel):
    """Response to HubSpot for an accepted batch."""

    ok: bool = True
    results: InboundResults


class HealthResponse(BaseModel):
    """Response from the health check endpoint.

    Attributes:
        status: "healthy" or "unhealthy".
        version: Herald version.
        storage_backend: Configured storage backend.
        monitor_state: Current heartbeat monitor state.
    """

    model_config = ConfigDict(extra="forbid")

    status: str
    version: str
    storage_backend: str | None = None
    monitor_state: str | None = None
