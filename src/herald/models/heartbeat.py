"""Heartbeat models for inbound webhook liveness monitoring."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .base import utc_now

# Status persisted on the heartbeat record
HeartbeatStatus = Literal["initialized", "healthy", "reconnected", "failed"]

AlertLevel = Literal["success", "warning", "error"]


class MonitorState(str, Enum):
    """Heartbeat monitor state for one source."""

    UNINITIALIZED = "uninitialized"
    HEALTHY = "healthy"
    STALE = "stale"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class Heartbeat(BaseModel):
    """Latest liveness record for an inbound webhook source.

    Attributes:
        source: Source name (e.g. "hubspot_webhook").
        timestamp: When the source was last known to be alive.
        count: Events processed in the batch that produced the heartbeat.
        status: Last status written by the monitor or the receiver.
    """

    model_config = ConfigDict(extra="forbid")

    source: str = Field(min_length=1)
    timestamp: datetime = Field(default_factory=utc_now)
    count: int = Field(default=0, ge=0)
    status: HeartbeatStatus = "healthy"

    def age_minutes(self, now: datetime | None = None) -> float:
        """Minutes elapsed since the heartbeat timestamp."""
        now = now or utc_now()
        return (now - self.timestamp).total_seconds() / 60.0


class HealthCheckResult(BaseModel):
    """Outcome of one heartbeat check.

    Attributes:
        source: Checked source.
        state: Monitor state after the check.
        status: Heartbeat status written by the check, if any.
        age_minutes: Heartbeat age at check time (None on first run).
        reconnect_attempts: Reconnect attempts made during the check.
        verified: Self-test outcome of the last reconnect attempt; None when
            no self-test ran or it could not run.
    """

    model_config = ConfigDict(extra="forbid")

    source: str
    state: MonitorState
    status: HeartbeatStatus | None = None
    age_minutes: float | None = None
    reconnect_attempts: int = 0
    verified: bool | None = None


class Alert(BaseModel):
    """Notification sent to the team chat channel."""

    model_config = ConfigDict(extra="forbid")

    level: AlertLevel
    title: str
    message: str


class SubscriptionSyncResult(BaseModel):
    """Outcome of ensuring the HubSpot webhook topics are subscribed."""

    model_config = ConfigDict(extra="forbid")

    target_url: str
    existing: list[str] = Field(default_factory=list)
    subscribed: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


__all__ = [
    "Alert",
    "AlertLevel",
    "HealthCheckResult",
    "Heartbeat",
    "HeartbeatStatus",
    "MonitorState",
    "SubscriptionSyncResult",
]
