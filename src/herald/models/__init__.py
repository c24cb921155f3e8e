"""Data models for Herald.

Delivery:
    - WebhookSubscription: Registered endpoint plus delivery health
    - EventEnvelope: Immutable event payload fanned out to subscribers
    - DeliveryAttempt, DeliveryResult, DispatchSummary: Transient outcomes

Heartbeat:
    - Heartbeat: Liveness record for an inbound webhook source
    - HealthCheckResult, MonitorState: Monitor check outcomes
    - Alert, SubscriptionSyncResult: Monitor side effects
"""

from .base import generate_id, isoformat_ms, utc_now
from .delivery import DeliveryAttempt, DeliveryResult, DispatchSummary
from .event import EventEnvelope
from .heartbeat import (
    Alert,
    AlertLevel,
    HealthCheckResult,
    Heartbeat,
    HeartbeatStatus,
    MonitorState,
    SubscriptionSyncResult,
)
from .subscription import WebhookSubscription

__all__ = [
    "generate_id",
    "isoformat_ms",
    "utc_now",
    # Delivery
    "DeliveryAttempt",
    "DeliveryResult",
    "DispatchSummary",
    "EventEnvelope",
    "WebhookSubscription",
    # Heartbeat
    "Alert",
    "AlertLevel",
    "HealthCheckResult",
    "Heartbeat",
    "HeartbeatStatus",
    "MonitorState",
    "SubscriptionSyncResult",
]
