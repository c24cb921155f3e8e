"""In-memory stores.

State lives in the process and is lost on restart, including failure
counters and heartbeat history. Use for tests and local development only;
production runs on HeraldStorage (Qdrant).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .interfaces import HeartbeatStore, SubscriptionStore

if TYPE_CHECKING:
    from herald.models import Heartbeat, WebhookSubscription


class InMemorySubscriptionStore(SubscriptionStore):
    """Dictionary-backed subscription store."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, WebhookSubscription] = {}

    async def save_subscription(self, subscription: WebhookSubscription) -> str:
        self._subscriptions[subscription.id] = subscription.model_copy(deep=True)
        return subscription.id

    async def get_subscription(self, subscription_id: str) -> WebhookSubscription | None:
        subscription = self._subscriptions.get(subscription_id)
        return subscription.model_copy(deep=True) if subscription else None

    async def list_subscriptions(self, profile_id: str) -> list[WebhookSubscription]:
        return [
            s.model_copy(deep=True)
            for s in self._subscriptions.values()
            if s.profile_id == profile_id
        ]

    async def list_subscriptions_for_event(
        self,
        profile_id: str,
        event_type: str,
    ) -> list[WebhookSubscription]:
        return [
            s.model_copy(deep=True)
            for s in self._subscriptions.values()
            if s.profile_id == profile_id and s.subscribes_to(event_type)
        ]


class InMemoryHeartbeatStore(HeartbeatStore):
    """Dictionary-backed heartbeat store keyed by source."""

    def __init__(self) -> None:
        self._heartbeats: dict[str, Heartbeat] = {}

    async def get_last_heartbeat(self, source: str) -> Heartbeat | None:
        heartbeat = self._heartbeats.get(source)
        return heartbeat.model_copy() if heartbeat else None

    async def save_heartbeat(self, heartbeat: Heartbeat) -> None:
        self._heartbeats[heartbeat.source] = heartbeat.model_copy()
