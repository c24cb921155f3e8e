"""Store interfaces for subscriptions and heartbeats.

The dispatcher, health tracker and heartbeat monitor depend only on these
interfaces. InMemory* implementations live in storage.memory; the durable
Qdrant implementation is HeraldStorage in storage.client.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from herald.models import Heartbeat, WebhookSubscription


class SubscriptionStore(ABC):
    """Persistence for webhook subscriptions.

    Implementations return copies: mutating a returned subscription has no
    effect until it is passed back to save_subscription().
    """

    @abstractmethod
    async def save_subscription(self, subscription: WebhookSubscription) -> str:
        """Insert or replace a subscription.

        Returns:
            The subscription ID.
        """
        ...

    @abstractmethod
    async def get_subscription(self, subscription_id: str) -> WebhookSubscription | None:
        """Get a subscription by ID, or None if it doesn't exist."""
        ...

    @abstractmethod
    async def list_subscriptions(self, profile_id: str) -> list[WebhookSubscription]:
        """List all subscriptions of a profile, active or not."""
        ...

    @abstractmethod
    async def list_subscriptions_for_event(
        self,
        profile_id: str,
        event_type: str,
    ) -> list[WebhookSubscription]:
        """List active subscriptions of a profile registered for an event type."""
        ...


class HeartbeatStore(ABC):
    """Persistence for heartbeat records, one per source."""

    @abstractmethod
    async def get_last_heartbeat(self, source: str) -> Heartbeat | None:
        """Get the latest heartbeat for a source, or None before the first one."""
        ...

    @abstractmethod
    async def save_heartbeat(self, heartbeat: Heartbeat) -> None:
        """Replace the heartbeat record for heartbeat.source."""
        ...
