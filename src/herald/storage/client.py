"""Qdrant storage client for Herald.

Combines subscription and heartbeat operations through mixins and
implements both store interfaces, so a single client backs the
dispatcher, the health tracker and the heartbeat monitor.

Example:
    ```python
    from herald.storage import HeraldStorage

    async with HeraldStorage() as storage:
        await storage.save_subscription(subscription)
        matches = await storage.list_subscriptions_for_event("prof_1", "journal.created")
    ```
"""

from __future__ import annotations

from .base import StorageBase
from .heartbeats import HeartbeatMixin
from .interfaces import HeartbeatStore, SubscriptionStore
from .subscriptions import SubscriptionMixin


class HeraldStorage(
    SubscriptionMixin,
    HeartbeatMixin,
    StorageBase,
    SubscriptionStore,
    HeartbeatStore,
):
    """Async Qdrant storage for subscriptions and heartbeats."""
