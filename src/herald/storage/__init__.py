"""Storage backends for Herald.

Subscriptions and heartbeats are persisted through the SubscriptionStore
and HeartbeatStore interfaces. HeraldStorage is the durable Qdrant
implementation; the in-memory stores are for tests and local runs.

Example:
    ```python
    from herald.storage import HeraldStorage

    async with HeraldStorage() as storage:
        heartbeat = await storage.get_last_heartbeat("hubspot_webhook")
    ```
"""

from .base import PAYLOAD_INDEXES
from .client import HeraldStorage
from .interfaces import HeartbeatStore, SubscriptionStore
from .memory import InMemoryHeartbeatStore, InMemorySubscriptionStore

__all__ = [
    "PAYLOAD_INDEXES",
    "HeartbeatStore",
    "HeraldStorage",
    "InMemoryHeartbeatStore",
    "InMemorySubscriptionStore",
    "SubscriptionStore",
]
