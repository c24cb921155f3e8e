"""Per-subscription delivery health bookkeeping.

A subscription moves through:

    active, failure_count < threshold
        -- failure --> active, failure_count + 1
        -- failure at threshold --> inactive (until reactivate())
    any state
        -- success --> failure_count = 0 (inactive stays inactive)

Each mutation re-reads the subscription under a per-subscription lock, so
several envelopes delivered to the same subscriber at once cannot lose
counter updates. A lock lives only while some task holds or waits on it.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from herald.exceptions import NotFoundError

if TYPE_CHECKING:
    from herald.models import WebhookSubscription
    from herald.storage import SubscriptionStore

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 10


class HealthTracker:
    """Records delivery outcomes on subscriptions.

    Example:
        ```python
        tracker = HealthTracker(store)
        subscription, disabled = await tracker.record_failure("whk_123")
        if disabled:
            ...  # no further deliveries until tracker.reactivate("whk_123")
        ```
    """

    def __init__(
        self,
        store: SubscriptionStore,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self._store = store
        self._failure_threshold = failure_threshold
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    @asynccontextmanager
    async def _locked(self, subscription_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(subscription_id, asyncio.Lock())
        self._lock_users[subscription_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[subscription_id] -= 1
            if not self._lock_users[subscription_id]:
                del self._lock_users[subscription_id]
                del self._locks[subscription_id]

    async def _load(self, subscription_id: str) -> WebhookSubscription:
        subscription = await self._store.get_subscription(subscription_id)
        if subscription is None:
            raise NotFoundError("subscription", subscription_id)
        return subscription

    async def record_success(self, subscription_id: str) -> WebhookSubscription:
        """Record a successful delivery.

        Sets last_success_at and resets failure_count. A subscription that
        is already inactive stays inactive.
        """
        async with self._locked(subscription_id):
            subscription = await self._load(subscription_id)
            subscription.mark_success()
            await self._store.save_subscription(subscription)
        return subscription

    async def record_failure(self, subscription_id: str) -> tuple[WebhookSubscription, bool]:
        """Record a delivery that exhausted its attempts.

        Returns:
            The updated subscription and whether this failure disabled it.
        """
        async with self._locked(subscription_id):
            subscription = await self._load(subscription_id)
            disabled = subscription.mark_failure(self._failure_threshold)
            await self._store.save_subscription(subscription)

        if disabled:
            logger.warning(
                "Disabling webhook subscription %s after %d consecutive failures",
                subscription_id,
                subscription.failure_count,
            )
        return subscription, disabled

    async def reactivate(self, subscription_id: str) -> WebhookSubscription:
        """Re-enable a subscription and reset its failure counter."""
        async with self._locked(subscription_id):
            subscription = await self._load(subscription_id)
            subscription.reactivate()
            await self._store.save_subscription(subscription)

        logger.info("Reactivated webhook subscription %s", subscription_id)
        return subscription
