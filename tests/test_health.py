"""Tests for per-subscription delivery health tracking."""

import asyncio

import pytest

from conftest import make_subscription
from herald.exceptions import NotFoundError
from herald.webhooks import HealthTracker


class TestHealthTracker:
    """Tests for HealthTracker."""

    def test_threshold_must_be_positive(self, subscription_store):
        with pytest.raises(ValueError):
            HealthTracker(subscription_store, failure_threshold=0)

    async def test_record_success(self, subscription_store):
        await subscription_store.save_subscription(make_subscription(id="whk_1", failure_count=4))
        tracker = HealthTracker(subscription_store)

        updated = await tracker.record_success("whk_1")

        assert updated.failure_count == 0
        assert updated.last_success_at is not None
        stored = await subscription_store.get_subscription("whk_1")
        assert stored.failure_count == 0

    async def test_record_failure_increments(self, subscription_store):
        await subscription_store.save_subscription(make_subscription(id="whk_1"))
        tracker = HealthTracker(subscription_store)

        updated, disabled = await tracker.record_failure("whk_1")

        assert not disabled
        assert updated.failure_count == 1
        assert updated.is_active
        assert updated.last_failure_at is not None

    async def test_tenth_failure_disables(self, subscription_store):
        await subscription_store.save_subscription(make_subscription(id="whk_1", failure_count=9))
        tracker = HealthTracker(subscription_store)

        updated, disabled = await tracker.record_failure("whk_1")

        assert disabled
        assert updated.failure_count == 10
        stored = await subscription_store.get_subscription("whk_1")
        assert not stored.is_active

    async def test_custom_threshold(self, subscription_store):
        await subscription_store.save_subscription(make_subscription(id="whk_1", failure_count=2))
        tracker = HealthTracker(subscription_store, failure_threshold=3)

        _, disabled = await tracker.record_failure("whk_1")

        assert disabled

    async def test_success_does_not_reactivate(self, subscription_store):
        await subscription_store.save_subscription(
            make_subscription(id="whk_1", failure_count=10, is_active=False)
        )
        tracker = HealthTracker(subscription_store)

        updated = await tracker.record_success("whk_1")

        assert updated.failure_count == 0
        assert not updated.is_active

    async def test_reactivate(self, subscription_store):
        await subscription_store.save_subscription(
            make_subscription(id="whk_1", failure_count=10, is_active=False)
        )
        tracker = HealthTracker(subscription_store)

        updated = await tracker.reactivate("whk_1")

        assert updated.is_active
        assert updated.failure_count == 0
        stored = await subscription_store.get_subscription("whk_1")
        assert stored.is_active

    async def test_unknown_subscription(self, subscription_store):
        tracker = HealthTracker(subscription_store)
        with pytest.raises(NotFoundError):
            await tracker.record_failure("whk_missing")
        with pytest.raises(NotFoundError):
            await tracker.reactivate("whk_missing")

    async def test_concurrent_failures_are_all_counted(self, subscription_store):
        """Simultaneous failures for one subscriber must not lose updates."""
        await subscription_store.save_subscription(make_subscription(id="whk_1"))
        tracker = HealthTracker(subscription_store)

        original_get = subscription_store.get_subscription

        async def slow_get(subscription_id):
            subscription = await original_get(subscription_id)
            await asyncio.sleep(0)
            return subscription

        subscription_store.get_subscription = slow_get

        results = await asyncio.gather(*(tracker.record_failure("whk_1") for _ in range(5)))

        stored = await original_get("whk_1")
        assert stored.failure_count == 5
        assert sum(1 for _, disabled in results if disabled) == 0
        assert tracker._locks == {}

    async def test_locks_released_after_use(self, subscription_store):
        """Lock bookkeeping does not grow with the number of subscriptions seen."""
        for i in range(3):
            await subscription_store.save_subscription(make_subscription(id=f"whk_{i}"))
        tracker = HealthTracker(subscription_store)

        await tracker.record_failure("whk_0")
        await tracker.record_success("whk_1")
        await tracker.reactivate("whk_2")
        with pytest.raises(NotFoundError):
            await tracker.record_failure("whk_missing")

        assert tracker._locks == {}
        assert not tracker._lock_users
