"""Tests for HeraldService wiring."""

import httpx
import pytest

from conftest import SleepRecorder, make_client
from herald.config import Settings
from herald.exceptions import NotFoundError, ValidationError
from herald.service import HeraldService
from herald.storage import HeraldStorage, InMemoryHeartbeatStore, InMemorySubscriptionStore
from herald.webhooks import WebhookDispatcher


@pytest.fixture
async def service():
    async with HeraldService.create(Settings(storage_backend="memory")) as herald:
        yield herald


class TestCreate:
    def test_memory_backend(self):
        herald = HeraldService.create(Settings(storage_backend="memory"))
        assert isinstance(herald.subscriptions, InMemorySubscriptionStore)
        assert isinstance(herald.heartbeats, InMemoryHeartbeatStore)
        assert herald.storage is None

    def test_qdrant_backend(self):
        herald = HeraldService.create(
            Settings(storage_backend="qdrant", collection_prefix="svc")
        )
        assert isinstance(herald.storage, HeraldStorage)
        assert herald.subscriptions is herald.storage
        assert herald.heartbeats is herald.storage

    def test_settings_flow_through(self):
        herald = HeraldService.create(
            Settings(storage_backend="memory", failure_threshold=4, heartbeat_source="crm")
        )
        assert herald.tracker.failure_threshold == 4
        assert herald.monitor.source == "crm"


class TestSubscriptions:
    async def test_register_generates_secret(self, service):
        subscription = await service.register_subscription(
            profile_id="prof_1",
            url="https://example.com/hooks",
            events=["journal.created"],
        )

        assert len(subscription.secret) == 64
        assert await service.get_subscription(subscription.id) == subscription

    async def test_register_rejects_empty_secret(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.register_subscription(
                profile_id="prof_1",
                url="https://example.com/hooks",
                events=["journal.created"],
                secret="",
            )
        assert exc_info.value.field == "secret"

    async def test_register_rejects_no_events(self, service):
        with pytest.raises(ValidationError):
            await service.register_subscription(
                profile_id="prof_1", url="https://example.com/hooks", events=[]
            )

    async def test_get_missing(self, service):
        with pytest.raises(NotFoundError):
            await service.get_subscription("whk_missing")

    async def test_list(self, service):
        await service.register_subscription("prof_1", "https://a.example.com/h", ["a"])
        await service.register_subscription("prof_1", "https://b.example.com/h", ["b"])
        await service.register_subscription("prof_2", "https://c.example.com/h", ["a"])

        assert len(await service.list_subscriptions("prof_1")) == 2

    async def test_reactivate(self, service):
        subscription = await service.register_subscription(
            "prof_1", "https://a.example.com/h", ["a"]
        )
        subscription.is_active = False
        subscription.failure_count = 10
        await service.subscriptions.save_subscription(subscription)

        reactivated = await service.reactivate_subscription(subscription.id)

        assert reactivated.is_active
        assert reactivated.failure_count == 0


class TestSendEvent:
    async def test_requires_profile_and_event(self, service):
        with pytest.raises(ValidationError):
            await service.send_event("", "journal.created")
        with pytest.raises(ValidationError):
            await service.send_event("prof_1", "")

    async def test_end_to_end_auto_disable(self, service):
        """Ten failed events in a row disable the subscriber; reactivation re-enables it."""
        client, transport = make_client(lambda request: httpx.Response(500, text="down"))
        service.dispatcher = WebhookDispatcher(
            service.subscriptions, service.tracker, client=client, sleep=SleepRecorder()
        )
        subscription = await service.register_subscription(
            "prof_1", "https://example.com/hooks", ["journal.created"]
        )

        for _ in range(10):
            await service.send_event("prof_1", "journal.created", {"n": 1})

        disabled = await service.get_subscription(subscription.id)
        assert not disabled.is_active
        assert disabled.failure_count == 10
        assert len(transport.requests) == 30

        summary = await service.send_event("prof_1", "journal.created")
        assert summary.webhooks_total == 0
        assert len(transport.requests) == 30

        await service.reactivate_subscription(subscription.id)
        summary = await service.send_event("prof_1", "journal.created")
        assert summary.webhooks_total == 1


class TestHeartbeats:
    async def test_get_missing(self, service):
        with pytest.raises(NotFoundError):
            await service.get_heartbeat("hubspot_webhook")

    async def test_receive_batch_records_heartbeat(self, service):
        result = await service.receive_hubspot_batch(
            [
                {"eventId": "1", "subscriptionType": "contact.creation"},
                {"eventId": "2", "subscriptionType": "heartbeat.test"},
            ]
        )

        assert result.processed == 1
        heartbeat = await service.get_heartbeat("hubspot_webhook")
        assert heartbeat.count == 1
        assert heartbeat.status == "healthy"

    async def test_duplicate_only_batch_still_refreshes_heartbeat(self, service):
        batch = [{"eventId": "1", "subscriptionType": "contact.creation"}]
        await service.receive_hubspot_batch(batch)
        first = await service.get_heartbeat("hubspot_webhook")

        await service.receive_hubspot_batch(batch)
        second = await service.get_heartbeat("hubspot_webhook")

        assert second.count == 0
        assert second.timestamp >= first.timestamp
