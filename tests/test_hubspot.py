"""Tests for HubSpot subscription management and the endpoint self-test."""

import json

import httpx
import pytest

from conftest import make_client
from herald.config import Settings
from herald.exceptions import ConfigurationError
from herald.heartbeat import HubSpotSubscriptionManager, build_self_test_batch
from herald.webhooks import verify_hubspot_signature

BASE_URL = "https://app.example.com"
SUBSCRIPTIONS_URL = "https://api.hubapi.com/webhooks/v3/123/subscriptions"


def make_manager(handler, **overrides) -> tuple[HubSpotSubscriptionManager, object]:
    client, transport = make_client(handler)
    options = {
        "app_id": "123",
        "token": "pat-test",
        "base_url": BASE_URL,
        "events": ["contact.creation", "contact.propertyChange", "deal.creation"],
        "client": client,
    }
    options.update(overrides)
    return HubSpotSubscriptionManager(**options), transport


class TestBuildSelfTestBatch:
    def test_batch_shape(self):
        batch = build_self_test_batch(now_ms=1700000000000)
        assert batch == [
            {
                "eventId": "heartbeat-test-1700000000000",
                "subscriptionType": "heartbeat.test",
                "portalId": 0,
                "objectId": 0,
                "eventType": "heartbeat.test",
                "occurredAt": 1700000000000,
            }
        ]


class TestHubSpotSubscriptionManager:
    def test_target_url(self):
        manager, _ = make_manager(lambda r: httpx.Response(200), base_url=BASE_URL + "/")
        assert manager.target_url == "https://app.example.com/api/v1/hubspot/webhook"
        assert manager.subscriptions_url == SUBSCRIPTIONS_URL

    def test_target_url_without_base_url(self):
        manager, _ = make_manager(lambda r: httpx.Response(200), base_url=None)
        assert manager.target_url is None

    def test_from_settings(self):
        settings = Settings(
            hubspot_app_id="999",
            hubspot_private_app_token="pat-x",
            base_url="https://wisdom.example.com",
        )
        manager = HubSpotSubscriptionManager.from_settings(settings)
        assert manager.target_url == "https://wisdom.example.com/api/v1/hubspot/webhook"
        assert manager.subscriptions_url.endswith("/webhooks/v3/999/subscriptions")

    async def test_ensure_subscriptions_adds_missing_topics(self):
        """Only topics not already subscribed are created."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json={"results": [{"eventType": "contact.creation"}]})
            return httpx.Response(201, json={})

        manager, transport = make_manager(handler)

        result = await manager.ensure_subscriptions()

        assert result.existing == ["contact.creation"]
        assert result.subscribed == ["contact.propertyChange", "deal.creation"]
        assert result.failed == []

        posts = [r for r in transport.requests if r.method == "POST"]
        bodies = [json.loads(r.content) for r in posts]
        assert bodies == [
            {"eventType": "contact.propertyChange", "active": True, "propertyName": "*"},
            {"eventType": "deal.creation", "active": True},
        ]
        assert all(r.headers["Authorization"] == "Bearer pat-test" for r in transport.requests)
        assert all(str(r.url) == SUBSCRIPTIONS_URL for r in transport.requests)

    async def test_list_failure_treated_as_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(500)
            return httpx.Response(201, json={})

        manager, _ = make_manager(handler)

        result = await manager.ensure_subscriptions()

        assert result.existing == []
        assert len(result.subscribed) == 3

    async def test_failed_topic_is_reported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json={"results": []})
            if json.loads(request.content)["eventType"] == "deal.creation":
                return httpx.Response(400, json={"message": "scope missing"})
            return httpx.Response(201, json={})

        manager, _ = make_manager(handler)

        result = await manager.ensure_subscriptions()

        assert result.failed == ["deal.creation"]
        assert result.subscribed == ["contact.creation", "contact.propertyChange"]

    async def test_requires_token(self):
        manager, transport = make_manager(lambda r: httpx.Response(200), token=None)
        with pytest.raises(ConfigurationError):
            await manager.ensure_subscriptions()
        assert transport.requests == []

    async def test_requires_base_url(self):
        manager, _ = make_manager(lambda r: httpx.Response(200), base_url=None)
        with pytest.raises(ConfigurationError):
            await manager.ensure_subscriptions()


class TestSelfTest:
    async def test_passes_on_2xx(self):
        manager, transport = make_manager(lambda r: httpx.Response(200, json={"ok": True}))

        assert await manager.self_test() is True

        request = transport.requests[0]
        assert str(request.url) == "https://app.example.com/api/v1/hubspot/webhook"
        batch = json.loads(request.content)
        assert batch[0]["subscriptionType"] == "heartbeat.test"
        assert "X-HubSpot-Signature-v3" not in request.headers

    async def test_signed_when_secret_configured(self):
        manager, transport = make_manager(
            lambda r: httpx.Response(200), webhook_secret="s3cret"
        )

        assert await manager.self_test() is True

        request = transport.requests[0]
        assert verify_hubspot_signature(
            "POST",
            manager.target_url,
            request.content.decode(),
            "s3cret",
            request.headers["X-HubSpot-Signature-v3"],
        )

    async def test_fails_on_error_status(self):
        manager, _ = make_manager(lambda r: httpx.Response(503))
        assert await manager.self_test() is False

    async def test_fails_on_network_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        manager, _ = make_manager(refuse)
        assert await manager.self_test() is False

    async def test_unknown_without_base_url(self):
        manager, transport = make_manager(lambda r: httpx.Response(200), base_url=None)
        assert await manager.self_test() is None
        assert transport.requests == []
