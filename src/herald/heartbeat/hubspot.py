"""HubSpot webhook subscription management and end-to-end self-test.

HubSpot pushes CRM changes to our inbound webhook endpoint. When those
pushes stop, the monitor re-runs ensure_subscriptions() and then posts a
synthetic batch to our own endpoint with self_test() to confirm the
receiving side works end to end.
"""

from __future__ import annotations

import json
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import httpx

from herald.config import DEFAULT_HUBSPOT_EVENTS
from herald.exceptions import ConfigurationError
from herald.logging import get_logger
from herald.models import SubscriptionSyncResult
from herald.webhooks.signing import HUBSPOT_SIGNATURE_HEADER, sign_hubspot_payload

if TYPE_CHECKING:
    from herald.config import Settings

logger = get_logger(__name__)

SELF_TEST_EVENT_TYPE = "heartbeat.test"


def build_self_test_batch(now_ms: int | None = None) -> list[dict[str, Any]]:
    """Build the synthetic inbound batch used by the self-test."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return [
        {
            "eventId": f"heartbeat-test-{now_ms}",
            "subscriptionType": SELF_TEST_EVENT_TYPE,
            "portalId": 0,
            "objectId": 0,
            "eventType": SELF_TEST_EVENT_TYPE,
            "occurredAt": now_ms,
        }
    ]


class HubSpotSubscriptionManager:
    """Keeps the required HubSpot webhook topics subscribed.

    Example:
        ```python
        manager = HubSpotSubscriptionManager(
            app_id="12345",
            token="pat-...",
            base_url="https://app.example.com",
        )
        result = await manager.ensure_subscriptions()
        verified = await manager.self_test()
        ```
    """

    def __init__(
        self,
        app_id: str | None,
        token: str | None,
        base_url: str | None,
        events: Sequence[str] = DEFAULT_HUBSPOT_EVENTS,
        api_base: str = "https://api.hubapi.com",
        self_test_path: str = "/api/v1/hubspot/webhook",
        timeout_seconds: float = 10.0,
        webhook_secret: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._app_id = app_id
        self._token = token
        self._base_url = base_url.rstrip("/") if base_url else None
        self._events = list(events)
        self._api_base = api_base.rstrip("/")
        self._self_test_path = self_test_path
        self._timeout = timeout_seconds
        self._webhook_secret = webhook_secret
        self._client = client

    @classmethod
    def from_settings(
        cls, settings: Settings, client: httpx.AsyncClient | None = None
    ) -> HubSpotSubscriptionManager:
        """Create a manager configured from Settings."""
        return cls(
            app_id=settings.hubspot_app_id,
            token=settings.hubspot_private_app_token,
            base_url=settings.base_url,
            events=settings.hubspot_events,
            api_base=settings.hubspot_api_base,
            self_test_path=settings.self_test_path,
            timeout_seconds=settings.self_test_timeout_seconds,
            webhook_secret=settings.hubspot_webhook_secret,
            client=client,
        )

    @property
    def target_url(self) -> str | None:
        """Inbound webhook URL HubSpot should deliver to."""
        if not self._base_url:
            return None
        return f"{self._base_url}{self._self_test_path}"

    @property
    def subscriptions_url(self) -> str:
        return f"{self._api_base}/webhooks/v3/{self._app_id}/subscriptions"

    @asynccontextmanager
    async def _http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    async def ensure_subscriptions(self) -> SubscriptionSyncResult:
        """Subscribe every required topic that is not yet subscribed.

        Listing failures are treated as "nothing subscribed yet"; a topic
        that cannot be subscribed is logged and reported in the result so
        it can be added by hand in HubSpot.

        Raises:
            ConfigurationError: If the app token or base URL is missing.
        """
        if not self._token:
            raise ConfigurationError("HubSpot private app token is not configured")
        target_url = self.target_url
        if target_url is None:
            raise ConfigurationError("Base URL is not configured")

        async with self._http_client() as client:
            existing = await self._list_existing(client)
            result = SubscriptionSyncResult(target_url=target_url, existing=sorted(existing))

            for event_type in self._events:
                if event_type in existing:
                    continue
                body: dict[str, Any] = {"eventType": event_type, "active": True}
                if event_type.endswith(".propertyChange"):
                    body["propertyName"] = "*"
                try:
                    response = await client.post(
                        self.subscriptions_url, json=body, headers=self._auth_headers()
                    )
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.warning(
                        "Could not subscribe HubSpot webhook topic",
                        event_type=event_type,
                        error=str(e),
                    )
                    result.failed.append(event_type)
                else:
                    logger.info("Subscribed HubSpot webhook topic", event_type=event_type)
                    result.subscribed.append(event_type)

        logger.info(
            "HubSpot webhook subscriptions ensured",
            target_url=target_url,
            existing=len(result.existing),
            subscribed=len(result.subscribed),
            failed=len(result.failed),
        )
        return result

    async def _list_existing(self, client: httpx.AsyncClient) -> set[str]:
        try:
            response = await client.get(self.subscriptions_url, headers=self._auth_headers())
            response.raise_for_status()
            results = response.json().get("results") or []
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("Could not list HubSpot webhook subscriptions", error=str(e))
            return set()
        return {sub["eventType"] for sub in results if isinstance(sub, dict) and "eventType" in sub}

    async def self_test(self) -> bool | None:
        """POST a synthetic batch to our own inbound webhook endpoint.

        When an inbound webhook secret is configured the batch is signed the
        same way HubSpot signs real deliveries, so the receiver accepts it.

        Returns:
            True on a 2xx response, False on any other response or a network
            error, None when no base URL is configured and the test cannot run.
        """
        target_url = self.target_url
        if target_url is None:
            logger.warning("Base URL not set, cannot run webhook endpoint self-test")
            return None

        body = json.dumps(build_self_test_batch(), separators=(",", ":"))
        headers = {"Content-Type": "application/json"}
        if self._webhook_secret:
            headers[HUBSPOT_SIGNATURE_HEADER] = sign_hubspot_payload(
                "POST", target_url, body, self._webhook_secret
            )

        try:
            async with self._http_client() as client:
                response = await client.post(target_url, content=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Webhook endpoint self-test error", url=target_url, error=str(e))
            return False

        if not response.is_success:
            logger.warning(
                "Webhook endpoint self-test failed",
                url=target_url,
                status_code=response.status_code,
            )
        return response.is_success
