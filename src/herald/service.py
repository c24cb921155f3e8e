"""High-level service wiring storage, delivery and heartbeat monitoring.

Example:
    ```python
    from herald.service import HeraldService

    async with HeraldService.create() as herald:
        summary = await herald.send_event(
            profile_id="prof_123",
            event_type="journal.created",
            data={"journal_id": "j_456"},
        )
    ```
"""

from __future__ import annotations

import secrets
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from herald.config import Settings
from herald.exceptions import NotFoundError, ValidationError
from herald.heartbeat import (
    AlertNotifier,
    HeartbeatMonitor,
    HubSpotSubscriptionManager,
    InboundBatchResult,
    ProcessedEventCache,
    process_batch,
)
from herald.logging import get_logger
from herald.models import DispatchSummary, EventEnvelope, Heartbeat, WebhookSubscription
from herald.storage import (
    HeartbeatStore,
    HeraldStorage,
    InMemoryHeartbeatStore,
    InMemorySubscriptionStore,
    SubscriptionStore,
)
from herald.webhooks import HealthTracker, WebhookDispatcher

logger = get_logger(__name__)


@dataclass
class HeraldService:
    """Entry point for sending events and managing subscriptions.

    Use HeraldService.create() to build one from Settings.
    """

    settings: Settings
    subscriptions: SubscriptionStore
    heartbeats: HeartbeatStore
    dispatcher: WebhookDispatcher
    monitor: HeartbeatMonitor
    storage: HeraldStorage | None = field(default=None)
    inbound_events: ProcessedEventCache = field(default_factory=ProcessedEventCache)

    @classmethod
    def create(cls, settings: Settings | None = None) -> HeraldService:
        """Create a service with the configured storage backend.

        Args:
            settings: Optional settings. Uses environment if None.
        """
        settings = settings or Settings()

        storage: HeraldStorage | None = None
        subscriptions: SubscriptionStore
        heartbeats: HeartbeatStore
        if settings.storage_backend == "qdrant":
            storage = HeraldStorage(
                url=settings.qdrant_url,
                api_key=settings.qdrant_api_key,
                prefix=settings.collection_prefix,
            )
            subscriptions, heartbeats = storage, storage
        else:
            subscriptions, heartbeats = InMemorySubscriptionStore(), InMemoryHeartbeatStore()

        tracker = HealthTracker(subscriptions, settings.failure_threshold)
        dispatcher = WebhookDispatcher.from_settings(subscriptions, settings, tracker=tracker)
        monitor = HeartbeatMonitor.from_settings(
            heartbeats,
            settings,
            subscriptions=HubSpotSubscriptionManager.from_settings(settings),
            notifier=AlertNotifier(settings.alert_webhook_url, settings.alert_timeout_seconds),
        )
        return cls(
            settings=settings,
            subscriptions=subscriptions,
            heartbeats=heartbeats,
            dispatcher=dispatcher,
            monitor=monitor,
            storage=storage,
        )

    async def initialize(self) -> None:
        """Connect storage."""
        if self.storage is not None:
            await self.storage.initialize()
        logger.info("Herald service initialized", storage_backend=self.settings.storage_backend)

    async def close(self) -> None:
        """Stop the monitor loop and close storage."""
        self.monitor.stop()
        if self.storage is not None:
            await self.storage.close()

    async def __aenter__(self) -> HeraldService:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def tracker(self) -> HealthTracker:
        return self.dispatcher.tracker

    async def send_event(
        self, profile_id: str, event_type: str, data: Any = None
    ) -> DispatchSummary:
        """Deliver an event to every matching active subscription of a profile.

        The profile is not checked for existence.

        Raises:
            ValidationError: If profile_id or event_type is empty.
        """
        if not profile_id:
            raise ValidationError("profile_id", "is required")
        if not event_type:
            raise ValidationError("event_type", "is required")

        envelope = EventEnvelope.build(profile_id, event_type, data)
        return await self.dispatcher.dispatch(envelope)

    async def register_subscription(
        self,
        profile_id: str,
        url: str,
        events: Iterable[str],
        secret: str | None = None,
        description: str | None = None,
    ) -> WebhookSubscription:
        """Register a webhook endpoint for a profile.

        A random secret is generated when none is given. An explicitly
        empty secret is rejected.

        Raises:
            ValidationError: If any field is invalid.
        """
        if secret is None:
            secret = secrets.token_hex(32)
        try:
            subscription = WebhookSubscription(
                profile_id=profile_id,
                url=url,
                secret=secret,
                events=set(events),
                description=description,
            )
        except PydanticValidationError as e:
            error = e.errors()[0]
            field_name = ".".join(str(part) for part in error["loc"]) or "subscription"
            raise ValidationError(field_name, error["msg"]) from e

        await self.subscriptions.save_subscription(subscription)
        logger.info(
            "Webhook subscription registered",
            subscription_id=subscription.id,
            profile_id=profile_id,
            events=sorted(subscription.events),
        )
        return subscription

    async def get_subscription(self, subscription_id: str) -> WebhookSubscription:
        """Get a subscription.

        Raises:
            NotFoundError: If it doesn't exist.
        """
        subscription = await self.subscriptions.get_subscription(subscription_id)
        if subscription is None:
            raise NotFoundError("subscription", subscription_id)
        return subscription

    async def list_subscriptions(self, profile_id: str) -> list[WebhookSubscription]:
        return await self.subscriptions.list_subscriptions(profile_id)

    async def reactivate_subscription(self, subscription_id: str) -> WebhookSubscription:
        """Re-enable an auto-disabled subscription."""
        return await self.tracker.reactivate(subscription_id)

    async def record_heartbeat(self, count: int = 0) -> Heartbeat:
        """Record an inbound batch from the monitored source."""
        return await self.monitor.record_heartbeat(count)

    async def get_heartbeat(self, source: str) -> Heartbeat:
        """Get the latest heartbeat of a source.

        Raises:
            NotFoundError: If the source has never reported.
        """
        heartbeat = await self.heartbeats.get_last_heartbeat(source)
        if heartbeat is None:
            raise NotFoundError("heartbeat", source)
        return heartbeat

    async def receive_hubspot_batch(self, events: list[Any]) -> InboundBatchResult:
        """Process an inbound HubSpot batch and refresh the heartbeat.

        The heartbeat is recorded for every batch, including one made up
        entirely of duplicates, since it proves the source is still pushing.
        """
        result = process_batch(events, self.inbound_events)
        await self.record_heartbeat(result.processed)
        logger.info(
            "HubSpot webhook batch processed",
            total=len(events),
            processed=result.processed,
            skipped=result.skipped,
            errors=result.errors,
        )
        return result
