"""Subscription storage operations for HeraldStorage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from qdrant_client import models

from herald.models import WebhookSubscription

from .retry import store_retry

if TYPE_CHECKING:
    from qdrant_client.http.models import Filter


class SubscriptionMixin:
    """Mixin providing subscription operations for HeraldStorage.

    This mixin expects the following methods from the base class:
    - _upsert(kind, key, payload)
    - _retrieve(kind, key) -> dict | None
    - _scroll_all(kind, filter) -> list[dict]
    - _model_to_payload(model) -> dict
    - _payload_to_model(payload, model_class)
    """

    _upsert: Any
    _retrieve: Any
    _scroll_all: Any
    _model_to_payload: Any
    _payload_to_model: Any

    @staticmethod
    def _subscription_key(subscription_id: str) -> str:
        return f"subscription/{subscription_id}"

    @store_retry
    async def save_subscription(self, subscription: WebhookSubscription) -> str:
        """Insert or replace a subscription.

        Args:
            subscription: Subscription to store.

        Returns:
            The subscription ID.
        """
        payload = self._model_to_payload(subscription)
        # Sorted so payloads are stable across writes
        payload["events"] = sorted(subscription.events)
        await self._upsert("subscriptions", self._subscription_key(subscription.id), payload)
        return subscription.id

    @store_retry
    async def get_subscription(self, subscription_id: str) -> WebhookSubscription | None:
        """Get a subscription by ID.

        Args:
            subscription_id: ID of the subscription.

        Returns:
            WebhookSubscription or None if not found.
        """
        payload = await self._retrieve("subscriptions", self._subscription_key(subscription_id))
        if payload is None:
            return None
        subscription: WebhookSubscription = self._payload_to_model(payload, WebhookSubscription)
        return subscription

    @store_retry
    async def list_subscriptions(self, profile_id: str) -> list[WebhookSubscription]:
        """List all subscriptions of a profile.

        Args:
            profile_id: Owning profile.

        Returns:
            Active and inactive subscriptions, oldest first.
        """
        payloads = await self._scroll_all(
            "subscriptions",
            models.Filter(
                must=[
                    models.FieldCondition(
                        key="profile_id",
                        match=models.MatchValue(value=profile_id),
                    )
                ]
            ),
        )
        subscriptions = [self._payload_to_model(p, WebhookSubscription) for p in payloads]
        return sorted(subscriptions, key=lambda s: s.created_at)

    @store_retry
    async def list_subscriptions_for_event(
        self,
        profile_id: str,
        event_type: str,
    ) -> list[WebhookSubscription]:
        """List active subscriptions of a profile registered for an event type.

        Args:
            profile_id: Owning profile.
            event_type: Event type the subscription must be registered for.

        Returns:
            Matching active subscriptions.
        """
        scroll_filter: Filter = models.Filter(
            must=[
                models.FieldCondition(
                    key="profile_id",
                    match=models.MatchValue(value=profile_id),
                ),
                models.FieldCondition(
                    key="is_active",
                    match=models.MatchValue(value=True),
                ),
                # Matches when any element of the events array equals event_type
                models.FieldCondition(
                    key="events",
                    match=models.MatchValue(value=event_type),
                ),
            ]
        )
        payloads = await self._scroll_all("subscriptions", scroll_filter)
        subscriptions = [self._payload_to_model(p, WebhookSubscription) for p in payloads]
        return [s for s in subscriptions if s.subscribes_to(event_type)]
