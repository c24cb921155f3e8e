"""Webhook delivery with HMAC signatures and fixed-schedule retries.

Each matching subscription gets up to three signed POST attempts. Delays
between attempts follow a fixed schedule (1s, then 5s); each request is
cancelled after the per-request timeout. Any 2xx response is a success.
Outcomes are recorded on the subscription by the HealthTracker, which
disables subscribers that keep failing.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager, nullcontext
from typing import TYPE_CHECKING, Any

import httpx

from herald.exceptions import SigningError
from herald.models import DeliveryAttempt, DeliveryResult, DispatchSummary, EventEnvelope

from .health import DEFAULT_FAILURE_THRESHOLD, HealthTracker
from .signing import compute_signature

if TYPE_CHECKING:
    from herald.config import Settings
    from herald.models import WebhookSubscription
    from herald.storage import SubscriptionStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAYS: tuple[float, ...] = (1.0, 5.0, 15.0)
DEFAULT_USER_AGENT = "WisdomOS-Webhook/1.0"
ERROR_BODY_LIMIT = 200

SleepFn = Callable[[float], Awaitable[Any]]


def build_headers(envelope: EventEnvelope, signature: str, user_agent: str) -> dict[str, str]:
    """Build the outbound request headers for a signed envelope."""
    return {
        "Content-Type": "application/json",
        "X-Webhook-Signature": signature,
        "X-Webhook-Event": envelope.event_type,
        "X-Webhook-Timestamp": envelope.timestamp,
        "User-Agent": user_agent,
    }


class WebhookDispatcher:
    """Dispatches event envelopes to subscribed webhook endpoints.

    Handles:
    - Finding active subscriptions registered for the event type
    - Signing payloads with HMAC-SHA256
    - Delivering with bounded attempts and fixed retry delays
    - Recording success/failure on each subscription

    Example:
        ```python
        dispatcher = WebhookDispatcher(store)

        envelope = EventEnvelope.build("prof_123", "journal.created", {"id": "j_1"})
        summary = await dispatcher.dispatch(envelope)
        print(summary.delivered, summary.failed)
        ```
    """

    def __init__(
        self,
        store: SubscriptionStore,
        tracker: HealthTracker | None = None,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        retry_jitter: float = 0.0,
        max_concurrent: int | None = 10,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """Initialize the webhook dispatcher.

        Args:
            store: Subscription store used for lookup and bookkeeping.
            tracker: Health tracker. Created over store if None.
            timeout_seconds: Per-request timeout.
            max_attempts: Attempts per subscription per envelope.
            retry_delays: Seconds to wait after attempt N fails (index N-1).
            retry_jitter: Random extra delay as a fraction of each delay.
            max_concurrent: Maximum in-flight deliveries (None for unbounded).
            user_agent: User-Agent header value.
            client: Shared HTTP client. A client is created per dispatch if None.
            sleep: Coroutine used to wait between attempts.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if len(retry_delays) < max_attempts - 1:
            raise ValueError(f"retry_delays must cover {max_attempts - 1} retries")

        self._store = store
        self._tracker = tracker or HealthTracker(store, DEFAULT_FAILURE_THRESHOLD)
        self._timeout = timeout_seconds
        self._max_attempts = max_attempts
        self._retry_delays = tuple(retry_delays)
        self._retry_jitter = retry_jitter
        self._max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent) if max_concurrent else None
        self._user_agent = user_agent
        self._client = client
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        store: SubscriptionStore,
        settings: Settings,
        tracker: HealthTracker | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> WebhookDispatcher:
        """Create a dispatcher configured from Settings."""
        return cls(
            store,
            tracker or HealthTracker(store, settings.failure_threshold),
            timeout_seconds=settings.delivery_timeout_seconds,
            max_attempts=settings.delivery_max_attempts,
            retry_delays=settings.delivery_retry_delays,
            retry_jitter=settings.delivery_retry_jitter,
            max_concurrent=settings.delivery_max_concurrent,
            user_agent=settings.user_agent,
            client=client,
        )

    @property
    def tracker(self) -> HealthTracker:
        return self._tracker

    def retry_delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-indexed) attempt fails."""
        delay = self._retry_delays[attempt - 1]
        if self._retry_jitter:
            delay += random.uniform(0.0, delay * self._retry_jitter)
        return delay

    @asynccontextmanager
    async def _http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def dispatch(self, envelope: EventEnvelope) -> DispatchSummary:
        """Deliver an envelope to every matching active subscription.

        Deliveries run concurrently; there is no ordering across
        subscriptions. A profile with no matching subscriptions is not an
        error: the summary reports zero deliveries.

        Args:
            envelope: Envelope to deliver.

        Returns:
            Summary with one result per matching subscription.
        """
        subscriptions = await self._store.list_subscriptions_for_event(
            profile_id=envelope.profile_id,
            event_type=envelope.event_type,
        )

        if not subscriptions:
            logger.debug(
                "No webhooks subscribed to event %s for profile %s",
                envelope.event_type,
                envelope.profile_id,
            )
            return DispatchSummary(
                event_type=envelope.event_type,
                profile_id=envelope.profile_id,
                message="No active webhooks found for this event",
            )

        logger.info(
            "Processing webhook: %s for profile %s (%d subscribers)",
            envelope.event_type,
            envelope.profile_id,
            len(subscriptions),
        )

        payload = envelope.serialize()

        async with self._http_client() as client:
            outcomes = await asyncio.gather(
                *(self._deliver_bounded(client, s, envelope, payload) for s in subscriptions),
                return_exceptions=True,
            )

        results: list[DeliveryResult] = []
        for subscription, outcome in zip(subscriptions, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Webhook delivery to %s raised: %s",
                    subscription.id,
                    outcome,
                    exc_info=outcome,
                )
                results.append(
                    DeliveryResult(
                        subscription_id=subscription.id,
                        url=str(subscription.url),
                        success=False,
                        error=f"Unexpected error: {outcome}",
                    )
                )
            else:
                results.append(outcome)

        return DispatchSummary.from_results(envelope.event_type, envelope.profile_id, results)

    async def deliver(
        self,
        subscription: WebhookSubscription,
        envelope: EventEnvelope,
    ) -> DeliveryResult:
        """Deliver an envelope to a single subscription.

        Args:
            subscription: Target subscription.
            envelope: Envelope to deliver.

        Returns:
            Delivery result. Transient failures are reported, never raised.
        """
        async with self._http_client() as client:
            return await self._deliver_bounded(
                client, subscription, envelope, envelope.serialize()
            )

    async def _deliver_bounded(
        self,
        client: httpx.AsyncClient,
        subscription: WebhookSubscription,
        envelope: EventEnvelope,
        payload: str,
    ) -> DeliveryResult:
        async with self._semaphore or nullcontext():
            return await self._deliver(client, subscription, envelope, payload)

    async def _deliver(
        self,
        client: httpx.AsyncClient,
        subscription: WebhookSubscription,
        envelope: EventEnvelope,
        payload: str,
    ) -> DeliveryResult:
        url = str(subscription.url)

        if not subscription.is_active:
            logger.debug("Skipping inactive webhook subscription %s", subscription.id)
            return DeliveryResult(
                subscription_id=subscription.id,
                url=url,
                success=False,
                error="Subscription is inactive",
            )

        started = time.monotonic()

        try:
            signature = compute_signature(payload, subscription.secret)
        except SigningError as e:
            logger.error("Refusing unsigned delivery to %s: %s", subscription.id, e.message)
            _, disabled = await self._tracker.record_failure(subscription.id)
            return DeliveryResult(
                subscription_id=subscription.id,
                url=url,
                success=False,
                error=e.message,
                duration_ms=_elapsed_ms(started),
                subscription_disabled=disabled,
            )

        headers = build_headers(envelope, signature, self._user_agent)
        attempt_log: list[DeliveryAttempt] = []
        last_error: str | None = None

        for attempt_number in range(1, self._max_attempts + 1):
            logger.info(
                "Delivering webhook to %s (attempt %d/%d)",
                url,
                attempt_number,
                self._max_attempts,
            )
            attempt = await self._attempt(
                client, subscription.id, attempt_number, url, payload, headers
            )
            attempt_log.append(attempt)

            if attempt.succeeded:
                await self._tracker.record_success(subscription.id)
                logger.info(
                    "Webhook delivered: %s to %s (status %s, attempt %d)",
                    envelope.event_type,
                    url,
                    attempt.http_status,
                    attempt_number,
                )
                return DeliveryResult(
                    subscription_id=subscription.id,
                    url=url,
                    success=True,
                    status_code=attempt.http_status,
                    duration_ms=_elapsed_ms(started),
                    attempts=attempt_number,
                    attempt_log=attempt_log,
                )

            last_error = attempt.error
            logger.warning("Webhook delivery failed: %s", last_error)

            if attempt_number < self._max_attempts:
                await self._sleep(self.retry_delay(attempt_number))

        _, disabled = await self._tracker.record_failure(subscription.id)
        logger.warning(
            "Webhook max attempts exceeded: %s to %s after %d attempts",
            envelope.event_type,
            url,
            self._max_attempts,
        )
        return DeliveryResult(
            subscription_id=subscription.id,
            url=url,
            success=False,
            error=last_error,
            duration_ms=_elapsed_ms(started),
            attempts=self._max_attempts,
            attempt_log=attempt_log,
            subscription_disabled=disabled,
        )

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        subscription_id: str,
        attempt_number: int,
        url: str,
        payload: str,
        headers: dict[str, str],
    ) -> DeliveryAttempt:
        """Make one POST; never raises for transport failures."""
        attempt = DeliveryAttempt(subscription_id=subscription_id, attempt_number=attempt_number)
        started = time.monotonic()

        try:
            async with asyncio.timeout(self._timeout):
                response = await client.post(url, content=payload, headers=headers)
        except (TimeoutError, httpx.TimeoutException):
            attempt.error = f"Request timed out after {self._timeout:g}s"
        except httpx.HTTPError as e:
            attempt.error = str(e) or type(e).__name__
        else:
            attempt.http_status = response.status_code
            if response.is_success:
                attempt.succeeded = True
            else:
                attempt.error = f"HTTP {response.status_code}: {response.text[:ERROR_BODY_LIMIT]}"

        attempt.duration_ms = _elapsed_ms(started)
        return attempt


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


async def dispatch_webhook_event(
    store: SubscriptionStore,
    profile_id: str,
    event_type: str,
    data: Any = None,
    **dispatcher_options: Any,
) -> DispatchSummary:
    """Convenience function to build and dispatch an envelope.

    Args:
        store: Subscription store.
        profile_id: Profile the event belongs to.
        event_type: Type of event.
        data: Event-specific payload.
        **dispatcher_options: Passed to WebhookDispatcher.

    Returns:
        Dispatch summary.
    """
    envelope = EventEnvelope.build(profile_id, event_type, data)
    dispatcher = WebhookDispatcher(store, **dispatcher_options)
    return await dispatcher.dispatch(envelope)
