"""Heartbeat monitor for an inbound webhook source.

Every inbound HubSpot batch refreshes the source's heartbeat. The monitor
runs on an interval and drives a small state machine:

    uninitialized --first check--> healthy (status "initialized")
    healthy       --age <= stale threshold--> healthy
    healthy       --age > stale threshold--> stale --> reconnecting
    reconnecting  --self-test passes--> healthy (status "reconnected")
    reconnecting  --all attempts fail--> failed (status "failed")
    reconnecting  --no base URL or stop()--> stale (heartbeat untouched)

A failed source is retried on the next interval; the monitor never exits
because a check failed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

from herald.exceptions import HeraldError
from herald.logging import get_logger, log_context
from herald.models import HealthCheckResult, Heartbeat, MonitorState, utc_now

from .hubspot import HubSpotSubscriptionManager
from .notify import AlertNotifier

if TYPE_CHECKING:
    from herald.config import Settings
    from herald.storage import HeartbeatStore

logger = get_logger(__name__)

DEFAULT_SOURCE = "hubspot_webhook"
DEFAULT_RECONNECT_DELAYS: tuple[float, ...] = (60.0, 120.0, 240.0)


class HeartbeatMonitor:
    """Watches a heartbeat and reconnects the source when it goes stale.

    Example:
        ```python
        monitor = HeartbeatMonitor.from_settings(storage, settings)

        result = await monitor.check_health()  # one check
        await monitor.run()                    # check every interval until stop()
        ```
    """

    def __init__(
        self,
        store: HeartbeatStore,
        subscriptions: HubSpotSubscriptionManager,
        notifier: AlertNotifier | None = None,
        *,
        source: str = DEFAULT_SOURCE,
        stale_after_minutes: float = 15.0,
        interval_minutes: float = 5.0,
        max_attempts: int = 3,
        reconnect_delays: Sequence[float] = DEFAULT_RECONNECT_DELAYS,
        assume_healthy_without_self_test: bool = False,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if len(reconnect_delays) < max_attempts - 1:
            raise ValueError(f"reconnect_delays must cover {max_attempts - 1} retries")

        self._store = store
        self._subscriptions = subscriptions
        self._notifier = notifier or AlertNotifier()
        self._source = source
        self._stale_after = stale_after_minutes
        self._interval_seconds = interval_minutes * 60.0
        self._max_attempts = max_attempts
        self._reconnect_delays = tuple(reconnect_delays)
        self._assume_healthy = assume_healthy_without_self_test
        self._sleep = sleep
        self._clock = clock
        self._stopping = asyncio.Event()
        self.state = MonitorState.UNINITIALIZED

    @classmethod
    def from_settings(
        cls,
        store: HeartbeatStore,
        settings: Settings,
        subscriptions: HubSpotSubscriptionManager | None = None,
        notifier: AlertNotifier | None = None,
    ) -> HeartbeatMonitor:
        """Create a monitor configured from Settings."""
        return cls(
            store,
            subscriptions or HubSpotSubscriptionManager.from_settings(settings),
            notifier
            or AlertNotifier(settings.alert_webhook_url, settings.alert_timeout_seconds),
            source=settings.heartbeat_source,
            stale_after_minutes=settings.stale_threshold_minutes,
            interval_minutes=settings.heartbeat_interval_minutes,
            max_attempts=settings.reconnect_max_attempts,
            reconnect_delays=settings.reconnect_delays_seconds,
            assume_healthy_without_self_test=settings.assume_healthy_without_self_test,
        )

    @property
    def source(self) -> str:
        return self._source

    @property
    def notifier(self) -> AlertNotifier:
        return self._notifier

    async def record_heartbeat(self, count: int = 0) -> Heartbeat:
        """Record that the source delivered a batch just now.

        Called by the inbound webhook receiver for every batch.
        """
        heartbeat = Heartbeat(
            source=self._source,
            timestamp=self._clock(),
            count=count,
            status="healthy",
        )
        await self._store.save_heartbeat(heartbeat)
        logger.debug("Heartbeat recorded", source=self._source, count=count)
        return heartbeat

    async def check_health(self) -> HealthCheckResult:
        """Check the heartbeat age once and react to it."""
        with log_context(source=self._source):
            last = await self._store.get_last_heartbeat(self._source)

            if last is None:
                logger.warning("No heartbeat found, assuming first run")
                return await self.initialize()

            age = last.age_minutes(self._clock())
            logger.info(
                "Checking webhook health",
                last_heartbeat=last.timestamp.isoformat(),
                age_minutes=round(age, 1),
                stale_threshold_minutes=self._stale_after,
            )

            if age > self._stale_after:
                logger.error("Webhook is stale", age_minutes=round(age, 1))
                self.state = MonitorState.STALE
                return await self.handle_stale(last, age)

            await self._store.save_heartbeat(last.model_copy(update={"status": "healthy"}))
            self.state = MonitorState.HEALTHY
            logger.info("Webhook is healthy")
            return HealthCheckResult(
                source=self._source,
                state=self.state,
                status="healthy",
                age_minutes=age,
            )

    async def initialize(self) -> HealthCheckResult:
        """Write the first heartbeat and make sure the source is subscribed.

        A subscription setup failure is logged; the next stale check will
        retry it.
        """
        await self._store.save_heartbeat(
            Heartbeat(source=self._source, timestamp=self._clock(), count=0, status="initialized")
        )
        self.state = MonitorState.HEALTHY

        try:
            await self._subscriptions.ensure_subscriptions()
        except (HeraldError, httpx.HTTPError) as e:
            logger.error("Failed to initialize webhook subscriptions", error=str(e))
        else:
            logger.info("Webhook subscriptions initialized")

        return HealthCheckResult(source=self._source, state=self.state, status="initialized")

    async def handle_stale(
        self, last: Heartbeat, age_minutes: float | None = None
    ) -> HealthCheckResult:
        """Re-subscribe and self-test until the source is verified or attempts run out.

        Without a base URL neither step can run, so no attempt is made and the
        source is reported as unverified. stop() ends the loop at the next wait.

        Args:
            last: The stale heartbeat.
            age_minutes: Age of the stale heartbeat, for reporting.
        """
        self.state = MonitorState.RECONNECTING
        if self._subscriptions.target_url is None:
            return await self._without_self_test(age_minutes)

        logger.info("Attempting to reconnect webhooks")
        for attempt in range(1, self._max_attempts + 1):
            logger.info("Reconnect attempt", attempt=attempt, max_attempts=self._max_attempts)
            try:
                await self._subscriptions.ensure_subscriptions()
                verified = await self._subscriptions.self_test()
            except (HeraldError, httpx.HTTPError) as e:
                logger.error("Reconnection attempt failed", attempt=attempt, error=str(e))
            else:
                if verified:
                    return await self._reconnected(attempt, age_minutes, verified)
                logger.error(
                    "Reconnection attempt failed", attempt=attempt, error="self-test failed"
                )

            if attempt < self._max_attempts:
                delay = self._reconnect_delays[attempt - 1]
                logger.info("Waiting before next reconnect attempt", delay_seconds=delay)
                if await self._wait_unless_stopped(delay):
                    return self._abandoned(attempt, age_minutes)

        return await self._failed(last, age_minutes)

    async def _reconnected(
        self, attempt: int, age_minutes: float | None, verified: bool | None
    ) -> HealthCheckResult:
        await self._store.save_heartbeat(
            Heartbeat(source=self._source, timestamp=self._clock(), count=0, status="reconnected")
        )
        self.state = MonitorState.HEALTHY
        logger.info("Webhooks reconnected", attempts=attempt)
        await self._notifier.notify(
            "success",
            "HubSpot webhooks reconnected",
            "Webhooks were stale and have been successfully reconnected "
            f"after {attempt} attempt(s).",
        )
        return HealthCheckResult(
            source=self._source,
            state=self.state,
            status="reconnected",
            age_minutes=age_minutes,
            reconnect_attempts=attempt,
            verified=verified,
        )

    async def _without_self_test(self, age_minutes: float | None) -> HealthCheckResult:
        if self._assume_healthy:
            logger.warning("Base URL not configured, assuming reconnect succeeded")
            return await self._reconnected(1, age_minutes, None)

        logger.warning("Base URL not configured, cannot re-subscribe or self-test")
        # Heartbeat left untouched: the source stays stale until a batch arrives
        self.state = MonitorState.STALE
        await self._notifier.notify(
            "warning",
            "HubSpot webhooks stale, reconnect not verified",
            f"Webhooks have been stale for over {self._stale_after:g} minutes. No base URL "
            "is configured, so subscriptions cannot be renewed and the endpoint "
            "self-test cannot run.",
        )
        return HealthCheckResult(
            source=self._source,
            state=self.state,
            age_minutes=age_minutes,
            reconnect_attempts=0,
        )

    async def _wait_unless_stopped(self, delay: float) -> bool:
        """Sleep between reconnect attempts. True when stop() cut the wait short."""
        if self._stopping.is_set():
            return True
        sleeper = asyncio.ensure_future(self._sleep(delay))
        stopper = asyncio.ensure_future(self._stopping.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            stopper.cancel()
        return self._stopping.is_set()

    def _abandoned(self, attempt: int, age_minutes: float | None) -> HealthCheckResult:
        logger.info("Reconnect abandoned, monitor stopping", attempts=attempt)
        self.state = MonitorState.STALE
        return HealthCheckResult(
            source=self._source,
            state=self.state,
            age_minutes=age_minutes,
            reconnect_attempts=attempt,
        )

    async def _failed(self, last: Heartbeat, age_minutes: float | None) -> HealthCheckResult:
        logger.error("Failed to reconnect webhooks after all attempts")
        await self._notifier.notify(
            "error",
            "HubSpot webhook reconnection failed",
            f"Webhooks have been stale for over {self._stale_after:g} minutes and "
            f"reconnection failed after {self._max_attempts} attempts. "
            "Manual intervention required.",
        )
        # Last real timestamp kept; the next check still sees the source as stale
        await self._store.save_heartbeat(last.model_copy(update={"status": "failed"}))
        self.state = MonitorState.FAILED
        return HealthCheckResult(
            source=self._source,
            state=self.state,
            status="failed",
            age_minutes=age_minutes,
            reconnect_attempts=self._max_attempts,
            verified=False,
        )

    async def run(self) -> None:
        """Check immediately, then every interval until stop() is called."""
        self._stopping.clear()
        logger.info(
            "Heartbeat monitor running",
            source=self._source,
            interval_minutes=self._interval_seconds / 60.0,
            stale_threshold_minutes=self._stale_after,
        )

        while not self._stopping.is_set():
            try:
                await self.check_health()
            except Exception:
                logger.exception("Heartbeat check failed", source=self._source)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval_seconds)
            except TimeoutError:
                pass

        logger.info("Heartbeat monitor stopped", source=self._source)

    def stop(self) -> None:
        """Ask run() to return. A reconnect wait in progress ends immediately."""
        self._stopping.set()
