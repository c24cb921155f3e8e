"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from herald.models import WebhookSubscription
from herald.storage import InMemoryHeartbeatStore, InMemorySubscriptionStore

# Add tests directory to path so helpers can be imported from conftest
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

Handler = Callable[[httpx.Request], httpx.Response]


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it handled."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


def make_client(handler: Handler) -> tuple[httpx.AsyncClient, RecordingTransport]:
    """Create an AsyncClient whose requests are answered by handler."""
    transport = RecordingTransport(handler)
    return httpx.AsyncClient(transport=transport), transport


def make_subscription(**overrides: Any) -> WebhookSubscription:
    """Create a subscription with sensible test defaults."""
    fields: dict[str, Any] = {
        "profile_id": "prof_1",
        "url": "https://example.com/hooks",
        "secret": "test_secret",
        "events": {"journal.created"},
    }
    fields.update(overrides)
    return WebhookSubscription(**fields)


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def subscription_store() -> InMemorySubscriptionStore:
    return InMemorySubscriptionStore()


@pytest.fixture
def heartbeat_store() -> InMemoryHeartbeatStore:
    return InMemoryHeartbeatStore()


@pytest.fixture
async def stored_subscription(
    subscription_store: InMemorySubscriptionStore,
) -> WebhookSubscription:
    """A saved, active subscription for prof_1 / journal.created."""
    subscription = make_subscription(id="whk_test1")
    await subscription_store.save_subscription(subscription)
    return subscription
