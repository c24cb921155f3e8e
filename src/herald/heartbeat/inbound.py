"""Processing of inbound HubSpot webhook batches.

HubSpot delivers events in batches and may redeliver an event it already
sent. Event ids are remembered in a bounded cache so a redelivery is
counted as skipped rather than processed twice.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field

from herald.logging import get_logger

logger = get_logger(__name__)

# HubSpot object types we act on. Anything else (e.g. heartbeat.test) is skipped.
KNOWN_OBJECT_TYPES = frozenset({"contact", "company", "deal", "ticket"})


class InboundBatchResult(BaseModel):
    """Counts for one inbound batch."""

    processed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)


class ProcessedEventCache:
    """Insertion-ordered set of recently processed event ids.

    When the cache grows past max_size, the evict_count oldest ids are
    dropped in one go.
    """

    def __init__(self, max_size: int = 10_000, evict_count: int = 1_000) -> None:
        if max_size < 1 or evict_count < 1:
            raise ValueError("max_size and evict_count must be positive")
        self._max_size = max_size
        self._evict_count = evict_count
        self._ids: dict[str, None] = {}

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, event_id: str) -> None:
        self._ids[event_id] = None
        if len(self._ids) > self._max_size:
            for oldest in list(self._ids)[: self._evict_count]:
                del self._ids[oldest]


def object_type_of(subscription_type: str) -> str:
    """Object type prefix of a subscription type ("deal.creation" -> "deal")."""
    return subscription_type.split(".", 1)[0]


def process_batch(events: Iterable[Any], seen: ProcessedEventCache) -> InboundBatchResult:
    """Count and deduplicate one inbound batch.

    Events without an eventId or subscriptionType are counted as errors
    and not remembered.
    """
    result = InboundBatchResult()
    for event in events:
        if not isinstance(event, dict):
            result.errors += 1
            continue
        event_id = event.get("eventId")
        subscription_type = event.get("subscriptionType")
        if event_id is None or not isinstance(subscription_type, str):
            logger.warning("Malformed HubSpot event", event=event)
            result.errors += 1
            continue

        event_id = str(event_id)
        if event_id in seen:
            result.skipped += 1
            continue

        if object_type_of(subscription_type) in KNOWN_OBJECT_TYPES:
            result.processed += 1
        else:
            logger.debug("Skipping HubSpot event", subscription_type=subscription_type)
            result.skipped += 1
        seen.add(event_id)

    return result
