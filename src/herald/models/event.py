"""Event envelope sent to webhook subscribers."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .base import isoformat_ms, utc_now


class EventEnvelope(BaseModel):
    """Event payload delivered to every matching subscription.

    The envelope is immutable; one envelope fans out to many subscriptions
    and is serialized once so all of them receive identical bytes.

    Attributes:
        event_type: Event type (e.g. "journal.created").
        profile_id: Profile the event belongs to.
        data: Event-specific JSON payload.
        timestamp: ISO-8601 time the envelope was built.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    event_type: str = Field(min_length=1, description="Event type")
    profile_id: str = Field(min_length=1, description="Profile the event belongs to")
    data: Any = Field(default=None, description="Event-specific payload")
    timestamp: str = Field(
        default_factory=lambda: isoformat_ms(utc_now()),
        description="ISO-8601 timestamp",
    )

    @classmethod
    def build(cls, profile_id: str, event_type: str, data: Any = None) -> "EventEnvelope":
        """Build an envelope stamped with the current time."""
        return cls(event_type=event_type, profile_id=profile_id, data=data)

    def serialize(self) -> str:
        """Serialize to the JSON body that is signed and sent."""
        return json.dumps(
            {
                "event_type": self.event_type,
                "profile_id": self.profile_id,
                "data": self.data,
                "timestamp": self.timestamp,
            },
            separators=(",", ":"),
            default=str,
        )


__all__ = ["EventEnvelope"]
