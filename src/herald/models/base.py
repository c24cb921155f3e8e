"""Shared helpers for Herald models."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4


def generate_id(prefix: str) -> str:
    """Generate a unique ID with the given prefix.

    Examples:
        generate_id("whk") -> "whk_a1b2c3d4e5f6"
    """
    return f"{prefix}_{uuid4().hex[:12]}"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def isoformat_ms(moment: datetime) -> str:
    """Format a datetime as ISO-8601 with millisecond precision and a Z suffix.

    Examples:
        isoformat_ms(datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=UTC))
            -> "2025-01-02T03:04:05.678Z"
    """
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
