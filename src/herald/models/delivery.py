"""Delivery attempt and result records.

These are transient: they are returned to the caller and logged, but only
the subscription health fields are persisted.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .base import utc_now


class DeliveryAttempt(BaseModel):
    """One HTTP POST to a subscriber."""

    model_config = ConfigDict(extra="forbid")

    subscription_id: str
    attempt_number: int = Field(ge=1, description="1-indexed attempt number")
    started_at: datetime = Field(default_factory=utc_now)
    succeeded: bool = False
    http_status: int | None = Field(default=None, description="HTTP status, if a response arrived")
    error: str | None = Field(default=None, description="Failure reason")
    duration_ms: int = Field(default=0, ge=0)


class DeliveryResult(BaseModel):
    """Outcome of delivering one envelope to one subscription.

    Attributes:
        subscription_id: Subscription the envelope was delivered to.
        url: Subscriber endpoint.
        success: Whether any attempt got a 2xx response.
        status_code: Status of the successful response.
        error: Last error message when all attempts failed.
        duration_ms: Wall time across all attempts and retry delays.
        attempts: Number of HTTP attempts made (0 if none were made).
        attempt_log: Per-attempt details.
        subscription_disabled: True if this failure auto-disabled the subscription.
    """

    model_config = ConfigDict(extra="forbid")

    subscription_id: str
    url: str
    success: bool
    status_code: int | None = None
    error: str | None = None
    duration_ms: int = Field(default=0, ge=0)
    attempts: int = Field(default=0, ge=0)
    attempt_log: list[DeliveryAttempt] = Field(default_factory=list)
    subscription_disabled: bool = False


class DispatchSummary(BaseModel):
    """Outcome of fanning one envelope out to all matching subscriptions."""

    model_config = ConfigDict(extra="forbid")

    success: bool = True
    event_type: str
    profile_id: str
    webhooks_total: int = Field(default=0, ge=0)
    delivered: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    results: list[DeliveryResult] = Field(default_factory=list)
    message: str | None = None

    @classmethod
    def from_results(
        cls, event_type: str, profile_id: str, results: list[DeliveryResult]
    ) -> "DispatchSummary":
        """Summarize per-subscription results."""
        delivered = sum(1 for r in results if r.success)
        return cls(
            event_type=event_type,
            profile_id=profile_id,
            webhooks_total=len(results),
            delivered=delivered,
            failed=len(results) - delivered,
            results=results,
        )


__all__ = ["DeliveryAttempt", "DeliveryResult", "DispatchSummary"]
