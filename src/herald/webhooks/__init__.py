"""Outbound webhook delivery for Herald.

Provides HMAC-signed delivery with bounded retries and per-subscription
health tracking.

Example:
    ```python
    from herald.webhooks import WebhookDispatcher, dispatch_webhook_event

    # Using dispatcher directly
    dispatcher = WebhookDispatcher(store)
    await dispatcher.dispatch(envelope)

    # Using convenience function
    await dispatch_webhook_event(
        store,
        profile_id="prof_123",
        event_type="journal.created",
        data={"journal_id": "j_456"},
    )
    ```
"""

from .delivery import WebhookDispatcher, build_headers, dispatch_webhook_event
from .health import HealthTracker
from .signing import (
    HUBSPOT_SIGNATURE_HEADER,
    compute_signature,
    sign_hubspot_payload,
    verify_hubspot_signature,
    verify_signature,
)

__all__ = [
    "HUBSPOT_SIGNATURE_HEADER",
    "HealthTracker",
    "WebhookDispatcher",
    "build_headers",
    "compute_signature",
    "dispatch_webhook_event",
    "sign_hubspot_payload",
    "verify_hubspot_signature",
    "verify_signature",
]
