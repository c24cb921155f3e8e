"""Herald: signed webhook delivery and inbound webhook heartbeat monitoring.

Herald fans profile events out to subscriber endpoints as HMAC-signed
POSTs with bounded retries, tracks each subscriber's delivery health and
disables endpoints that keep failing. It also watches the heartbeat of
the inbound HubSpot webhook feed and re-subscribes when it goes quiet.

Quick Start:
    from herald.service import HeraldService

    async with HeraldService.create() as herald:
        subscription = await herald.register_subscription(
            profile_id="prof_123",
            url="https://example.com/hooks",
            events=["journal.created"],
        )
        summary = await herald.send_event(
            profile_id="prof_123",
            event_type="journal.created",
            data={"journal_id": "j_456"},
        )

Run the heartbeat monitor:
    python -m herald.heartbeat
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings, settings

# Exceptions
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    HeraldError,
    NotFoundError,
    SigningError,
    ValidationError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    logger,
    unbind_context,
)

# Models
from .models import (
    DeliveryResult,
    DispatchSummary,
    EventEnvelope,
    HealthCheckResult,
    Heartbeat,
    MonitorState,
    WebhookSubscription,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    "settings",
    # Exceptions
    "AuthenticationError",
    "ConfigurationError",
    "HeraldError",
    "NotFoundError",
    "SigningError",
    "ValidationError",
    # Logging
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "logger",
    "unbind_context",
    # Models
    "DeliveryResult",
    "DispatchSummary",
    "EventEnvelope",
    "HealthCheckResult",
    "Heartbeat",
    "MonitorState",
    "WebhookSubscription",
]
