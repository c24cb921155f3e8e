"""FastAPI router for Herald API endpoints."""

from __future__ import annotations

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from herald import __version__
from herald.exceptions import AuthenticationError, ValidationError
from herald.models import DispatchSummary
from herald.service import HeraldService
from herald.webhooks import HUBSPOT_SIGNATURE_HEADER, verify_hubspot_signature

from .schemas import (
    CreateSubscriptionRequest,
    CreateSubscriptionResponse,
    HealthResponse,
    HeartbeatResponse,
    InboundResults,
    InboundWebhookResponse,
    SendEventRequest,
    SubscriptionListResponse,
    SubscriptionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Service instance (set by app lifespan)
_service: HeraldService | None = None


def set_service(service: HeraldService | None) -> None:
    """Set the global service instance."""
    global _service
    _service = service


async def get_service() -> HeraldService:
    """Dependency to get the HeraldService instance."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _service


ServiceDep = Annotated[HeraldService, Depends(get_service)]


@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check() -> HealthResponse:
    """Check service health."""
    if _service is None:
        return HealthResponse(status="unhealthy", version=__version__)
    return HealthResponse(
        status="healthy",
        version=__version__,
        storage_backend=_service.settings.storage_backend,
        monitor_state=_service.monitor.state.value,
    )


@router.post("/webhooks/send", response_model=DispatchSummary, tags=["webhooks"])
async def send_event(request: SendEventRequest, service: ServiceDep) -> DispatchSummary:
    """Deliver an event to every active subscriber of a profile.

    Delivery failures are reported per subscriber in the summary; the
    request itself succeeds once every delivery has finished.
    """
    return await service.send_event(
        profile_id=request.profile_id or "",
        event_type=request.event_type or "",
        data=request.data,
    )


@router.post(
    "/subscriptions",
    response_model=CreateSubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["subscriptions"],
)
async def create_subscription(
    request: CreateSubscriptionRequest, service: ServiceDep
) -> CreateSubscriptionResponse:
    """Register a webhook subscription.

    The secret is returned only in this response.
    """
    subscription = await service.register_subscription(
        profile_id=request.profile_id,
        url=request.url,
        events=request.events,
        secret=request.secret,
        description=request.description,
    )
    return CreateSubscriptionResponse.from_subscription(subscription)


@router.get(
    "/subscriptions/{subscription_id}",
    response_model=SubscriptionResponse,
    tags=["subscriptions"],
)
async def get_subscription(subscription_id: str, service: ServiceDep) -> SubscriptionResponse:
    subscription = await service.get_subscription(subscription_id)
    return SubscriptionResponse.from_subscription(subscription)


@router.get(
    "/profiles/{profile_id}/subscriptions",
    response_model=SubscriptionListResponse,
    tags=["subscriptions"],
)
async def list_subscriptions(profile_id: str, service: ServiceDep) -> SubscriptionListResponse:
    subscriptions = await service.list_subscriptions(profile_id)
    return SubscriptionListResponse(
        profile_id=profile_id,
        subscriptions=[SubscriptionResponse.from_subscription(s) for s in subscriptions],
        count=len(subscriptions),
    )


@router.post(
    "/subscriptions/{subscription_id}/reactivate",
    response_model=SubscriptionResponse,
    tags=["subscriptions"],
)
async def reactivate_subscription(
    subscription_id: str, service: ServiceDep
) -> SubscriptionResponse:
    """Re-enable an auto-disabled subscription and reset its failure count."""
    subscription = await service.reactivate_subscription(subscription_id)
    return SubscriptionResponse.from_subscription(subscription)


@router.get("/heartbeats/{source}", response_model=HeartbeatResponse, tags=["heartbeat"])
async def get_heartbeat(source: str, service: ServiceDep) -> HeartbeatResponse:
    heartbeat = await service.get_heartbeat(source)
    return HeartbeatResponse.from_heartbeat(heartbeat)


@router.post("/hubspot/webhook", response_model=InboundWebhookResponse, tags=["heartbeat"])
async def receive_hubspot_webhook(
    request: Request, service: ServiceDep
) -> InboundWebhookResponse:
    """Receive a batch of HubSpot webhook events.

    Verifies the v3 signature when a webhook secret is configured, then
    deduplicates the batch and refreshes the HubSpot heartbeat.
    """
    body = (await request.body()).decode("utf-8")

    secret = service.settings.hubspot_webhook_secret
    if secret:
        signature = request.headers.get(HUBSPOT_SIGNATURE_HEADER)
        uri = str(request.url)
        if not verify_hubspot_signature(request.method, uri, body, secret, signature):
            raise AuthenticationError("Invalid signature")

    try:
        events = json.loads(body)
    except json.JSONDecodeError as e:
        raise ValidationError("body", "Invalid JSON") from e
    if not isinstance(events, list):
        raise ValidationError("body", "Invalid payload format")

    result = await service.receive_hubspot_batch(events)
    return InboundWebhookResponse(ok=True, results=InboundResults(**result.model_dump()))
