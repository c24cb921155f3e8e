"""HMAC-SHA256 signing and verification for webhook payloads."""

from __future__ import annotations

import hashlib
import hmac

from herald.exceptions import SigningError

HUBSPOT_SIGNATURE_HEADER = "X-HubSpot-Signature-v3"


def compute_signature(payload: str, secret: str) -> str:
    """Compute the HMAC-SHA256 signature for a webhook payload.

    Args:
        payload: Serialized JSON payload to sign.
        secret: Per-subscriber shared secret.

    Returns:
        Lowercase hex digest, as sent in X-Webhook-Signature.

    Raises:
        SigningError: If the secret is empty. Payloads are never signed
            with an empty key.
    """
    if not secret or not secret.strip():
        raise SigningError("Cannot sign webhook payload: subscriber secret is empty")

    return hmac.new(
        key=secret.encode("utf-8"),
        msg=payload.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_signature(payload: str, secret: str, signature: str) -> bool:
    """Verify an X-Webhook-Signature value.

    Args:
        payload: Raw JSON body that was signed.
        secret: Shared secret.
        signature: Hex digest received with the request.

    Returns:
        True if the signature matches. Always False for an empty secret.
    """
    try:
        expected = compute_signature(payload, secret)
    except SigningError:
        return False
    return hmac.compare_digest(expected, signature.strip().lower())


def sign_hubspot_payload(method: str, uri: str, body: str, secret: str) -> str:
    """HubSpot v3 signature: "v3=" plus the hex HMAC-SHA256 of method + uri + body.

    Raises:
        SigningError: If the secret is empty.
    """
    if not secret:
        raise SigningError("Cannot sign HubSpot payload: webhook secret is empty")
    digest = hmac.new(
        key=secret.encode("utf-8"),
        msg=f"{method.upper()}{uri}{body}".encode(),
        digestmod=hashlib.sha256,
    ).hexdigest()
    return f"v3={digest}"


def verify_hubspot_signature(
    method: str,
    uri: str,
    body: str,
    secret: str,
    signature: str | None,
) -> bool:
    """Verify the X-HubSpot-Signature-v3 header on an inbound batch."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(sign_hubspot_payload(method, uri, body, secret), signature)
