"""Stripe webhook signature check and checkout.session.completed parsing."""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from label_engine.checkout.minimums import from_minor_units

logger = logging.getLogger(__name__)

COMPLETED_EVENT = "checkout.session.completed"


def verify_stripe_signature(
    payload: bytes,
    signature_header: str,
    webhook_secret: str,
    tolerance: int = 300,
    now: Optional[float] = None,
) -> bool:
    """Verify a Stripe webhook signature (v1 scheme).

    Stripe sends ``t=<timestamp>,v1=<signature>[,v1=<signature>...]``; the
    signature is HMAC-SHA256 over ``"{t}.{raw body}"``. Events older than
    ``tolerance`` seconds are rejected to limit replays.
    """
    if not signature_header or not webhook_secret:
        return False

    timestamp = ""
    signatures: list[str] = []
    for item in signature_header.split(","):
        key, _, value = item.partition("=")
        key = key.strip()
        if key == "t":
            timestamp = value.strip()
        elif key == "v1":
            signatures.append(value.strip())

    if not timestamp or not signatures:
        return False
    try:
        signed_at = int(timestamp)
    except ValueError:
        return False

    current = time.time() if now is None else now
    if tolerance and abs(current - signed_at) > tolerance:
        logger.warning("Stripe signature timestamp outside tolerance", extra={"signed_at": signed_at})
        return False

    signed_payload = f"{timestamp}.".encode() + payload
    computed = hmac.new(webhook_secret.encode(), signed_payload, hashlib.sha256).hexdigest()

    return any(hmac.compare_digest(computed, sig) for sig in signatures)


def sign_stripe_payload(payload: bytes, webhook_secret: str, timestamp: Optional[int] = None) -> str:
    """Build a ``Stripe-Signature`` header value for ``payload``.

    Used by the CLI replay helper and the test-suite.
    """
    ts = int(time.time()) if timestamp is None else timestamp
    sig = hmac.new(webhook_secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


@dataclass
class CompletedCheckout:
    """The fields fulfillment needs from a completed checkout session."""

    session_id: str
    customer_email: str
    amount_total: float  # major currency units
    currency: str
    metadata: dict[str, str] = field(default_factory=dict)


def parse_checkout_completed(event_data: dict[str, Any]) -> Optional[CompletedCheckout]:
    """Return the completed session, or None for any other event type."""
    event_type = event_data.get("type", "")
    if event_type != COMPLETED_EVENT:
        logger.debug("Ignoring Stripe event type: %s", event_type)
        return None

    session = event_data.get("data", {}).get("object", {}) or {}
    metadata = session.get("metadata") or {}
    customer_details = session.get("customer_details") or {}

    currency = (session.get("currency") or "eur").upper()

    return CompletedCheckout(
        session_id=session.get("id", ""),
        customer_email=session.get("customer_email") or customer_details.get("email", ""),
        amount_total=from_minor_units(session.get("amount_total") or 0, currency),
        currency=currency,
        metadata={k: str(v) for k, v in metadata.items()},
    )
