"""Checkout-session and payment-webhook endpoints for beats and tickets."""

import json
import logging

from fastapi import APIRouter, Depends, Header, Request

from label_engine.checkout.schemas import (
    BeatCheckoutRequest,
    CheckoutSessionResponse,
    TicketCheckoutRequest,
    WebhookAck,
)
from label_engine.checkout.stripe_webhook import CompletedCheckout, parse_checkout_completed, verify_stripe_signature
from label_engine.common.config import get_settings
from label_engine.common.exceptions import ClientInputError, SignatureError, UpstreamUnavailableError
from label_engine.common.ratelimit import limit_checkout

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service():
    from label_engine.deps import get_fulfillment_service
    return get_fulfillment_service()


def _get_db():
    from label_engine.deps import get_db
    return get_db()


async def _read_completed_checkout(request: Request, signature: str, secret: str) -> CompletedCheckout | None:
    """Verify, parse and gate a webhook delivery.

    Returns None for events we acknowledge without acting on.
    """
    body = await request.body()
    settings = get_settings()

    if not verify_stripe_signature(body, signature, secret, tolerance=settings.stripe_webhook_tolerance):
        logger.warning("Invalid Stripe webhook signature", extra={"path": request.url.path})
        raise SignatureError()

    try:
        event_data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ClientInputError("Invalid JSON payload", code="INVALID_PAYLOAD")
    if not isinstance(event_data, dict):
        raise ClientInputError("Invalid JSON payload", code="INVALID_PAYLOAD")

    try:
        await _get_db().ping()
    except Exception as e:
        logger.error("Database unreachable while handling webhook: %s", e)
        raise UpstreamUnavailableError("Database unavailable", code="DATABASE_UNAVAILABLE") from e

    return parse_checkout_completed(event_data)


# ── Beats ──

@router.post(
    "/beats/checkout-session",
    response_model=CheckoutSessionResponse,
    response_model_by_alias=True,
    dependencies=[Depends(limit_checkout)],
)
async def create_beat_checkout_session(body: BeatCheckoutRequest):
    session = await _get_service().create_beat_checkout(body)
    return CheckoutSessionResponse(session_id=session.id, url=session.url)


@router.post("/beats/webhook", response_model=WebhookAck)
async def beat_webhook(
    request: Request,
    stripe_signature: str = Header("", alias="Stripe-Signature"),
):
    """Stripe webhook for beat purchases."""
    checkout = await _read_completed_checkout(
        request, stripe_signature, get_settings().stripe_webhook_secret_beats
    )
    if checkout is not None:
        outcome = await _get_service().process_beat_checkout(checkout)
        logger.info("Beat webhook handled", extra={"stripe_session_id": checkout.session_id, "outcome": outcome.value})
    return WebhookAck()


# ── Tickets ──

@router.post(
    "/tickets/checkout-session",
    response_model=CheckoutSessionResponse,
    response_model_by_alias=True,
    dependencies=[Depends(limit_checkout)],
)
async def create_ticket_checkout_session(body: TicketCheckoutRequest):
    session = await _get_service().create_ticket_checkout(body)
    return CheckoutSessionResponse(session_id=session.id, url=session.url)


@router.post("/tickets/webhook", response_model=WebhookAck)
async def ticket_webhook(
    request: Request,
    stripe_signature: str = Header("", alias="Stripe-Signature"),
):
    """Stripe webhook for ticket purchases."""
    checkout = await _read_completed_checkout(
        request, stripe_signature, get_settings().stripe_webhook_secret_tickets
    )
    if checkout is not None:
        outcome = await _get_service().process_ticket_checkout(checkout)
        logger.info("Ticket webhook handled", extra={"stripe_session_id": checkout.session_id, "outcome": outcome.value})
    return WebhookAck()
