"""Fulfillment orchestrator: checkout creation and post-payment processing.

A completed payment is materialized exactly once. The first webhook delivery
for a session writes the order inside one transaction; replays find the rows
already there (or lose on a unique constraint) and are acknowledged as
duplicates. Documents and email happen after commit and are best effort:
failures there are recorded and alerted, never retried through the gateway.
"""

import enum
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from label_engine.alerts.service import AlertService
from label_engine.catalog.offers import LicenseOffer
from label_engine.catalog.service import CatalogService
from label_engine.checkout.gateway import GatewaySession, LineItem, PaymentGateway
from label_engine.checkout.minimums import meets_minimum, minimum_charge, to_minor_units
from label_engine.checkout.models import PurchaseModel
from label_engine.checkout.schemas import BeatCheckoutRequest, TicketCheckoutRequest
from label_engine.checkout.stripe_webhook import CompletedCheckout
from label_engine.common.config import LabelSettings
from label_engine.common.exceptions import (
    ClientInputError,
    FulfillmentError,
    NotFoundError,
    RenderError,
)
from label_engine.common.models import utcnow
from label_engine.delivery.email import EmailSender
from label_engine.licensing.models import IssuedLicenseModel
from label_engine.licensing.pdf import render_license_pdf
from label_engine.licensing.service import LicensingService
from label_engine.licensing.templates import validate_tier
from label_engine.ticketing.generator import PurchaseContext, generate_multiple_tickets
from label_engine.ticketing.pdf import render_combined_tickets_pdf
from label_engine.ticketing.service import TicketingService

logger = logging.getLogger(__name__)

# Gateway metadata values are capped at 500 characters
_METADATA_MAX = 200


class FulfillmentOutcome(str, enum.Enum):
    FULFILLED = "fulfilled"
    DUPLICATE = "duplicate"
    FAILED = "failed"


class FulfillmentService:
    """Creates checkout sessions and fulfills completed ones for beats and tickets."""

    def __init__(
        self,
        settings: LabelSettings,
        db,
        catalog: CatalogService,
        licensing: LicensingService,
        ticketing: TicketingService,
        email_sender: EmailSender,
        alerts: AlertService,
        gateway: PaymentGateway,
    ):
        self.settings = settings
        self.db = db
        self.catalog = catalog
        self.licensing = licensing
        self.ticketing = ticketing
        self.email_sender = email_sender
        self.alerts = alerts
        self.gateway = gateway

    # ── Checkout creation ──

    def _check_minimum(self, amount: float, currency: str) -> None:
        if not meets_minimum(amount, currency):
            raise ClientInputError(
                f"Total {amount:.2f} {currency} is below the minimum charge",
                code="BELOW_MINIMUM",
                detail={"minimum": str(minimum_charge(currency)), "currency": currency},
            )

    async def create_beat_checkout(self, request: BeatCheckoutRequest) -> GatewaySession:
        async with self.db.get_session() as session:
            beat = await self.catalog.get_beat(session, request.beat_id)
            if beat is None or not beat.active:
                raise NotFoundError("Beat not found", code="BEAT_NOT_FOUND")
            offer = self.catalog.get_offer(beat, request.license_id)
            if offer is None:
                raise NotFoundError(
                    "License not found for this beat",
                    code="LICENSE_NOT_FOUND",
                    detail={"available": [o.get("id") for o in beat.offers or []]},
                )
            beat_title, cover_url = beat.title, beat.cover_url

        validate_tier(offer.tier)
        currency = self.settings.default_currency
        self._check_minimum(offer.price, currency)

        frontend = self.settings.frontend_url
        return await self.gateway.create_checkout_session(
            LineItem(
                name=f"{beat_title} - {offer.name}",
                unit_amount=to_minor_units(offer.price, currency),
                currency=currency,
                quantity=1,
                description=offer.description or "Beat License",
                image_url=cover_url,
            ),
            customer_email=request.customer_email,
            success_url=f"{frontend}/beats?success=true&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{frontend}/beats?canceled=true",
            # Files and terms are re-read from the catalog at fulfillment time
            metadata={
                "product": "beat",
                "beatId": request.beat_id,
                "licenseId": request.license_id,
                "tier": offer.tier,
                "customerName": request.customer_name[:_METADATA_MAX],
            },
        )

    async def create_ticket_checkout(self, request: TicketCheckoutRequest) -> GatewaySession:
        async with self.db.get_session() as session:
            event = await self.catalog.get_event(session, request.event_id)
            if event is None:
                raise NotFoundError("Event not found", code="EVENT_NOT_FOUND")
            self.ticketing.ensure_on_sale(event, request.quantity)
            event_name, price, currency, img = (
                event.name, event.ticket_price, event.ticket_currency, event.img,
            )

        self._check_minimum(price * request.quantity, currency)

        frontend = self.settings.frontend_url
        return await self.gateway.create_checkout_session(
            LineItem(
                name=f"Entrada - {event_name}",
                unit_amount=to_minor_units(price, currency),
                currency=currency,
                quantity=request.quantity,
                description=f"{request.quantity} entrada(s) para {event_name}",
                image_url=img,
            ),
            customer_email=request.customer_email,
            success_url=f"{frontend}/events/{request.event_id}?success=true&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{frontend}/events/{request.event_id}?canceled=true",
            metadata={
                "product": "ticket",
                "eventId": request.event_id,
                "quantity": str(request.quantity),
                "customerName": request.customer_name[:_METADATA_MAX],
            },
        )

    # ── Webhook boundary ──

    async def process_beat_checkout(self, checkout: CompletedCheckout) -> FulfillmentOutcome:
        """Fulfill a beat session. Never raises; failures are recorded and alerted."""
        try:
            return await self.fulfill_beat(checkout)
        except FulfillmentError as e:
            await self.alerts.record_failure("beat", checkout.session_id, e.stage, e, checkout.metadata)
        except Exception as e:
            logger.exception("Beat fulfillment crashed", extra={"stripe_session_id": checkout.session_id})
            await self.alerts.record_failure("beat", checkout.session_id, "fulfillment", e, checkout.metadata)
        return FulfillmentOutcome.FAILED

    async def process_ticket_checkout(self, checkout: CompletedCheckout) -> FulfillmentOutcome:
        """Fulfill a ticket session. Never raises; failures are recorded and alerted."""
        try:
            return await self.fulfill_tickets(checkout)
        except FulfillmentError as e:
            await self.alerts.record_failure("ticket", checkout.session_id, e.stage, e, checkout.metadata)
        except Exception as e:
            logger.exception("Ticket fulfillment crashed", extra={"stripe_session_id": checkout.session_id})
            await self.alerts.record_failure("ticket", checkout.session_id, "fulfillment", e, checkout.metadata)
        return FulfillmentOutcome.FAILED

    async def _purchase_recorded(self, session_id: str) -> bool:
        async with self.db.get_session() as session:
            found = await session.execute(
                select(PurchaseModel.id).where(PurchaseModel.stripe_session_id == session_id)
            )
            return found.first() is not None

    async def _tickets_recorded(self, session_id: str) -> bool:
        async with self.db.get_session() as session:
            return await self.ticketing.has_tickets_for_purchase(session, session_id)

    # ── Beats ──

    async def fulfill_beat(self, checkout: CompletedCheckout) -> FulfillmentOutcome:
        session_id = checkout.session_id
        meta = checkout.metadata
        beat_id, offer_id = meta.get("beatId"), meta.get("licenseId")
        customer_name = meta.get("customerName") or checkout.customer_email
        if not session_id or not beat_id or not offer_id or not checkout.customer_email:
            raise FulfillmentError("Checkout session is missing beat metadata", stage="parse")

        if await self._purchase_recorded(session_id):
            logger.info("Duplicate beat webhook", extra={"stripe_session_id": session_id})
            return FulfillmentOutcome.DUPLICATE

        async with self.db.get_session() as session:
            beat = await self.catalog.get_beat(session, beat_id)
            if beat is None:
                raise FulfillmentError(f"Beat {beat_id} not found", stage="lookup")
            offer = self.catalog.get_offer(beat, offer_id)
            if offer is None:
                raise FulfillmentError(f"License {offer_id} not found in beat {beat_id}", stage="lookup")

        # Committed on its own: a failed issuance leaves a gap in the sequence
        issued_at = utcnow().replace(microsecond=0)
        async with self.db.get_session() as session:
            license_number = await self.licensing.reserve_license_number(session, issued_at.year)

        try:
            async with self.db.get_session() as session:
                purchase = PurchaseModel(
                    beat_id=beat.id,
                    license_id=offer.id,
                    tier=offer.tier,
                    customer_email=checkout.customer_email,
                    customer_name=customer_name,
                    amount=checkout.amount_total,
                    currency=checkout.currency,
                    stripe_session_id=session_id,
                    status="completed",
                )
                session.add(purchase)
                await session.flush()

                license = await self.licensing.issue_license(
                    session,
                    purchase,
                    beat,
                    offer.tier,
                    buyer_legal_name=customer_name,
                    buyer_email=checkout.customer_email,
                    amount=checkout.amount_total,
                    currency=checkout.currency,
                    license_number=license_number,
                    issued_at=issued_at,
                )
        except IntegrityError as e:
            if await self._purchase_recorded(session_id):
                logger.info("Duplicate beat webhook lost the insert race", extra={"stripe_session_id": session_id})
                return FulfillmentOutcome.DUPLICATE
            raise FulfillmentError(f"Could not store beat purchase: {e.orig}", stage="persist") from e

        logger.info(
            "Beat purchase fulfilled",
            extra={"stripe_session_id": session_id, "license_number": license.license_number},
        )
        await self._deliver_beat(checkout, customer_name, beat.title, offer, license)
        return FulfillmentOutcome.FULFILLED

    async def _deliver_beat(
        self,
        checkout: CompletedCheckout,
        customer_name: str,
        beat_title: str,
        offer: LicenseOffer,
        license: IssuedLicenseModel,
    ) -> None:
        pdf: Optional[bytes] = None
        try:
            pdf = await run_in_threadpool(render_license_pdf, license)
        except RenderError as e:
            await self.alerts.record_failure(
                "beat", checkout.session_id, "render", e, {"license_number": license.license_number}
            )

        sent = await self.email_sender.send_beat_delivery(
            to_email=checkout.customer_email,
            customer_name=customer_name,
            beat_title=beat_title,
            offer_name=offer.name,
            files=offer.delivered_files(),
            terms=offer.terms,
            license_number=license.license_number,
            verify_url=license.verify_url,
            license_pdf=pdf,
        )
        if not sent:
            logger.warning("Beat delivery email not sent", extra={"stripe_session_id": checkout.session_id})

    # ── Tickets ──

    async def fulfill_tickets(self, checkout: CompletedCheckout) -> FulfillmentOutcome:
        session_id = checkout.session_id
        meta = checkout.metadata
        event_id = meta.get("eventId")
        customer_name = meta.get("customerName") or checkout.customer_email
        try:
            quantity = int(meta.get("quantity", ""))
        except ValueError:
            quantity = 0
        if not session_id or not event_id or quantity < 1 or not checkout.customer_email:
            raise FulfillmentError("Checkout session is missing ticket metadata", stage="parse")

        try:
            async with self.db.get_session() as session:
                if await self.ticketing.has_tickets_for_purchase(session, session_id):
                    logger.info("Duplicate ticket webhook", extra={"stripe_session_id": session_id})
                    return FulfillmentOutcome.DUPLICATE

                event = await self.catalog.get_event(session, event_id)
                if event is None:
                    raise FulfillmentError(f"Event {event_id} not found", stage="lookup")

                tickets = generate_multiple_tickets(
                    event,
                    PurchaseContext(
                        session_id=session_id,
                        customer_email=checkout.customer_email,
                        customer_name=customer_name,
                        quantity=quantity,
                        total_amount=checkout.amount_total,
                        currency=checkout.currency,
                    ),
                    self.settings.frontend_url,
                )
                session.add_all(tickets)
                await session.flush()
                await self.ticketing.reserve_inventory(session, event.id, quantity)
        except IntegrityError as e:
            if await self._tickets_recorded(session_id):
                logger.info("Duplicate ticket webhook lost the insert race", extra={"stripe_session_id": session_id})
                return FulfillmentOutcome.DUPLICATE
            raise FulfillmentError(f"Could not store tickets: {e.orig}", stage="persist") from e

        logger.info(
            "Ticket purchase fulfilled",
            extra={"stripe_session_id": session_id, "event_id": event_id, "quantity": quantity},
        )
        await self._deliver_tickets(checkout, customer_name, event, tickets)
        return FulfillmentOutcome.FULFILLED

    async def _deliver_tickets(self, checkout: CompletedCheckout, customer_name: str, event, tickets) -> None:
        pdf: Optional[bytes] = None
        try:
            pdf = await run_in_threadpool(
                render_combined_tickets_pdf, tickets, event, self.settings.brand_name
            )
        except RenderError as e:
            await self.alerts.record_failure(
                "ticket", checkout.session_id, "render", e, {"event_id": event.id, "tickets": len(tickets)}
            )

        sent = await self.email_sender.send_ticket_bundle(
            to_email=checkout.customer_email,
            customer_name=customer_name,
            event_name=event.name,
            ticket_codes=[t.ticket_code for t in tickets],
            tickets_pdf=pdf,
            event_date=event.date.strftime("%d/%m/%Y %H:%M") if event.date else None,
            event_location=event.location,
        )
        if not sent:
            logger.warning("Ticket email not sent", extra={"stripe_session_id": checkout.session_id})
