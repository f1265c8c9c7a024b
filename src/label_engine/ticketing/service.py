"""Ticketing service: inventory, lookups and sales reporting."""

import logging
from datetime import datetime

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.catalog.models import EventModel
from label_engine.common.config import LabelSettings
from label_engine.common.exceptions import ClientInputError, InventoryError, NotFoundError
from label_engine.common.models import as_utc, utcnow
from label_engine.ticketing.models import TicketModel

logger = logging.getLogger(__name__)


class TicketingService:
    """Event inventory and issued-ticket queries."""

    def __init__(self, settings: LabelSettings):
        self.settings = settings

    # ── Inventory ──

    def ensure_on_sale(self, event: EventModel, quantity: int, now: datetime | None = None) -> None:
        """Raise ClientInputError unless ``quantity`` seats can be sold right now."""
        now = now or utcnow()
        if quantity < 1:
            raise ClientInputError("Quantity must be at least 1")
        if not event.tickets_enabled:
            raise ClientInputError("Ticket sales are not enabled for this event", code="TICKETS_DISABLED")

        sale_start = as_utc(event.sale_start_date)
        sale_end = as_utc(event.sale_end_date)
        if sale_start and now < sale_start:
            raise ClientInputError("Ticket sales have not started yet", code="SALE_NOT_STARTED")
        if sale_end and now > sale_end:
            raise ClientInputError("Ticket sales have ended", code="SALE_ENDED")

        if event.available_tickets < quantity:
            raise ClientInputError(
                f"Only {event.available_tickets} tickets available",
                code="INSUFFICIENT_INVENTORY",
                detail={"available": event.available_tickets},
            )

    async def reserve_inventory(self, session: AsyncSession, event_id: str, quantity: int) -> None:
        """Move ``quantity`` seats from available to sold in one conditional UPDATE."""
        result = await session.execute(
            update(EventModel)
            .where(EventModel.id == event_id, EventModel.available_tickets >= quantity)
            .values(
                available_tickets=EventModel.available_tickets - quantity,
                tickets_sold=EventModel.tickets_sold + quantity,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InventoryError(f"Event {event_id} cannot cover {quantity} tickets")
        logger.info("Inventory reserved", extra={"event_id": event_id, "quantity": quantity})

    # ── Lookups ──

    async def get_ticket(self, session: AsyncSession, ticket_id: str) -> TicketModel | None:
        result = await session.execute(select(TicketModel).where(TicketModel.id == ticket_id))
        return result.scalar_one_or_none()

    async def get_by_validation_code(self, session: AsyncSession, validation_code: str) -> TicketModel | None:
        result = await session.execute(
            select(TicketModel).where(TicketModel.validation_code == validation_code)
        )
        return result.scalar_one_or_none()

    async def find_ticket(self, session: AsyncSession, code: str) -> TicketModel | None:
        """Match either the QR validation code or the printed ticket code."""
        result = await session.execute(
            select(TicketModel).where(
                or_(TicketModel.validation_code == code, TicketModel.ticket_code == code.upper())
            )
        )
        return result.scalar_one_or_none()

    async def tickets_for_purchase(self, session: AsyncSession, purchase_id: str) -> list[TicketModel]:
        result = await session.execute(
            select(TicketModel)
            .where(TicketModel.purchase_id == purchase_id)
            .order_by(TicketModel.ticket_number)
        )
        return list(result.scalars().all())

    async def has_tickets_for_purchase(self, session: AsyncSession, purchase_id: str) -> bool:
        result = await session.execute(
            select(TicketModel.id).where(TicketModel.purchase_id == purchase_id).limit(1)
        )
        return result.first() is not None

    async def list_tickets_for_buyer(self, session: AsyncSession, email: str) -> list[TicketModel]:
        result = await session.execute(
            select(TicketModel)
            .where(func.lower(TicketModel.customer_email) == email.lower())
            .order_by(TicketModel.created_at.desc(), TicketModel.ticket_number)
        )
        return list(result.scalars().all())

    # ── Reporting ──

    async def event_sales(self, session: AsyncSession, event_id: str) -> dict:
        event = (
            await session.execute(select(EventModel).where(EventModel.id == event_id))
        ).scalar_one_or_none()
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")

        row = (
            await session.execute(
                select(
                    func.count(TicketModel.id),
                    func.count(func.distinct(TicketModel.purchase_id)),
                    # Order totals are repeated on every seat
                    func.coalesce(func.sum(TicketModel.total_amount / TicketModel.purchase_quantity), 0),
                    func.coalesce(func.sum(case((TicketModel.validated.is_(True), 1), else_=0)), 0),
                ).where(TicketModel.event_id == event_id)
            )
        ).one()
        issued, orders, revenue, validated = row

        return {
            "event_id": event.id,
            "event_name": event.name,
            "total_tickets": event.total_tickets,
            "available_tickets": event.available_tickets,
            "tickets_sold": event.tickets_sold,
            "tickets_issued": issued,
            "orders": orders,
            "tickets_validated": int(validated),
            "revenue": round(float(revenue), 2),
            "currency": event.ticket_currency,
        }
