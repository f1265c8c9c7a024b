"""Pydantic schemas for ticket endpoints."""

from datetime import datetime
from typing import Optional

from label_engine.catalog.models import EventModel
from label_engine.common.models import as_utc
from label_engine.common.schemas import CamelModel
from label_engine.ticketing.models import TicketModel


class EventInfo(CamelModel):
    id: str
    name: str
    date: Optional[datetime] = None
    location: str = ""
    img: Optional[str] = None

    @classmethod
    def from_model(cls, event: EventModel) -> "EventInfo":
        return cls(
            id=event.id,
            name=event.name,
            date=as_utc(event.date),
            location=event.location or "",
            img=event.img,
        )


class TicketInfo(CamelModel):
    """Shown to whoever scans the QR code."""

    ticket_code: str
    ticket_number: int
    purchase_quantity: int
    status: str
    validated: bool
    validated_at: Optional[datetime] = None
    customer_name: str
    event: Optional[EventInfo] = None


class TicketResponse(CamelModel):
    id: str
    ticket_code: str
    validation_code: str
    qr_url: str
    ticket_number: int
    purchase_quantity: int
    total_amount: float
    currency: str
    status: str
    validated: bool
    validated_at: Optional[datetime] = None
    purchase_date: datetime
    event: Optional[EventInfo] = None

    @classmethod
    def from_model(cls, ticket: TicketModel, event: Optional[EventModel]) -> "TicketResponse":
        return cls(
            id=ticket.id,
            ticket_code=ticket.ticket_code,
            validation_code=ticket.validation_code,
            qr_url=ticket.qr_url,
            ticket_number=ticket.ticket_number,
            purchase_quantity=ticket.purchase_quantity,
            total_amount=ticket.total_amount,
            currency=ticket.currency,
            status=ticket.status,
            validated=ticket.validated,
            validated_at=as_utc(ticket.validated_at),
            purchase_date=as_utc(ticket.created_at),
            event=EventInfo.from_model(event) if event else None,
        )


class EventSalesResponse(CamelModel):
    event_id: str
    event_name: str
    total_tickets: int
    available_tickets: int
    tickets_sold: int
    tickets_issued: int
    orders: int
    tickets_validated: int
    revenue: float
    currency: str
