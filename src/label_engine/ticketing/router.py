"""Ticket holder and sales endpoints."""

from fastapi import APIRouter, Depends, Response
from starlette.concurrency import run_in_threadpool

from label_engine.common.config import get_settings
from label_engine.common.exceptions import ClientInputError, ForbiddenError, NotFoundError
from label_engine.common.models import as_utc
from label_engine.common.security import Identity, get_identity, require_admin
from label_engine.ticketing.pdf import render_ticket_pdf
from label_engine.ticketing.schemas import EventInfo, EventSalesResponse, TicketInfo, TicketResponse

router = APIRouter(prefix="/tickets")


def _get_services():
    from label_engine.deps import get_catalog_service, get_ticketing_service
    return get_catalog_service(), get_ticketing_service()


def _get_db():
    from label_engine.deps import get_db
    return get_db()


@router.get("/info/{validation_code}", response_model=TicketInfo)
async def ticket_info(validation_code: str):
    catalog, ticketing = _get_services()
    db = _get_db()
    async with db.get_session() as session:
        ticket = await ticketing.get_by_validation_code(session, validation_code)
        if ticket is None:
            raise NotFoundError("Ticket not found", code="TICKET_NOT_FOUND")
        event = await catalog.get_event(session, ticket.event_id)
        return TicketInfo(
            ticket_code=ticket.ticket_code,
            ticket_number=ticket.ticket_number,
            purchase_quantity=ticket.purchase_quantity,
            status=ticket.status,
            validated=ticket.validated,
            validated_at=as_utc(ticket.validated_at),
            customer_name=ticket.customer_name,
            event=EventInfo.from_model(event) if event else None,
        )


@router.get("/download/{ticket_id}")
async def download_ticket(ticket_id: str, identity: Identity = Depends(get_identity)):
    catalog, ticketing = _get_services()
    db = _get_db()
    async with db.get_session() as session:
        ticket = await ticketing.get_ticket(session, ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found", code="TICKET_NOT_FOUND")
        event = await catalog.get_event(session, ticket.event_id)

    settings = get_settings()
    is_admin = identity.has_any_role(settings.admin_roles)
    if not is_admin and (identity.email or "").lower() != ticket.customer_email.lower():
        raise ForbiddenError("This ticket belongs to another buyer")
    if event is None:
        raise NotFoundError("Event not found", code="EVENT_NOT_FOUND")

    pdf = await run_in_threadpool(render_ticket_pdf, ticket, event, settings.brand_name)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="entrada-{ticket.ticket_code}.pdf"'},
    )


@router.get("/mine", response_model=list[TicketResponse])
async def my_tickets(identity: Identity = Depends(get_identity)):
    if not identity.email:
        raise ClientInputError("Token carries no email claim", code="EMAIL_REQUIRED")

    catalog, ticketing = _get_services()
    db = _get_db()
    async with db.get_session() as session:
        tickets = await ticketing.list_tickets_for_buyer(session, identity.email)
        events = {}
        for ticket in tickets:
            if ticket.event_id not in events:
                events[ticket.event_id] = await catalog.get_event(session, ticket.event_id)
        return [TicketResponse.from_model(t, events[t.event_id]) for t in tickets]


@router.get("/events/{event_id}/sales", response_model=EventSalesResponse)
async def event_sales(event_id: str, _=Depends(require_admin)):
    _, ticketing = _get_services()
    db = _get_db()
    async with db.get_session() as session:
        return EventSalesResponse(**await ticketing.event_sales(session, event_id))
