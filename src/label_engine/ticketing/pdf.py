"""Ticket PDFs drawn with the reportlab canvas, one A4 page per seat."""

import logging
from io import BytesIO
from typing import Iterable

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from label_engine.catalog.models import EventModel
from label_engine.common.exceptions import RenderError
from label_engine.common.models import as_utc
from label_engine.ticketing.generator import render_qr_png
from label_engine.ticketing.models import TicketModel

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 50

TERMS = (
    "Este ticket es válido para una sola entrada al evento. No es reembolsable. "
    "Muestra este código QR en la entrada del evento para su validación. "
    "Conserva este ticket hasta después del evento. "
    "Cada entrada tiene un código QR único e intransferible."
)

_WEEKDAYS = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")
_MONTHS = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)


def _event_when(event: EventModel) -> tuple[str, str]:
    date = as_utc(event.date)
    if date is None:
        return "Por anunciar", "--:--"
    day = f"{_WEEKDAYS[date.weekday()]}, {date.day} de {_MONTHS[date.month - 1]} de {date.year}"
    return day, f"{date:%H:%M}"


def _draw_ticket_page(c: canvas.Canvas, ticket: TicketModel, event: EventModel, brand: str) -> None:
    center = PAGE_WIDTH / 2
    top = PAGE_HEIGHT

    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 26)
    c.drawCentredString(center, top - 70, brand)
    c.setFont("Helvetica", 10)
    c.setFillColor(colors.HexColor("#666666"))
    c.drawCentredString(center, top - 90, f"Entrada {ticket.ticket_number} de {ticket.purchase_quantity}")

    c.setStrokeColor(colors.HexColor("#CCCCCC"))
    c.line(MARGIN, top - 105, PAGE_WIDTH - MARGIN, top - 105)

    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 22)
    c.drawCentredString(center, top - 145, event.name)

    day, time_of_day = _event_when(event)
    c.setFont("Helvetica", 13)
    c.setFillColor(colors.HexColor("#333333"))
    c.drawString(MARGIN, top - 185, f"Fecha: {day}")
    c.drawString(MARGIN, top - 205, f"Hora: {time_of_day}")
    c.drawString(MARGIN, top - 225, f"Lugar: {event.location or ''}")

    qr_size = 200
    qr = ImageReader(BytesIO(render_qr_png(ticket.qr_url)))
    c.drawImage(qr, center - qr_size / 2, top - 250 - qr_size, width=qr_size, height=qr_size)

    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 18)
    c.drawCentredString(center, top - 480, f"Código: {ticket.ticket_code}")
    c.setFont("Helvetica", 11)
    c.setFillColor(colors.HexColor("#666666"))
    c.drawCentredString(center, top - 500, f"ID: {ticket.validation_code}")

    c.setStrokeColor(colors.HexColor("#CCCCCC"))
    c.line(MARGIN, top - 520, PAGE_WIDTH - MARGIN, top - 520)

    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 13)
    c.drawString(MARGIN, top - 545, "Información de la compra")
    c.setFont("Helvetica", 11)
    c.setFillColor(colors.HexColor("#333333"))
    c.drawString(MARGIN, top - 565, f"Nombre: {ticket.customer_name}")
    c.drawString(MARGIN, top - 582, f"Email: {ticket.customer_email}")
    c.drawString(MARGIN, top - 599, f"Entrada: {ticket.ticket_number} de {ticket.purchase_quantity}")
    c.drawString(MARGIN, top - 616, f"Total pagado: {ticket.total_amount:.2f} {ticket.currency}")

    c.setFont("Helvetica", 8)
    c.setFillColor(colors.HexColor("#999999"))
    y = top - 650
    for line in simpleSplit(TERMS, "Helvetica", 8, PAGE_WIDTH - 2 * MARGIN):
        c.drawString(MARGIN, y, line)
        y -= 11

    c.setFillColor(colors.HexColor("#CCCCCC"))
    c.drawCentredString(center, 40, f"© {brand} - Todos los derechos reservados")


def _render(tickets: Iterable[TicketModel], event: EventModel, brand: str, title: str) -> bytes:
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4, invariant=1, pageCompression=0)
    c.setTitle(title)
    c.setAuthor(brand)

    pages = 0
    for ticket in tickets:
        _draw_ticket_page(c, ticket, event, brand)
        c.showPage()
        pages += 1
    if pages == 0:
        raise ValueError("no tickets to render")

    c.save()
    return buffer.getvalue()


def render_combined_tickets_pdf(
    tickets: list[TicketModel],
    event: EventModel,
    brand: str = "OTHER PEOPLE RECORDS",
) -> bytes:
    """All seats of an order in one document, one page each."""
    ordered = sorted(tickets, key=lambda t: t.ticket_number)
    try:
        return _render(ordered, event, brand, f"Entradas - {event.name}")
    except Exception as exc:
        logger.exception("Ticket PDF rendering failed", extra={"event_id": event.id, "tickets": len(tickets)})
        raise RenderError(f"Could not render tickets for event {event.id}: {exc}") from exc


def render_ticket_pdf(ticket: TicketModel, event: EventModel, brand: str = "OTHER PEOPLE RECORDS") -> bytes:
    try:
        return _render([ticket], event, brand, f"Ticket - {event.name}")
    except Exception as exc:
        logger.exception("Ticket PDF rendering failed", extra={"ticket_code": ticket.ticket_code})
        raise RenderError(f"Could not render ticket {ticket.ticket_code}: {exc}") from exc
