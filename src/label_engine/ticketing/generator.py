"""Per-seat ticket data and QR images.

Each seat gets two codes: a human-readable ``TKT-XXXX-XXXX`` code that door
staff can type, and a UUID validation code embedded in the QR URL.
"""

import secrets
import string
import uuid
from dataclasses import dataclass
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from label_engine.catalog.models import EventModel
from label_engine.common.exceptions import RenderError
from label_engine.ticketing.models import TicketModel

TICKET_CODE_ALPHABET = string.digits + string.ascii_uppercase
TICKET_CODE_PREFIX = "TKT"


@dataclass
class PurchaseContext:
    """What the payment session tells us about a ticket order."""

    session_id: str
    customer_email: str
    customer_name: str
    quantity: int
    total_amount: float
    currency: str = "EUR"


def generate_ticket_code() -> str:
    """Return ``TKT-XXXX-XXXX`` with two random base36 groups."""
    groups = (
        "".join(secrets.choice(TICKET_CODE_ALPHABET) for _ in range(4))
        for _ in range(2)
    )
    return "-".join([TICKET_CODE_PREFIX, *groups])


def ticket_url(frontend_url: str, validation_code: str) -> str:
    return f"{frontend_url.rstrip('/')}/ticket/{validation_code}"


def render_qr_png(payload: str, box_size: int = 10, border: int = 2) -> bytes:
    """Encode ``payload`` as a PNG QR code, locally."""
    try:
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
        qr.add_data(payload)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white")
        buffer = BytesIO()
        image.save(buffer, format="PNG")
    except Exception as exc:
        raise RenderError(f"Could not render QR code: {exc}") from exc
    return buffer.getvalue()


def generate_ticket_data(
    event: EventModel,
    purchase: PurchaseContext,
    seat_index: int,
    frontend_url: str,
) -> TicketModel:
    """Build (but do not persist) the ticket for one seat of an order."""
    validation_code = str(uuid.uuid4())
    return TicketModel(
        event_id=event.id,
        purchase_id=purchase.session_id,
        ticket_number=seat_index,
        purchase_quantity=purchase.quantity,
        ticket_code=generate_ticket_code(),
        validation_code=validation_code,
        qr_url=ticket_url(frontend_url, validation_code),
        customer_email=purchase.customer_email,
        customer_name=purchase.customer_name,
        total_amount=purchase.total_amount,
        currency=purchase.currency.upper(),
        status="active",
        validated=False,
        validation_attempts=0,
    )


def generate_multiple_tickets(
    event: EventModel,
    purchase: PurchaseContext,
    frontend_url: str,
) -> list[TicketModel]:
    """One ticket per seat, numbered 1..quantity, with distinct codes."""
    if purchase.quantity < 1:
        raise ValueError("quantity must be at least 1")

    tickets: list[TicketModel] = []
    seen_codes: set[str] = set()
    for seat in range(1, purchase.quantity + 1):
        ticket = generate_ticket_data(event, purchase, seat, frontend_url)
        # Codes are random; regenerate on the rare in-order clash
        while ticket.ticket_code in seen_codes:
            ticket.ticket_code = generate_ticket_code()
        seen_codes.add(ticket.ticket_code)
        tickets.append(ticket)
    return tickets
