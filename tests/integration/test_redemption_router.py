"""Integration tests for door validation and public verification."""

import pytest
from sqlalchemy import select

from label_engine.ticketing.models import TicketModel

TICKETS_SECRET = "whsec_test_tickets_secret"


@pytest.fixture
async def tickets(client, app_db, seed_event, signed_webhook, completed_event):
    """Two seats bought through the ticket webhook."""
    event = await seed_event(app_db)
    body, headers = signed_webhook(
        completed_event("cs_door", "fan@example.com", 3000,
                        {"eventId": event.id, "quantity": "2", "customerName": "Fan Uno"}),
        TICKETS_SECRET,
    )
    resp = await client.post("/tickets/webhook", content=body, headers=headers)
    assert resp.status_code == 200
    async with app_db.get_session() as session:
        return list((await session.execute(
            select(TicketModel).order_by(TicketModel.ticket_number)
        )).scalars().all())


class TestValidateAuth:
    async def test_requires_token(self, client, tickets):
        resp = await client.post(f"/validate/{tickets[0].validation_code}")
        assert resp.status_code == 401
        assert resp.json()["code"] == "UNAUTHENTICATED"

    async def test_rejects_bad_token(self, client, tickets):
        resp = await client.post(
            f"/validate/{tickets[0].validation_code}", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert resp.status_code == 401

    async def test_buyer_is_forbidden(self, client, tickets, buyer_headers):
        resp = await client.post(f"/validate/{tickets[0].validation_code}", headers=buyer_headers)
        assert resp.status_code == 403
        assert resp.json()["code"] == "FORBIDDEN"


class TestValidateTicket:
    async def test_staff_validates_once(self, client, tickets, staff_headers, admin_headers):
        code = tickets[0].validation_code

        first = await client.post(f"/validate/{code}", headers=staff_headers)
        assert first.status_code == 200
        data = first.json()
        assert data["success"] is True
        assert data["type"] == "ticket"
        assert data["code"] == tickets[0].ticket_code
        assert data["validatedBy"] == "door@otprecords.com"

        second = await client.post(f"/validate/{code}", headers=admin_headers)
        assert second.status_code == 409
        body = second.json()
        assert body["code"] == "ALREADY_VALIDATED"
        assert body["detail"]["validatedAt"] == data["validatedAt"]
        assert body["detail"]["validatedBy"] == "door@otprecords.com"

    async def test_printed_code_works(self, client, tickets, staff_headers):
        resp = await client.post(f"/validate/{tickets[1].ticket_code}", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json()["summary"]["ticketNumber"] == 2

    async def test_seats_are_independent(self, client, tickets, staff_headers):
        for ticket in tickets:
            resp = await client.post(f"/validate/{ticket.validation_code}", headers=staff_headers)
            assert resp.status_code == 200

    async def test_unknown_code(self, client, staff_headers):
        resp = await client.post("/validate/TKT-0000-0000", headers=staff_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "CODE_NOT_FOUND"


class TestPublicVerify:
    async def test_verify_ticket(self, client, tickets, staff_headers):
        code = tickets[0].validation_code
        before = (await client.get(f"/verify/{code}")).json()
        assert before["validated"] is False

        await client.post(f"/validate/{code}", headers=staff_headers)
        after = (await client.get(f"/verify/{code}")).json()
        assert after["validated"] is True
        assert after["status"] == "validated"
        assert "fan@example.com" not in str(after)

    async def test_verify_unknown(self, client):
        resp = await client.get("/verify/nothing-here")
        assert resp.status_code == 404
