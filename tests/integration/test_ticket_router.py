"""Integration tests for ticket holder, sales and health endpoints."""

import re

import pytest
from sqlalchemy import select

from label_engine.ticketing.models import TicketModel

TICKETS_SECRET = "whsec_test_tickets_secret"


@pytest.fixture
async def purchase(client, app_db, seed_event, signed_webhook, completed_event):
    event = await seed_event(app_db, total_tickets=20)
    body, headers = signed_webhook(
        completed_event("cs_fan", "fan@example.com", 4500,
                        {"eventId": event.id, "quantity": "3", "customerName": "Fan Uno"}),
        TICKETS_SECRET,
    )
    assert (await client.post("/tickets/webhook", content=body, headers=headers)).status_code == 200
    async with app_db.get_session() as session:
        tickets = list((await session.execute(
            select(TicketModel).order_by(TicketModel.ticket_number)
        )).scalars().all())
    return event, tickets


def _fan_headers(token_factory):
    return {"Authorization": f"Bearer {token_factory(sub='auth0|fan', email='fan@example.com')}"}


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


class TestTicketInfo:
    async def test_info_by_validation_code(self, client, purchase):
        event, tickets = purchase
        resp = await client.get(f"/tickets/info/{tickets[0].validation_code}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["ticketCode"] == tickets[0].ticket_code
        assert data["ticketNumber"] == 1
        assert data["purchaseQuantity"] == 3
        assert data["event"]["name"] == event.name

    async def test_unknown(self, client):
        resp = await client.get("/tickets/info/00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404
        assert resp.json()["code"] == "TICKET_NOT_FOUND"


class TestMyTickets:
    async def test_lists_own_tickets(self, client, purchase, token_factory):
        _, tickets = purchase
        resp = await client.get("/tickets/mine", headers=_fan_headers(token_factory))
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 3
        assert {t["ticketCode"] for t in data} == {t.ticket_code for t in tickets}
        assert all(re.match(r"^TKT-[0-9A-Z]{4}-[0-9A-Z]{4}$", t["ticketCode"]) for t in data)
        assert all(t["qrUrl"].startswith("https://otprecords.test/ticket/") for t in data)

    async def test_other_buyer_sees_nothing(self, client, purchase, buyer_headers):
        resp = await client.get("/tickets/mine", headers=buyer_headers)
        assert resp.status_code == 200
        assert resp.json() == []


class TestDownloadTicket:
    async def test_owner_downloads(self, client, purchase, token_factory):
        _, tickets = purchase
        resp = await client.get(f"/tickets/download/{tickets[1].id}", headers=_fan_headers(token_factory))
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.content.startswith(b"%PDF")

    async def test_other_buyer_forbidden(self, client, purchase, buyer_headers):
        _, tickets = purchase
        resp = await client.get(f"/tickets/download/{tickets[0].id}", headers=buyer_headers)
        assert resp.status_code == 403


class TestEventSales:
    async def test_admin_report(self, client, purchase, admin_headers, staff_headers):
        event, tickets = purchase
        await client.post(f"/validate/{tickets[0].validation_code}", headers=staff_headers)

        resp = await client.get(f"/tickets/events/{event.id}/sales", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["ticketsSold"] == 3
        assert data["availableTickets"] == 17
        assert data["ticketsIssued"] == 3
        assert data["orders"] == 1
        assert data["ticketsValidated"] == 1
        assert data["revenue"] == 45.0

    async def test_requires_admin(self, client, purchase, staff_headers):
        event, _ = purchase
        resp = await client.get(f"/tickets/events/{event.id}/sales", headers=staff_headers)
        assert resp.status_code == 403

    async def test_unknown_event(self, client, admin_headers):
        resp = await client.get("/tickets/events/missing/sales", headers=admin_headers)
        assert resp.status_code == 404
