"""Integration tests for the Stripe webhook endpoints."""

import time
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from label_engine.alerts.models import FulfillmentFailureModel
from label_engine.catalog.models import EventModel
from label_engine.checkout.models import PurchaseModel
from label_engine.delivery.email import EmailSender
from label_engine.licensing.models import IssuedLicenseModel
from label_engine.ticketing.models import TicketModel

BEATS_SECRET = "whsec_test_beats_secret"
TICKETS_SECRET = "whsec_test_tickets_secret"


@pytest.fixture
def email_sender(client):
    from label_engine import deps
    sender = AsyncMock(spec=EmailSender)
    sender.send_beat_delivery.return_value = True
    sender.send_ticket_bundle.return_value = True
    deps.set_email_sender(sender)
    return sender


async def _count(db, model) -> int:
    async with db.get_session() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


def _beat_metadata(beat_id, offer_id="basic"):
    return {"product": "beat", "beatId": beat_id, "licenseId": offer_id, "tier": "Basic", "customerName": "Ana"}


class TestSignatureGate:
    async def test_invalid_signature_rejected_without_writes(
        self, client, app_db, email_sender, seed_beat, seed_license_templates, signed_webhook, completed_event
    ):
        await seed_license_templates(app_db)
        beat = await seed_beat(app_db)
        body, headers = signed_webhook(
            completed_event("cs_forged", "buyer@example.com", 2999, _beat_metadata(beat.id)),
            "whsec_wrong",
        )
        resp = await client.post("/beats/webhook", content=body, headers=headers)

        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_SIGNATURE"
        assert await _count(app_db, PurchaseModel) == 0
        email_sender.send_beat_delivery.assert_not_called()

    async def test_missing_signature(self, client):
        resp = await client.post("/tickets/webhook", content=b"{}")
        assert resp.status_code == 400

    async def test_stale_timestamp_rejected(self, client, signed_webhook):
        body, headers = signed_webhook({"type": "ping"}, BEATS_SECRET, timestamp=int(time.time()) - 3600)
        resp = await client.post("/beats/webhook", content=body, headers=headers)
        assert resp.status_code == 400

    async def test_secrets_are_per_product(self, client, app_db, email_sender, seed_event, signed_webhook, completed_event):
        event = await seed_event(app_db)
        body, headers = signed_webhook(
            completed_event("cs_x", "fan@example.com", 1500, {"eventId": event.id, "quantity": "1"}),
            BEATS_SECRET,
        )
        resp = await client.post("/tickets/webhook", content=body, headers=headers)
        assert resp.status_code == 400
        assert await _count(app_db, TicketModel) == 0

    async def test_invalid_json_after_valid_signature(self, client):
        from label_engine.checkout.stripe_webhook import sign_stripe_payload
        body = b"not json"
        resp = await client.post(
            "/beats/webhook", content=body, headers={"Stripe-Signature": sign_stripe_payload(body, BEATS_SECRET)}
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_PAYLOAD"

    async def test_database_down_is_503(self, client, app_db, signed_webhook, monkeypatch):
        monkeypatch.setattr(app_db, "ping", AsyncMock(side_effect=OSError("connection refused")))
        body, headers = signed_webhook({"type": "checkout.session.completed"}, BEATS_SECRET)
        resp = await client.post("/beats/webhook", content=body, headers=headers)
        assert resp.status_code == 503
        assert resp.json()["code"] == "DATABASE_UNAVAILABLE"


class TestBeatWebhook:
    async def test_completed_issues_license(
        self, client, app_db, email_sender, seed_beat, seed_license_templates, signed_webhook, completed_event
    ):
        await seed_license_templates(app_db)
        beat = await seed_beat(app_db)
        body, headers = signed_webhook(
            completed_event("cs_beat_ok", "buyer@example.com", 2999, _beat_metadata(beat.id)),
            BEATS_SECRET,
        )
        resp = await client.post("/beats/webhook", content=body, headers=headers)

        assert resp.status_code == 200
        assert resp.json() == {"received": True}
        async with app_db.get_session() as session:
            license = (await session.execute(select(IssuedLicenseModel))).scalar_one()
        assert license.stripe_session_id == "cs_beat_ok"
        assert license.amount == 29.99
        assert email_sender.send_beat_delivery.await_count == 1

    async def test_replay_acknowledged_once_fulfilled(
        self, client, app_db, email_sender, seed_beat, seed_license_templates, signed_webhook, completed_event
    ):
        await seed_license_templates(app_db)
        beat = await seed_beat(app_db)
        event = completed_event("cs_beat_replay", "buyer@example.com", 2999, _beat_metadata(beat.id))

        for _ in range(3):
            body, headers = signed_webhook(event, BEATS_SECRET)
            resp = await client.post("/beats/webhook", content=body, headers=headers)
            assert resp.status_code == 200

        assert await _count(app_db, PurchaseModel) == 1
        assert await _count(app_db, IssuedLicenseModel) == 1
        assert email_sender.send_beat_delivery.await_count == 1

    async def test_other_event_types_ignored(self, client, app_db, email_sender, signed_webhook):
        body, headers = signed_webhook(
            {"type": "payment_intent.payment_failed", "data": {"object": {"id": "pi_1"}}}, BEATS_SECRET
        )
        resp = await client.post("/beats/webhook", content=body, headers=headers)
        assert resp.status_code == 200
        assert await _count(app_db, PurchaseModel) == 0
        assert await _count(app_db, FulfillmentFailureModel) == 0

    async def test_fulfillment_failure_still_acknowledged(
        self, client, app_db, email_sender, signed_webhook, completed_event
    ):
        body, headers = signed_webhook(
            completed_event("cs_beat_gone", "buyer@example.com", 2999, _beat_metadata("gone")),
            BEATS_SECRET,
        )
        resp = await client.post("/beats/webhook", content=body, headers=headers)

        assert resp.status_code == 200
        assert await _count(app_db, PurchaseModel) == 0
        async with app_db.get_session() as session:
            failure = (await session.execute(select(FulfillmentFailureModel))).scalar_one()
        assert failure.stripe_session_id == "cs_beat_gone"
        assert failure.stage == "lookup"


class TestTicketWebhook:
    async def test_completed_issues_tickets(
        self, client, app_db, email_sender, seed_event, signed_webhook, completed_event
    ):
        event = await seed_event(app_db, total_tickets=50)
        body, headers = signed_webhook(
            completed_event("cs_tix_ok", "fan@example.com", 7500,
                            {"product": "ticket", "eventId": event.id, "quantity": "5", "customerName": "Fan"}),
            TICKETS_SECRET,
        )
        resp = await client.post("/tickets/webhook", content=body, headers=headers)

        assert resp.status_code == 200
        async with app_db.get_session() as session:
            tickets = (await session.execute(select(TicketModel).order_by(TicketModel.ticket_number))).scalars().all()
            stored = (await session.execute(select(EventModel).where(EventModel.id == event.id))).scalar_one()
        assert [t.ticket_number for t in tickets] == [1, 2, 3, 4, 5]
        assert all(t.purchase_id == "cs_tix_ok" for t in tickets)
        assert stored.available_tickets == 45
        assert stored.tickets_sold == 5

        kwargs = email_sender.send_ticket_bundle.call_args.kwargs
        assert len(kwargs["ticket_codes"]) == 5
        assert kwargs["tickets_pdf"].startswith(b"%PDF")

    async def test_replay_does_not_double_count(
        self, client, app_db, email_sender, seed_event, signed_webhook, completed_event
    ):
        event = await seed_event(app_db, total_tickets=50)
        payload = completed_event("cs_tix_replay", "fan@example.com", 3000,
                                  {"eventId": event.id, "quantity": "2", "customerName": "Fan"})
        for _ in range(2):
            body, headers = signed_webhook(payload, TICKETS_SECRET)
            assert (await client.post("/tickets/webhook", content=body, headers=headers)).status_code == 200

        assert await _count(app_db, TicketModel) == 2
        async with app_db.get_session() as session:
            stored = (await session.execute(select(EventModel).where(EventModel.id == event.id))).scalar_one()
        assert stored.tickets_sold == 2
        assert email_sender.send_ticket_bundle.await_count == 1
