"""Tests for fulfillment failure recording and the signed alert webhook."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx

from label_engine.alerts.service import AlertService, sign_payload
from label_engine.common.config import LabelSettings


def make_settings(**overrides) -> LabelSettings:
    defaults = {"db_url": "sqlite+aiosqlite://", "alert_webhook_url": ""}
    defaults.update(overrides)
    return LabelSettings(**defaults)


class TestSignPayload:
    def test_deterministic(self):
        payload = '{"event_type":"fulfillment.failed"}'
        assert sign_payload(payload, "secret-a") == sign_payload(payload, "secret-a")
        assert len(sign_payload(payload, "secret-a")) == 64

    def test_secret_matters(self):
        payload = '{"event_type":"fulfillment.failed"}'
        assert sign_payload(payload, "secret-a") != sign_payload(payload, "secret-b")


class TestRecordFailure:
    async def test_persists_and_lists(self, database):
        svc = AlertService(make_settings(), db=database)
        failure_id = await svc.record_failure(
            "ticket", "cs_123", "lookup", ValueError("Event e1 not found"), {"eventId": "e1"}
        )
        assert failure_id is not None

        async with database.get_session() as session:
            failures = await svc.list_failures(session)
        [failure] = failures
        assert failure.product_line == "ticket"
        assert failure.stripe_session_id == "cs_123"
        assert failure.stage == "lookup"
        assert failure.error_type == "ValueError"
        assert failure.message == "Event e1 not found"
        assert failure.context == {"eventId": "e1"}
        assert failure.resolved is False

    async def test_filters_and_resolve(self, database):
        svc = AlertService(make_settings(), db=database)
        beat_id = await svc.record_failure("beat", "cs_1", "render", RuntimeError("x"))
        await svc.record_failure("ticket", "cs_2", "inventory", RuntimeError("y"))

        async with database.get_session() as session:
            assert len(await svc.list_failures(session, product_line="beat")) == 1
            resolved = await svc.resolve_failure(session, beat_id)
            assert resolved.resolved is True
        async with database.get_session() as session:
            open_failures = await svc.list_failures(session, resolved=False)
            assert [f.stripe_session_id for f in open_failures] == ["cs_2"]
            assert await svc.resolve_failure(session, "missing") is None

    async def test_without_db_still_returns(self):
        svc = AlertService(make_settings())
        assert await svc.record_failure("beat", "cs_1", "parse", ValueError("bad")) is None


class TestAlertWebhook:
    async def test_signed_post(self, database):
        settings = make_settings(
            alert_webhook_url="https://alerts.example.com/hook",
            alert_webhook_secret="alert-secret",
        )
        svc = AlertService(settings, db=database)
        client = MagicMock()
        client.post = AsyncMock(return_value=MagicMock(status_code=204))
        svc._http_client = client

        failure_id = await svc.record_failure("beat", "cs_9", "lookup", KeyError("beatId"))

        client.post.assert_awaited_once()
        call = client.post.call_args
        assert call.args[0] == "https://alerts.example.com/hook"
        body = call.kwargs["content"]
        envelope = json.loads(body)
        assert envelope["event_type"] == "fulfillment.failed"
        assert envelope["data"]["failure_id"] == failure_id
        assert envelope["data"]["stripe_session_id"] == "cs_9"
        headers = call.kwargs["headers"]
        assert headers["X-Label-Event"] == "fulfillment.failed"
        assert headers["X-Label-Signature"] == sign_payload(body, "alert-secret")

    async def test_unreachable_alert_url_is_not_fatal(self, database):
        svc = AlertService(make_settings(alert_webhook_url="https://alerts.example.com/hook"), db=database)
        client = MagicMock()
        client.post = AsyncMock(side_effect=httpx.ConnectError("down"))
        svc._http_client = client

        failure_id = await svc.record_failure("ticket", "cs_1", "inventory", RuntimeError("sold out"))
        assert failure_id is not None

    async def test_no_url_no_post(self):
        svc = AlertService(make_settings())
        assert await svc._post_alert({"event_type": "fulfillment.failed"}) is False
