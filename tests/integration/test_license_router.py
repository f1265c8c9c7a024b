"""Integration tests for the license endpoints."""

import pytest
from sqlalchemy import select

from label_engine.licensing.models import IssuedLicenseModel

BEATS_SECRET = "whsec_test_beats_secret"


@pytest.fixture
async def issued(client, app_db, seed_beat, seed_license_templates, signed_webhook, completed_event):
    """A license issued through the beat webhook to buyer@example.com."""
    await seed_license_templates(app_db)
    beat = await seed_beat(app_db)
    body, headers = signed_webhook(
        completed_event("cs_lic", "buyer@example.com", 7900,
                        {"beatId": beat.id, "licenseId": "premium", "customerName": "Ana García"}),
        BEATS_SECRET,
    )
    assert (await client.post("/beats/webhook", content=body, headers=headers)).status_code == 200
    async with app_db.get_session() as session:
        return (await session.execute(select(IssuedLicenseModel))).scalar_one()


class TestVerify:
    async def test_verify_by_number(self, client, issued):
        resp = await client.get(f"/licenses/verify/{issued.license_number}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["valid"] is True
        assert data["message"] == "License is valid"
        assert data["license"]["licenseNumber"] == issued.license_number
        assert data["license"]["tier"] == "Premium"
        assert data["license"]["limits"]["max_streams"] == 500000
        assert "buyerEmail" not in data["license"]
        assert "buyer@example.com" not in resp.text

    async def test_verify_unknown(self, client):
        resp = await client.get("/licenses/verify/LILBRU-1999-000001")
        assert resp.status_code == 200
        assert resp.json() == {"valid": False, "message": "License not found", "license": None}


class TestDownload:
    async def test_owner_downloads_pdf(self, client, issued, buyer_headers):
        resp = await client.get(f"/licenses/download/{issued.license_id}", headers=buyer_headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert issued.license_number in resp.headers["content-disposition"]
        assert resp.content.startswith(b"%PDF")

    async def test_admin_downloads_any(self, client, issued, admin_headers):
        resp = await client.get(f"/licenses/download/{issued.license_id}", headers=admin_headers)
        assert resp.status_code == 200

    async def test_other_buyer_forbidden(self, client, issued, token_factory):
        headers = {"Authorization": f"Bearer {token_factory(email='intruder@example.com')}"}
        resp = await client.get(f"/licenses/download/{issued.license_id}", headers=headers)
        assert resp.status_code == 403

    async def test_anonymous_rejected(self, client, issued):
        resp = await client.get(f"/licenses/download/{issued.license_id}")
        assert resp.status_code == 401

    async def test_unknown_license(self, client, buyer_headers):
        resp = await client.get("/licenses/download/missing", headers=buyer_headers)
        assert resp.status_code == 404


class TestMine:
    async def test_lists_own_licenses(self, client, issued, buyer_headers):
        resp = await client.get("/licenses/mine", headers=buyer_headers)
        assert resp.status_code == 200
        [lic] = resp.json()
        assert lic["licenseId"] == issued.license_id
        assert lic["buyerLegalName"] == "Ana García"
        assert lic["amount"] == 79.0

    async def test_token_without_email(self, client, token_factory):
        headers = {"Authorization": f"Bearer {token_factory(email=None)}"}
        resp = await client.get("/licenses/mine", headers=headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == "EMAIL_REQUIRED"


class TestStats:
    async def test_admin_only(self, client, issued, staff_headers, admin_headers):
        assert (await client.get("/licenses/stats", headers=staff_headers)).status_code == 403

        resp = await client.get("/licenses/stats", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 1
        assert data["thisYear"] == 1
        assert data["byTier"]["Premium"] == {"count": 1, "revenue": 79.0}
