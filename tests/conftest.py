"""Shared test fixtures for Label-Engine."""

import json
import os
import time
from datetime import timedelta

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from label_engine.catalog.offers import LicenseOffer
from label_engine.catalog.service import CatalogService
from label_engine.checkout.stripe_webhook import sign_stripe_payload
from label_engine.common.config import LabelSettings
from label_engine.common.database import DatabaseManager
from label_engine.common.models import utcnow
from label_engine.licensing.templates import seed_templates

BEATS_SECRET = "whsec_test_beats_secret"
TICKETS_SECRET = "whsec_test_tickets_secret"
IDENTITY_SECRET = "test-identity-secret-at-least-32-bytes-long"
ROLES_CLAIM = "https://otprecords.com/roles"
FRONTEND_URL = "https://otprecords.test"


def make_offer(**overrides) -> LicenseOffer:
    data = {
        "id": "basic",
        "name": "Basic Lease",
        "price": 29.99,
        "tier": "Basic",
        "formats": frozenset({"MP3", "WAV"}),
        "files": {"MP3": "https://cdn.test/midnight.mp3", "WAV": "https://cdn.test/midnight.wav"},
        "description": "MP3 + WAV lease",
        "terms": {"audio_streams": 50000, "music_videos": 1},
    }
    data.update(overrides)
    return LicenseOffer(**data)


@pytest.fixture
def settings():
    return LabelSettings(
        db_url="sqlite+aiosqlite://",
        frontend_url=FRONTEND_URL,
        stripe_webhook_secret_beats=BEATS_SECRET,
        stripe_webhook_secret_tickets=TICKETS_SECRET,
        identity_secret=IDENTITY_SECRET,
        email_provider="",
        alert_webhook_url="",
    )


@pytest.fixture
async def database(settings):
    """Standalone in-memory database for service-level tests."""
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
async def file_database(settings, tmp_path):
    """File-backed database so concurrent sessions get their own connections."""
    manager = DatabaseManager(settings.model_copy(update={"db_url": f"sqlite+aiosqlite:///{tmp_path / 'label.db'}"}))
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def seed_beat():
    async def _seed(db, offers=None, **kwargs):
        kwargs.setdefault("bpm", 140)
        kwargs.setdefault("key", "Am")
        async with db.get_session() as session:
            return await CatalogService().create_beat(
                session,
                kwargs.pop("title", "Midnight Drive"),
                offers=offers if offers is not None else [
                    make_offer(),
                    make_offer(
                        id="premium", name="Premium Lease", price=79.0, tier="Premium",
                        formats=frozenset({"MP3", "WAV", "STEMS"}),
                        files={
                            "MP3": "https://cdn.test/midnight.mp3",
                            "WAV": "https://cdn.test/midnight.wav",
                            "STEMS": "https://cdn.test/midnight-stems.zip",
                        },
                    ),
                ],
                **kwargs,
            )
    return _seed


@pytest.fixture
def seed_event():
    async def _seed(db, **kwargs):
        now = utcnow()
        kwargs.setdefault("name", "OPR Showcase")
        kwargs.setdefault("total_tickets", 100)
        kwargs.setdefault("ticket_price", 15.0)
        kwargs.setdefault("tickets_enabled", True)
        kwargs.setdefault("location", "Sala Apolo, Barcelona")
        kwargs.setdefault("date", now + timedelta(days=30))
        kwargs.setdefault("sale_start_date", now - timedelta(days=1))
        kwargs.setdefault("sale_end_date", now + timedelta(days=29))
        async with db.get_session() as session:
            return await CatalogService().create_event(session, **kwargs)
    return _seed


@pytest.fixture
def seed_license_templates():
    async def _seed(db):
        async with db.get_session() as session:
            return await seed_templates(session)
    return _seed


@pytest.fixture
def signed_webhook():
    """Build (body, headers) for a Stripe webhook delivery."""
    def _build(event: dict, secret: str, timestamp: int | None = None):
        body = json.dumps(event).encode()
        return body, {
            "Stripe-Signature": sign_stripe_payload(body, secret, timestamp),
            "Content-Type": "application/json",
        }
    return _build


def checkout_completed_event(session_id: str, email: str, amount_cents: int, metadata: dict, currency="eur") -> dict:
    return {
        "id": f"evt_{session_id}",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "customer_email": email,
                "amount_total": amount_cents,
                "currency": currency,
                "metadata": metadata,
            }
        },
    }


@pytest.fixture
def completed_event():
    return checkout_completed_event


# ── Identity tokens ──


def make_token(sub: str = "auth0|buyer", email: str | None = "buyer@example.com", roles=(), **claims) -> str:
    payload = {"sub": sub, "iat": int(time.time()), "exp": int(time.time()) + 3600, **claims}
    if email is not None:
        payload["email"] = email
    if roles:
        payload[ROLES_CLAIM] = list(roles)
    return jwt.encode(payload, IDENTITY_SECRET, algorithm="HS256")


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def buyer_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def staff_headers():
    return {"Authorization": f"Bearer {make_token(sub='auth0|door', email='door@otprecords.com', roles=['staff'])}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token(sub='auth0|admin', email='admin@otprecords.com', roles=['admin'])}"}


# ── Application ──


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["LABEL_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["LABEL_FRONTEND_URL"] = FRONTEND_URL
    os.environ["LABEL_STRIPE_WEBHOOK_SECRET_BEATS"] = BEATS_SECRET
    os.environ["LABEL_STRIPE_WEBHOOK_SECRET_TICKETS"] = TICKETS_SECRET
    os.environ["LABEL_IDENTITY_SECRET"] = IDENTITY_SECRET
    os.environ["LABEL_EMAIL_PROVIDER"] = ""
    os.environ["LABEL_ALERT_WEBHOOK_URL"] = ""
    os.environ["LABEL_RATE_LIMIT_BACKEND"] = "memory"
    os.environ["LABEL_CHECKOUT_RATE_LIMIT"] = "100"

    # Clear caches and singletons so new env vars take effect
    from label_engine.common.config import get_settings
    get_settings.cache_clear()

    from label_engine.deps import reset_singletons
    reset_singletons()

    from label_engine.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from label_engine.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def app_db(client):
    """The database behind the test app (initialized by ``client``)."""
    from label_engine.deps import get_db
    return get_db()
