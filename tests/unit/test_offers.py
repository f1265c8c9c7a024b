"""Tests for beat license offers and the catalog lookups built on them."""

import pytest

from label_engine.catalog.offers import LicenseOffer
from label_engine.catalog.service import CatalogService
from label_engine.common.exceptions import ClientInputError


def _offer(**overrides) -> LicenseOffer:
    data = {
        "id": "basic",
        "name": "Basic Lease",
        "price": 29.99,
        "tier": "Basic",
        "formats": frozenset({"MP3", "WAV"}),
        "files": {"MP3": "https://cdn.test/a.mp3", "WAV": "https://cdn.test/a.wav"},
        "terms": {"audio_streams": 50000},
    }
    data.update(overrides)
    return LicenseOffer(**data)


class TestLicenseOffer:
    def test_valid_offer(self):
        offer = _offer()
        assert offer.tier == "Basic"
        assert offer.formats == frozenset({"MP3", "WAV"})

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError, match="id is required"):
            _offer(id="")

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            _offer(price=-1)

    def test_empty_formats_rejected(self):
        with pytest.raises(ValueError, match="at least one format"):
            _offer(formats=frozenset())

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError, match="unknown formats"):
            _offer(formats=frozenset({"MP3", "FLAC"}), files={"MP3": "a", "FLAC": "b"})

    def test_format_without_file_rejected(self):
        with pytest.raises(ValueError, match="no file URL"):
            _offer(formats=frozenset({"MP3", "STEMS"}), files={"MP3": "https://cdn.test/a.mp3"})

    def test_delivered_files_only_paid_formats(self):
        offer = _offer(
            formats=frozenset({"MP3"}),
            files={"MP3": "https://cdn.test/a.mp3", "WAV": "https://cdn.test/a.wav"},
        )
        assert offer.delivered_files() == {"MP3": "https://cdn.test/a.mp3"}

    def test_delivered_files_display_order(self):
        offer = _offer(
            formats=frozenset({"STEMS", "WAV", "MP3"}),
            files={"STEMS": "s", "WAV": "w", "MP3": "m"},
        )
        assert list(offer.delivered_files()) == ["MP3", "WAV", "STEMS"]

    def test_from_dict_normalizes_case(self):
        offer = LicenseOffer.from_dict({
            "id": "premium",
            "name": "Premium",
            "price": "79",
            "tier": "Premium",
            "formats": ["mp3", "wav"],
            "files": {"mp3": "m", "wav": "w"},
        })
        assert offer.price == 79.0
        assert offer.formats == frozenset({"MP3", "WAV"})
        assert offer.files == {"MP3": "m", "WAV": "w"}

    def test_dict_round_trip(self):
        offer = _offer()
        assert LicenseOffer.from_dict(offer.to_dict()) == offer


class TestCatalogService:
    async def test_get_offer(self, database, seed_beat):
        beat = await seed_beat(database)
        catalog = CatalogService()
        offer = catalog.get_offer(beat, "premium")
        assert offer is not None
        assert offer.tier == "Premium"
        assert "STEMS" in offer.formats

    async def test_get_offer_unknown(self, database, seed_beat):
        beat = await seed_beat(database)
        assert CatalogService().get_offer(beat, "exclusive") is None

    async def test_get_beat_missing(self, database):
        async with database.get_session() as session:
            assert await CatalogService().get_beat(session, "nope") is None

    async def test_create_event_starts_with_full_inventory(self, database, seed_event):
        event = await seed_event(database, total_tickets=40)
        assert event.available_tickets == 40
        assert event.tickets_sold == 0

    async def test_create_event_negative_total_rejected(self, database):
        async with database.get_session() as session:
            with pytest.raises(ClientInputError):
                await CatalogService().create_event(session, "Bad", total_tickets=-1)
