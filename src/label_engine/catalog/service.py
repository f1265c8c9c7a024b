"""Catalog service: the beats and events the purchase pipeline reads."""

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.catalog.models import BeatModel, EventModel
from label_engine.catalog.offers import LicenseOffer
from label_engine.common.exceptions import ClientInputError


class CatalogService:
    """Thin create/get layer over beats and events."""

    # ── Beats ──

    async def create_beat(
        self,
        session: AsyncSession,
        title: str,
        offers: list[LicenseOffer] | None = None,
        **kwargs: Any,
    ) -> BeatModel:
        beat = BeatModel(
            title=title,
            bpm=kwargs.get("bpm"),
            key=kwargs.get("key"),
            genre=kwargs.get("genre"),
            cover_url=kwargs.get("cover_url"),
            active=kwargs.get("active", True),
            offers=[offer.to_dict() for offer in offers or []],
        )
        session.add(beat)
        await session.flush()
        return beat

    async def get_beat(self, session: AsyncSession, beat_id: str) -> BeatModel | None:
        result = await session.execute(select(BeatModel).where(BeatModel.id == beat_id))
        return result.scalar_one_or_none()

    def get_offer(self, beat: BeatModel, offer_id: str) -> LicenseOffer | None:
        for data in beat.offers or []:
            if data.get("id") == offer_id:
                return LicenseOffer.from_dict(data)
        return None

    # ── Events ──

    async def create_event(
        self,
        session: AsyncSession,
        name: str,
        total_tickets: int = 0,
        ticket_price: float = 0.0,
        tickets_enabled: bool = False,
        ticket_currency: str = "EUR",
        location: str = "",
        date: datetime | None = None,
        sale_start_date: datetime | None = None,
        sale_end_date: datetime | None = None,
        img: str | None = None,
    ) -> EventModel:
        if total_tickets < 0:
            raise ClientInputError("total_tickets must be non-negative")
        if ticket_price < 0:
            raise ClientInputError("ticket_price must be non-negative")

        event = EventModel(
            name=name,
            location=location,
            date=date,
            img=img,
            tickets_enabled=tickets_enabled,
            ticket_price=ticket_price,
            ticket_currency=ticket_currency.upper(),
            total_tickets=total_tickets,
            available_tickets=total_tickets,
            tickets_sold=0,
            sale_start_date=sale_start_date,
            sale_end_date=sale_end_date,
        )
        session.add(event)
        await session.flush()
        return event

    async def get_event(self, session: AsyncSession, event_id: str) -> EventModel | None:
        result = await session.execute(select(EventModel).where(EventModel.id == event_id))
        return result.scalar_one_or_none()
