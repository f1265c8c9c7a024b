"""SQLAlchemy models for the catalog entities the purchase pipeline reads."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from label_engine.common.models import Base, TimestampMixin, generate_uuid


class BeatModel(Base, TimestampMixin):
    __tablename__ = "beats"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    bpm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    key: Mapped[str | None] = mapped_column(String(20), nullable=True)
    genre: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    # Serialized LicenseOffer dicts, see catalog.offers
    offers: Mapped[list] = mapped_column(JSON, default=list)


class EventModel(Base, TimestampMixin):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("available_tickets >= 0", name="ck_event_available_nonneg"),
        CheckConstraint(
            "available_tickets + tickets_sold = total_tickets",
            name="ck_event_inventory_balance",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str] = mapped_column(String(255), default="")
    date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    img: Mapped[str | None] = mapped_column(Text, nullable=True)

    tickets_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    ticket_price: Mapped[float] = mapped_column(Float, default=0.0)
    ticket_currency: Mapped[str] = mapped_column(String(3), default="EUR")
    total_tickets: Mapped[int] = mapped_column(Integer, default=0)
    available_tickets: Mapped[int] = mapped_column(Integer, default=0)
    tickets_sold: Mapped[int] = mapped_column(Integer, default=0)
    sale_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sale_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
