"""SQLAlchemy models for event tickets."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from label_engine.common.models import Base, TimestampMixin, generate_uuid

TICKET_STATUSES = ("pending", "completed", "active", "cancelled", "refunded", "validated")


class TicketModel(Base, TimestampMixin):
    __tablename__ = "tickets"
    __table_args__ = (
        # One row per seat of an order; a replayed webhook collides here.
        UniqueConstraint("purchase_id", "ticket_number", name="uq_ticket_purchase_seat"),
        Index("ix_ticket_event_status", "event_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id"), nullable=False)
    # Payment session id; shared by every seat of one order
    purchase_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    ticket_number: Mapped[int] = mapped_column(Integer, nullable=False)
    purchase_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    ticket_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    validation_code: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)
    qr_url: Mapped[str] = mapped_column(Text, nullable=False)

    customer_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR")

    status: Mapped[str] = mapped_column(String(20), default="pending")
    validated: Mapped[bool] = mapped_column(Boolean, default=False)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    validated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    validation_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_attempt_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
