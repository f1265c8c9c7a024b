"""SQLAlchemy model for beat purchases."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from label_engine.common.models import Base, TimestampMixin, generate_uuid, utcnow

PURCHASE_STATUSES = ("pending", "completed", "failed", "refunded")


class PurchaseModel(Base, TimestampMixin):
    __tablename__ = "purchases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    beat_id: Mapped[str] = mapped_column(String(36), ForeignKey("beats.id"), nullable=False, index=True)
    # Offer selector within the beat, not an issued license id
    license_id: Mapped[str] = mapped_column(String(100), nullable=False)
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR")
    # Replayed webhooks collide here
    stripe_session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    purchased_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
