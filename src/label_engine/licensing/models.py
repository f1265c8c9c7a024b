"""SQLAlchemy models for beat licensing."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from label_engine.common.models import Base, TimestampMixin, generate_uuid, utcnow


class LicenseTemplateModel(Base, TimestampMixin):
    __tablename__ = "license_templates"
    __table_args__ = (
        UniqueConstraint("tier", "version", name="uq_license_template_tier_version"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    template_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    tier: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    body: Mapped[str] = mapped_column(Text, default="")
    limits: Mapped[dict] = mapped_column(JSON, default=dict)
    publishing_split: Mapped[dict] = mapped_column(JSON, default=lambda: {"producer": 50, "licensee": 50})
    credits_required: Mapped[str] = mapped_column(String(255), default="")
    jurisdiction: Mapped[str] = mapped_column(String(100), default="")
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)


class IssuedLicenseModel(Base, TimestampMixin):
    __tablename__ = "issued_licenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    license_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)
    license_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    template_id: Mapped[str] = mapped_column(String(100), nullable=False)
    template_version: Mapped[int] = mapped_column(Integer, nullable=False)
    tier: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # One license per purchase
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("purchases.id"), unique=True, nullable=False
    )
    stripe_session_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Beat snapshot at purchase time
    beat_id: Mapped[str] = mapped_column(String(36), nullable=False)
    beat_title: Mapped[str] = mapped_column(String(255), nullable=False)
    beat_bpm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    beat_key: Mapped[str | None] = mapped_column(String(20), nullable=True)

    producer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    buyer_legal_name: Mapped[str] = mapped_column(String(255), nullable=False)
    buyer_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    limits_snapshot: Mapped[dict] = mapped_column(JSON, default=dict)
    publishing_split_snapshot: Mapped[dict] = mapped_column(JSON, default=dict)
    credits_required: Mapped[str] = mapped_column(String(255), default="")
    jurisdiction: Mapped[str] = mapped_column(String(100), default="")

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR")

    document_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Issued", index=True)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    verify_url: Mapped[str] = mapped_column(Text, nullable=False)

    validated: Mapped[bool] = mapped_column(Boolean, default=False)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    validated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)


class LicenseCounterModel(Base):
    """Last license number handed out per calendar year."""

    __tablename__ = "license_counters"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
