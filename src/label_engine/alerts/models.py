"""SQLAlchemy model for recorded fulfillment failures."""

from sqlalchemy import JSON, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from label_engine.common.models import Base, TimestampMixin, generate_uuid


class FulfillmentFailureModel(Base, TimestampMixin):
    __tablename__ = "fulfillment_failures"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    product_line: Mapped[str] = mapped_column(String(20), nullable=False, index=True)  # beat | ticket
    stripe_session_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    stage: Mapped[str] = mapped_column(String(50), nullable=False)
    error_type: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(Text, default="")
    context: Mapped[dict] = mapped_column(JSON, default=dict)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
