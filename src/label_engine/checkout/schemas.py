"""Pydantic schemas for checkout endpoints."""

from pydantic import EmailStr, Field

from label_engine.common.schemas import CamelModel


class BeatCheckoutRequest(CamelModel):
    beat_id: str = Field(min_length=1)
    license_id: str = Field(min_length=1)
    customer_email: EmailStr
    customer_name: str = Field(min_length=1, max_length=255)


class TicketCheckoutRequest(CamelModel):
    event_id: str = Field(min_length=1)
    quantity: int = Field(ge=1, le=50)
    customer_email: EmailStr
    customer_name: str = Field(min_length=1, max_length=255)


class CheckoutSessionResponse(CamelModel):
    session_id: str
    url: str


class WebhookAck(CamelModel):
    received: bool = True
