"""Payment gateway adapter. Only session creation goes through the SDK."""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import stripe
from starlette.concurrency import run_in_threadpool

from label_engine.common.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class GatewaySession:
    id: str
    url: str


@dataclass
class LineItem:
    name: str
    unit_amount: int  # minor units
    currency: str
    quantity: int = 1
    description: str = ""
    image_url: Optional[str] = None


class PaymentGateway(Protocol):
    async def create_checkout_session(
        self,
        item: LineItem,
        customer_email: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> GatewaySession: ...


class StripeGateway:
    """Creates Stripe Checkout sessions in payment mode."""

    def __init__(self, secret_key: str):
        self.secret_key = secret_key

    async def create_checkout_session(
        self,
        item: LineItem,
        customer_email: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> GatewaySession:
        if not self.secret_key:
            raise UpstreamUnavailableError("Stripe not configured")

        product_data = {"name": item.name}
        if item.description:
            product_data["description"] = item.description
        if item.image_url:
            product_data["images"] = [item.image_url]

        try:
            # The SDK is synchronous
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                api_key=self.secret_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": item.currency.lower(),
                            "product_data": product_data,
                            "unit_amount": item.unit_amount,
                        },
                        "quantity": item.quantity,
                    }
                ],
                customer_email=customer_email,
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error("Stripe session creation failed: %s", e)
            raise UpstreamUnavailableError("Payment gateway unavailable", code="GATEWAY_UNAVAILABLE") from e

        logger.info("Stripe checkout session created", extra={"stripe_session_id": session.id})
        return GatewaySession(id=session.id, url=session.url)
