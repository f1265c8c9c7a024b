"""Label-Engine: purchase fulfillment for beat licenses and event tickets."""

from label_engine.catalog.offers import LicenseOffer
from label_engine.checkout.stripe_webhook import sign_stripe_payload, verify_stripe_signature
from label_engine.ticketing.generator import generate_ticket_code

__all__ = [
    "LicenseOffer",
    "generate_ticket_code",
    "sign_stripe_payload",
    "verify_stripe_signature",
]
__version__ = "0.1.0"
