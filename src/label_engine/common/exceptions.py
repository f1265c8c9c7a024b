"""Label-Engine exception hierarchy."""

from typing import Any


class LabelError(Exception):
    """Base exception for all Label-Engine errors."""

    status_code: int = 500

    def __init__(self, message: str = "", code: str = "LABEL_ERROR", detail: Any = None):
        self.message = message
        self.code = code
        self.detail = detail
        super().__init__(message)


class ClientInputError(LabelError):
    """Raised on missing or invalid request fields."""

    status_code = 400

    def __init__(self, message: str = "Invalid input", code: str = "INVALID_INPUT", detail: Any = None):
        super().__init__(message, code=code, detail=detail)


class InvalidTierError(ClientInputError):
    """Raised when a license tier is not one of Basic, Premium, Unlimited."""

    def __init__(self, tier: str):
        super().__init__(f"Invalid tier: {tier}", code="INVALID_TIER")


class NotFoundError(LabelError):
    """Raised when a beat, event, ticket or license cannot be found."""

    status_code = 404

    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND", detail: Any = None):
        super().__init__(message, code=code, detail=detail)


class ConflictError(LabelError):
    """Raised when a ticket or license has already been redeemed."""

    status_code = 409

    def __init__(self, message: str = "Already validated", code: str = "ALREADY_VALIDATED", detail: Any = None):
        super().__init__(message, code=code, detail=detail)


class ForbiddenError(LabelError):
    """Raised on role or ownership mismatch."""

    status_code = 403

    def __init__(self, message: str = "Forbidden", code: str = "FORBIDDEN"):
        super().__init__(message, code=code)


class SignatureError(LabelError):
    """Raised when a payment webhook fails signature verification."""

    status_code = 400

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message, code="INVALID_SIGNATURE")


class UpstreamUnavailableError(LabelError):
    """Raised when the database or the payment gateway cannot be reached."""

    status_code = 503

    def __init__(self, message: str = "Upstream service unavailable", code: str = "UPSTREAM_UNAVAILABLE"):
        super().__init__(message, code=code)


class RateLimitedError(LabelError):
    """Raised when a client exceeds its request budget."""

    status_code = 429

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__("Too many requests", code="RATE_LIMITED")


class FulfillmentError(LabelError):
    """Raised inside post-payment processing. Never returned to the gateway."""

    def __init__(self, message: str = "Fulfillment failed", stage: str = "fulfillment"):
        self.stage = stage
        super().__init__(message, code="FULFILLMENT_FAILED")


class InventoryError(FulfillmentError):
    """Raised when an event cannot cover a paid quantity."""

    def __init__(self, message: str = "Not enough tickets available"):
        super().__init__(message, stage="inventory")


class TemplateUnavailableError(LabelError):
    """Raised when no active license template exists for a tier."""

    status_code = 503

    def __init__(self, message: str = "No active license template"):
        super().__init__(message, code="TEMPLATE_UNAVAILABLE")


class RenderError(LabelError):
    """Raised when a PDF or QR image cannot be rendered."""

    def __init__(self, message: str = "Document rendering failed"):
        super().__init__(message, code="RENDER_FAILED")


class UnauthenticatedError(LabelError):
    """Raised when a request carries no valid identity token."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="UNAUTHENTICATED")
