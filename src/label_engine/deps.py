"""Dependency injection singletons for Label-Engine."""

from label_engine.alerts.service import AlertService
from label_engine.catalog.service import CatalogService
from label_engine.checkout.gateway import PaymentGateway, StripeGateway
from label_engine.checkout.service import FulfillmentService
from label_engine.common.config import get_settings
from label_engine.common.database import DatabaseManager
from label_engine.common.ratelimit import MemoryRateLimiter, RateLimiter, RedisRateLimiter
from label_engine.common.security import IdentityVerifier
from label_engine.delivery.email import EmailSender
from label_engine.licensing.service import LicensingService
from label_engine.redemption.service import RedemptionService
from label_engine.ticketing.service import TicketingService

_db: DatabaseManager | None = None
_catalog: CatalogService | None = None
_licensing: LicensingService | None = None
_ticketing: TicketingService | None = None
_redemption: RedemptionService | None = None
_alerts: AlertService | None = None
_email: EmailSender | None = None
_gateway: PaymentGateway | None = None
_fulfillment: FulfillmentService | None = None
_identity: IdentityVerifier | None = None
_rate_limiter: RateLimiter | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_catalog_service() -> CatalogService:
    global _catalog
    if _catalog is None:
        _catalog = CatalogService()
    return _catalog


def get_licensing_service() -> LicensingService:
    global _licensing
    if _licensing is None:
        _licensing = LicensingService(get_settings())
    return _licensing


def get_ticketing_service() -> TicketingService:
    global _ticketing
    if _ticketing is None:
        _ticketing = TicketingService(get_settings())
    return _ticketing


def get_redemption_service() -> RedemptionService:
    global _redemption
    if _redemption is None:
        _redemption = RedemptionService(
            get_catalog_service(), get_ticketing_service(), get_licensing_service(),
        )
    return _redemption


def get_alert_service() -> AlertService:
    global _alerts
    if _alerts is None:
        _alerts = AlertService(get_settings(), db=get_db())
    return _alerts


def get_email_sender() -> EmailSender:
    global _email
    if _email is None:
        settings = get_settings()
        _email = EmailSender(
            provider=settings.email_provider,
            api_key=settings.email_api_key,
            from_email=settings.email_from,
            from_name=settings.email_from_name,
        )
    return _email


def get_payment_gateway() -> PaymentGateway:
    global _gateway
    if _gateway is None:
        _gateway = StripeGateway(get_settings().stripe_secret_key)
    return _gateway


def get_fulfillment_service() -> FulfillmentService:
    global _fulfillment
    if _fulfillment is None:
        _fulfillment = FulfillmentService(
            get_settings(),
            get_db(),
            catalog=get_catalog_service(),
            licensing=get_licensing_service(),
            ticketing=get_ticketing_service(),
            email_sender=get_email_sender(),
            alerts=get_alert_service(),
            gateway=get_payment_gateway(),
        )
    return _fulfillment


def get_identity_verifier() -> IdentityVerifier:
    global _identity
    if _identity is None:
        _identity = IdentityVerifier(get_settings())
    return _identity


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        if settings.rate_limit_backend == "redis":
            from redis.asyncio import Redis

            _rate_limiter = RedisRateLimiter(
                Redis.from_url(settings.redis_url),
                settings.checkout_rate_limit,
                settings.checkout_rate_window,
            )
        else:
            _rate_limiter = MemoryRateLimiter(
                settings.checkout_rate_limit, settings.checkout_rate_window,
            )
    return _rate_limiter


def set_payment_gateway(gateway: PaymentGateway) -> None:
    """Swap the gateway (for testing). Drops the cached fulfillment service."""
    global _gateway, _fulfillment
    _gateway = gateway
    _fulfillment = None


def set_email_sender(sender: EmailSender) -> None:
    """Swap the email sender (for testing). Drops the cached fulfillment service."""
    global _email, _fulfillment
    _email = sender
    _fulfillment = None


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _catalog, _licensing, _ticketing, _redemption, _alerts
    global _email, _gateway, _fulfillment, _identity, _rate_limiter
    _db = None
    _catalog = None
    _licensing = None
    _ticketing = None
    _redemption = None
    _alerts = None
    _email = None
    _gateway = None
    _fulfillment = None
    _identity = None
    _rate_limiter = None
