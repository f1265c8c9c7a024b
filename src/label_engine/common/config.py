"""Label-Engine configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "stripe_webhook_secret_beats": "whsec_insecure-beats-change-me",
    "stripe_webhook_secret_tickets": "whsec_insecure-tickets-change-me",
    "identity_secret": "insecure-identity-secret-change-me",
}


class LabelSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LABEL_")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/label.db"

    # API
    api_title: str = "Label-Engine"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Branding, printed on tickets and licenses
    frontend_url: str = "https://otprecords.com"
    brand_name: str = "OTHER PEOPLE RECORDS"
    producer_name: str = "LilBru"
    license_prefix: str = "LILBRU"
    default_currency: str = "EUR"

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret_beats: str = "whsec_insecure-beats-change-me"
    stripe_webhook_secret_tickets: str = "whsec_insecure-tickets-change-me"
    stripe_webhook_tolerance: int = 300  # seconds

    # Email delivery ("sendgrid", "resend" or empty to log only)
    email_provider: str = ""
    email_api_key: str = ""
    email_from: str = "tickets@otprecords.com"
    email_from_name: str = "OTHER PEOPLE RECORDS"

    # Identity tokens. RS256 via JWKS when identity_jwks_url is set,
    # otherwise HS256 with identity_secret.
    identity_jwks_url: str = ""
    identity_secret: str = "insecure-identity-secret-change-me"
    identity_issuer: str = ""
    identity_audience: str = ""
    identity_roles_claim: str = "https://otprecords.com/roles"
    staff_roles: list[str] = ["staff", "admin"]
    admin_roles: list[str] = ["admin"]

    # Rate limiting for checkout creation ("memory" or "redis")
    rate_limit_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    checkout_rate_limit: int = 10
    checkout_rate_window: int = 60  # seconds

    # Fulfillment alerting
    alert_webhook_url: str = ""
    alert_webhook_secret: str = ""
    alert_timeout_seconds: int = 5

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]
        # The shared identity secret is unused when tokens are checked against JWKS.
        if self.identity_jwks_url and "identity_secret" in insecure_fields:
            insecure_fields.remove("identity_secret")

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"LABEL_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}."
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default secrets; set LABEL_STRIPE_WEBHOOK_SECRET_BEATS, "
                "LABEL_STRIPE_WEBHOOK_SECRET_TICKETS, LABEL_IDENTITY_SECRET for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> LabelSettings:
    settings = LabelSettings()
    settings.validate_for_production()
    return settings
