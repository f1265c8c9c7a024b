"""Pydantic schemas for licensing endpoints."""

from datetime import datetime
from typing import Any, Optional

from label_engine.common.models import as_utc
from label_engine.common.schemas import CamelModel
from label_engine.licensing.models import IssuedLicenseModel


class PublicLicense(CamelModel):
    """What anyone holding a license number may see."""

    license_id: str
    license_number: str
    tier: str
    beat_title: str
    producer_name: str
    status: str
    issued_at: datetime
    limits: dict[str, Any]
    publishing_split: dict[str, Any]
    credits_required: str
    jurisdiction: str

    @classmethod
    def from_model(cls, lic: IssuedLicenseModel) -> "PublicLicense":
        return cls(
            license_id=lic.license_id,
            license_number=lic.license_number,
            tier=lic.tier,
            beat_title=lic.beat_title,
            producer_name=lic.producer_name,
            status=lic.status,
            issued_at=as_utc(lic.issued_at),
            limits=lic.limits_snapshot or {},
            publishing_split=lic.publishing_split_snapshot or {},
            credits_required=lic.credits_required,
            jurisdiction=lic.jurisdiction,
        )


class LicenseVerifyResponse(CamelModel):
    valid: bool
    message: str
    license: Optional[PublicLicense] = None


class LicenseSummary(PublicLicense):
    """The buyer's own view; adds order and amount fields."""

    buyer_legal_name: str
    buyer_email: str
    beat_id: str
    amount: float
    currency: str
    verify_url: str
    validated: bool
    validated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, lic: IssuedLicenseModel) -> "LicenseSummary":
        public = PublicLicense.from_model(lic).model_dump()
        return cls(
            **public,
            buyer_legal_name=lic.buyer_legal_name,
            buyer_email=lic.buyer_email,
            beat_id=lic.beat_id,
            amount=lic.amount,
            currency=lic.currency,
            verify_url=lic.verify_url,
            validated=lic.validated,
            validated_at=as_utc(lic.validated_at),
        )


class TierStats(CamelModel):
    count: int
    revenue: float


class LicenseStatsResponse(CamelModel):
    total: int
    this_year: int
    by_tier: dict[str, TierStats]
