"""Licensing service: issue, verify and report on beat licenses."""

import copy
import hashlib
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.catalog.models import BeatModel
from label_engine.common.config import LabelSettings
from label_engine.common.database import dialect_insert
from label_engine.common.models import as_utc, utcnow
from label_engine.licensing.models import IssuedLicenseModel, LicenseCounterModel
from label_engine.licensing.templates import resolve_active_template

if TYPE_CHECKING:
    from label_engine.checkout.models import PurchaseModel

logger = logging.getLogger(__name__)


def compute_document_hash(license: IssuedLicenseModel) -> str:
    """SHA-256 over the canonical JSON of the license's identifying fields."""
    issued_at = as_utc(license.issued_at)
    payload = {
        "licenseId": license.license_id,
        "licenseNumber": license.license_number,
        "beatTitle": license.beat_title,
        "buyerEmail": license.buyer_email,
        "issuedAt": issued_at.isoformat() if issued_at else None,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def verify_document_hash(license: IssuedLicenseModel) -> bool:
    """True when the stored hash still matches the license's identifying fields."""
    return license.document_hash == compute_document_hash(license)


@dataclass
class LicenseVerification:
    valid: bool
    message: str
    license: Optional[IssuedLicenseModel] = None


class LicensingService:
    """Beat license issuance and lookups."""

    def __init__(self, settings: LabelSettings):
        self.settings = settings

    async def reserve_license_number(self, session: AsyncSession, year: int) -> str:
        """Take the next number for ``year`` with a single atomic upsert.

        Commit the reservation in its own transaction before issuing. A
        number handed out this way is never given out again, even when the
        issuance that asked for it fails.
        """
        insert = dialect_insert(session)
        stmt = insert(LicenseCounterModel).values(year=year, last_value=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[LicenseCounterModel.year],
            set_={"last_value": LicenseCounterModel.last_value + 1},
        ).returning(LicenseCounterModel.last_value)

        value = (await session.execute(stmt)).scalar_one()
        return f"{self.settings.license_prefix}-{year}-{value:06d}"

    async def issue_license(
        self,
        session: AsyncSession,
        purchase: "PurchaseModel",
        beat: BeatModel,
        tier: str,
        buyer_legal_name: str,
        buyer_email: str,
        amount: float,
        license_number: str,
        issued_at: datetime,
        currency: str = "EUR",
    ) -> IssuedLicenseModel:
        """Issue the license for a completed beat purchase.

        Runs inside the caller's transaction so the purchase and the license
        commit or roll back together. ``license_number`` comes from
        :meth:`reserve_license_number`.
        """
        template = await resolve_active_template(session, tier)

        license_id = str(uuid.uuid4())

        license = IssuedLicenseModel(
            license_id=license_id,
            license_number=license_number,
            template_id=template.template_id,
            template_version=template.version,
            tier=tier,
            order_id=purchase.id,
            stripe_session_id=purchase.stripe_session_id,
            beat_id=beat.id,
            beat_title=beat.title,
            beat_bpm=beat.bpm,
            beat_key=beat.key,
            producer_name=self.settings.producer_name,
            buyer_legal_name=buyer_legal_name,
            buyer_email=buyer_email,
            limits_snapshot=copy.deepcopy(template.limits),
            publishing_split_snapshot=copy.deepcopy(template.publishing_split),
            credits_required=template.credits_required,
            jurisdiction=template.jurisdiction,
            amount=amount,
            currency=currency.upper(),
            status="Issued",
            issued_at=issued_at,
            verify_url=f"{self.settings.frontend_url}/verify-license/{license_id}",
            validated=False,
        )
        license.document_hash = compute_document_hash(license)

        session.add(license)
        await session.flush()

        logger.info(
            "License issued",
            extra={
                "license_number": license_number,
                "tier": tier,
                "template_version": template.version,
                "order_id": purchase.id,
            },
        )
        return license

    async def get_license(self, session: AsyncSession, license_id: str) -> IssuedLicenseModel | None:
        result = await session.execute(
            select(IssuedLicenseModel).where(IssuedLicenseModel.license_id == license_id)
        )
        return result.scalar_one_or_none()

    async def find_license(self, session: AsyncSession, identifier: str) -> IssuedLicenseModel | None:
        """Look a license up by its id or its printed number."""
        result = await session.execute(
            select(IssuedLicenseModel).where(
                or_(
                    IssuedLicenseModel.license_id == identifier,
                    IssuedLicenseModel.license_number == identifier,
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_license_for_order(self, session: AsyncSession, order_id: str) -> IssuedLicenseModel | None:
        result = await session.execute(
            select(IssuedLicenseModel).where(IssuedLicenseModel.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def verify_license(self, session: AsyncSession, identifier: str) -> LicenseVerification:
        license = await self.find_license(session, identifier)
        if license is None:
            return LicenseVerification(valid=False, message="License not found")
        if license.status != "Issued":
            return LicenseVerification(
                valid=False, message=f"License {license.status.lower()}", license=license
            )
        if not verify_document_hash(license):
            logger.warning("License hash mismatch", extra={"license_number": license.license_number})
            return LicenseVerification(valid=False, message="License integrity check failed", license=license)
        return LicenseVerification(valid=True, message="License is valid", license=license)

    async def list_licenses_for_buyer(self, session: AsyncSession, email: str) -> list[IssuedLicenseModel]:
        result = await session.execute(
            select(IssuedLicenseModel)
            .where(func.lower(IssuedLicenseModel.buyer_email) == email.lower())
            .order_by(IssuedLicenseModel.issued_at.desc())
        )
        return list(result.scalars().all())

    async def license_stats(self, session: AsyncSession, now: datetime | None = None) -> dict:
        """Totals overall, for the current year, and per tier with revenue."""
        now = now or utcnow()
        start_of_year = datetime(now.year, 1, 1, tzinfo=timezone.utc)

        total = (await session.execute(select(func.count(IssuedLicenseModel.id)))).scalar_one()
        this_year = (
            await session.execute(
                select(func.count(IssuedLicenseModel.id)).where(
                    IssuedLicenseModel.issued_at >= start_of_year
                )
            )
        ).scalar_one()

        rows = await session.execute(
            select(
                IssuedLicenseModel.tier,
                func.count(IssuedLicenseModel.id),
                func.coalesce(func.sum(IssuedLicenseModel.amount), 0),
            ).group_by(IssuedLicenseModel.tier)
        )
        by_tier = {
            tier: {"count": count, "revenue": round(float(revenue), 2)}
            for tier, count, revenue in rows.all()
        }

        return {"total": total, "this_year": this_year, "by_tier": by_tier}
