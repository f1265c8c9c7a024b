"""Redemption: consume a ticket or a license exactly once.

Codes are resolved in this order: ticket validation code, printed ticket
code, license id, license number. The flip to ``validated`` is a single
conditional UPDATE, so two scanners racing on the same code get exactly one
success and one conflict.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.catalog.service import CatalogService
from label_engine.common.exceptions import ClientInputError, ConflictError, NotFoundError
from label_engine.common.models import as_utc, utcnow
from label_engine.licensing.models import IssuedLicenseModel
from label_engine.licensing.service import LicensingService, verify_document_hash
from label_engine.ticketing.models import TicketModel
from label_engine.ticketing.service import TicketingService

logger = logging.getLogger(__name__)

UNREDEEMABLE_TICKET_STATUSES = ("cancelled", "refunded")


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


@dataclass
class RedemptionResult:
    kind: str  # "ticket" | "license"
    code: str
    validated_at: datetime
    validated_by: str
    summary: dict[str, Any] = field(default_factory=dict)


class RedemptionService:
    """Door-side validation of tickets and licenses."""

    def __init__(self, catalog: CatalogService, ticketing: TicketingService, licensing: LicensingService):
        self.catalog = catalog
        self.ticketing = ticketing
        self.licensing = licensing

    async def redeem(self, session: AsyncSession, code: str, validator: str) -> RedemptionResult:
        code = code.strip()
        if not code:
            raise ClientInputError("Code is required")

        ticket = await self.ticketing.find_ticket(session, code)
        if ticket is not None:
            return await self._redeem_ticket(session, ticket, validator)

        license = await self.licensing.find_license(session, code)
        if license is not None:
            return await self._redeem_license(session, license, validator)

        raise NotFoundError("Ticket or license not found", code="CODE_NOT_FOUND")

    async def _redeem_ticket(self, session: AsyncSession, ticket: TicketModel, validator: str) -> RedemptionResult:
        now = utcnow()

        # Attempts are kept even when this redemption is refused
        await session.execute(
            update(TicketModel)
            .where(TicketModel.id == ticket.id)
            .values(
                validation_attempts=TicketModel.validation_attempts + 1,
                last_attempt_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()

        if ticket.status in UNREDEEMABLE_TICKET_STATUSES:
            raise ClientInputError(
                f"Ticket is {ticket.status}",
                code="TICKET_NOT_VALID",
                detail={"status": ticket.status},
            )

        result = await session.execute(
            update(TicketModel)
            .where(
                TicketModel.id == ticket.id,
                TicketModel.validated.is_(False),
                TicketModel.status.notin_(UNREDEEMABLE_TICKET_STATUSES),
            )
            .values(validated=True, validated_at=now, validated_by=validator, status="validated")
            .execution_options(synchronize_session=False)
        )
        await session.refresh(ticket)

        if result.rowcount == 0:
            # Cancelled or refunded between the lookup and the flip
            if ticket.status in UNREDEEMABLE_TICKET_STATUSES:
                raise ClientInputError(
                    f"Ticket is {ticket.status}",
                    code="TICKET_NOT_VALID",
                    detail={"status": ticket.status},
                )
            logger.info("Ticket already validated", extra={"ticket_code": ticket.ticket_code})
            raise ConflictError(
                "Ticket already validated",
                detail={
                    "validatedAt": _iso(ticket.validated_at),
                    "validatedBy": ticket.validated_by,
                },
            )

        logger.info("Ticket validated", extra={"ticket_code": ticket.ticket_code, "validated_by": validator})
        event = await self.catalog.get_event(session, ticket.event_id)
        return RedemptionResult(
            kind="ticket",
            code=ticket.ticket_code,
            validated_at=as_utc(ticket.validated_at),
            validated_by=validator,
            summary=self._ticket_summary(ticket, event),
        )

    async def _redeem_license(
        self, session: AsyncSession, license: IssuedLicenseModel, validator: str
    ) -> RedemptionResult:
        if license.status != "Issued":
            raise ClientInputError(
                f"License is {license.status.lower()}",
                code="LICENSE_NOT_VALID",
                detail={"status": license.status},
            )

        now = utcnow()
        result = await session.execute(
            update(IssuedLicenseModel)
            .where(
                IssuedLicenseModel.id == license.id,
                IssuedLicenseModel.validated.is_(False),
                IssuedLicenseModel.status == "Issued",
            )
            .values(validated=True, validated_at=now, validated_by=validator)
            .execution_options(synchronize_session=False)
        )
        await session.refresh(license)

        if result.rowcount == 0:
            if license.status != "Issued":
                raise ClientInputError(
                    f"License is {license.status.lower()}",
                    code="LICENSE_NOT_VALID",
                    detail={"status": license.status},
                )
            raise ConflictError(
                "License already validated",
                detail={
                    "validatedAt": _iso(license.validated_at),
                    "validatedBy": license.validated_by,
                },
            )

        logger.info("License validated", extra={"license_number": license.license_number, "validated_by": validator})
        return RedemptionResult(
            kind="license",
            code=license.license_number,
            validated_at=as_utc(license.validated_at),
            validated_by=validator,
            summary=self._license_summary(license),
        )

    # ── Public summaries ──

    async def public_summary(self, session: AsyncSession, code: str) -> dict[str, Any]:
        """Holder-safe view of a ticket or license. Contains no names or emails."""
        ticket = await self.ticketing.find_ticket(session, code.strip())
        if ticket is not None:
            event = await self.catalog.get_event(session, ticket.event_id)
            return self._ticket_summary(ticket, event)

        license = await self.licensing.find_license(session, code.strip())
        if license is not None:
            return self._license_summary(license)

        raise NotFoundError("Ticket or license not found", code="CODE_NOT_FOUND")

    @staticmethod
    def _ticket_summary(ticket: TicketModel, event) -> dict[str, Any]:
        return {
            "type": "ticket",
            "ticketCode": ticket.ticket_code,
            "ticketNumber": ticket.ticket_number,
            "purchaseQuantity": ticket.purchase_quantity,
            "status": ticket.status,
            "validated": ticket.validated,
            "validatedAt": _iso(ticket.validated_at),
            "event": {
                "id": event.id,
                "name": event.name,
                "date": _iso(event.date),
                "location": event.location,
            } if event is not None else None,
        }

    @staticmethod
    def _license_summary(license: IssuedLicenseModel) -> dict[str, Any]:
        return {
            "type": "license",
            "licenseNumber": license.license_number,
            "tier": license.tier,
            "beatTitle": license.beat_title,
            "status": license.status,
            "valid": license.status == "Issued" and verify_document_hash(license),
            "issuedAt": _iso(license.issued_at),
            "validated": license.validated,
            "validatedAt": _iso(license.validated_at),
        }
