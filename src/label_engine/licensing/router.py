"""Licensing API router."""

from fastapi import APIRouter, Depends, Response
from starlette.concurrency import run_in_threadpool

from label_engine.common.config import get_settings
from label_engine.common.exceptions import ClientInputError, ForbiddenError, NotFoundError
from label_engine.common.security import Identity, get_identity, require_admin
from label_engine.licensing.pdf import render_license_pdf
from label_engine.licensing.schemas import (
    LicenseStatsResponse,
    LicenseSummary,
    LicenseVerifyResponse,
    PublicLicense,
)

router = APIRouter(prefix="/licenses")


def _get_service():
    from label_engine.deps import get_licensing_service
    return get_licensing_service()


def _get_db():
    from label_engine.deps import get_db
    return get_db()


def _require_email(identity: Identity) -> str:
    if not identity.email:
        raise ClientInputError("Token carries no email claim", code="EMAIL_REQUIRED")
    return identity.email


@router.get("/verify/{identifier}", response_model=LicenseVerifyResponse)
async def verify_license(identifier: str):
    """Public check by license id or number. No buyer data is returned."""
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.verify_license(session, identifier)
        return LicenseVerifyResponse(
            valid=result.valid,
            message=result.message,
            license=PublicLicense.from_model(result.license) if result.license else None,
        )


@router.get("/download/{license_id}")
async def download_license(license_id: str, identity: Identity = Depends(get_identity)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        license = await svc.get_license(session, license_id)
        if license is None:
            raise NotFoundError("License not found", code="LICENSE_NOT_FOUND")

    is_admin = identity.has_any_role(get_settings().admin_roles)
    if not is_admin and (identity.email or "").lower() != license.buyer_email.lower():
        raise ForbiddenError("This license belongs to another buyer")

    pdf = await run_in_threadpool(render_license_pdf, license)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="licencia-{license.license_number}.pdf"'},
    )


@router.get("/mine", response_model=list[LicenseSummary])
async def my_licenses(identity: Identity = Depends(get_identity)):
    email = _require_email(identity)
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        licenses = await svc.list_licenses_for_buyer(session, email)
        return [LicenseSummary.from_model(lic) for lic in licenses]


@router.get("/stats", response_model=LicenseStatsResponse)
async def license_stats(_=Depends(require_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        stats = await svc.license_stats(session)
        return LicenseStatsResponse(**stats)
