"""Door validation and public verification endpoints."""

from fastapi import APIRouter, Depends

from label_engine.common.security import Identity, require_staff

router = APIRouter()


def _get_service():
    from label_engine.deps import get_redemption_service
    return get_redemption_service()


def _get_db():
    from label_engine.deps import get_db
    return get_db()


@router.post("/validate/{code}")
async def validate_code(code: str, identity: Identity = Depends(require_staff)):
    """Consume a ticket or license. 409 when it was already used."""
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.redeem(session, code, identity.email or identity.subject)
        return {
            "success": True,
            "type": result.kind,
            "code": result.code,
            "validatedAt": result.validated_at.isoformat(),
            "validatedBy": result.validated_by,
            "summary": result.summary,
        }


@router.get("/verify/{code}")
async def verify_code(code: str):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.public_summary(session, code)
