"""Admin view over recorded fulfillment failures."""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from label_engine.common.exceptions import NotFoundError
from label_engine.common.models import as_utc
from label_engine.common.schemas import CamelModel
from label_engine.common.security import require_admin

router = APIRouter(prefix="/fulfillment")


class FulfillmentFailureResponse(CamelModel):
    id: str
    product_line: str
    stripe_session_id: str
    stage: str
    error_type: str
    message: str
    context: dict[str, Any]
    resolved: bool
    created_at: datetime


def _to_response(failure) -> FulfillmentFailureResponse:
    return FulfillmentFailureResponse(
        id=failure.id,
        product_line=failure.product_line,
        stripe_session_id=failure.stripe_session_id,
        stage=failure.stage,
        error_type=failure.error_type,
        message=failure.message,
        context=failure.context or {},
        resolved=failure.resolved,
        created_at=as_utc(failure.created_at),
    )


def _get_service():
    from label_engine.deps import get_alert_service
    return get_alert_service()


def _get_db():
    from label_engine.deps import get_db
    return get_db()


@router.get("/failures", response_model=list[FulfillmentFailureResponse])
async def list_failures(
    resolved: Optional[bool] = Query(None),
    product_line: Optional[str] = Query(None, pattern="^(beat|ticket)$"),
    limit: int = Query(100, ge=1, le=500),
    _=Depends(require_admin),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        failures = await svc.list_failures(session, resolved=resolved, product_line=product_line, limit=limit)
        return [_to_response(f) for f in failures]


@router.post("/failures/{failure_id}/resolve", response_model=FulfillmentFailureResponse)
async def resolve_failure(failure_id: str, _=Depends(require_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        failure = await svc.resolve_failure(session, failure_id)
        if failure is None:
            raise NotFoundError("Failure record not found")
        return _to_response(failure)
