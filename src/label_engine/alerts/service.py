"""Fulfillment alerting: persisted failure records plus a signed alert webhook."""

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.alerts.models import FulfillmentFailureModel
from label_engine.common.config import LabelSettings

logger = logging.getLogger(__name__)

ALERT_EVENT = "fulfillment.failed"


def sign_payload(payload_json: str, secret: str) -> str:
    """Compute HMAC-SHA256 hex digest for a JSON payload."""
    return hmac.new(
        secret.encode("utf-8"),
        payload_json.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class AlertService:
    """Records fulfillment failures so that paid-but-undelivered orders are never silent."""

    def __init__(self, settings: LabelSettings, db=None):
        self.settings = settings
        self.db = db
        self._http_client: Optional[httpx.AsyncClient] = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def record_failure(
        self,
        product_line: str,
        stripe_session_id: str,
        stage: str,
        error: BaseException,
        context: Optional[dict[str, Any]] = None,
    ) -> Optional[str]:
        """Persist, log and announce one failure. Returns the record id when stored.

        Uses its own session: the fulfillment transaction that failed has
        already been rolled back.
        """
        context = context or {}
        error_type = type(error).__name__
        message = str(error) or error_type

        logger.error(
            "Fulfillment failed",
            extra={
                "product_line": product_line,
                "stripe_session_id": stripe_session_id,
                "stage": stage,
                "error_type": error_type,
                "error_message": message,
                "context": context,
            },
        )

        failure_id = None
        if self.db is not None:
            try:
                async with self.db.get_session() as session:
                    failure = FulfillmentFailureModel(
                        product_line=product_line,
                        stripe_session_id=stripe_session_id,
                        stage=stage,
                        error_type=error_type,
                        message=message[:4000],
                        context=json.loads(json.dumps(context, default=str)),
                        resolved=False,
                    )
                    session.add(failure)
                    await session.flush()
                    failure_id = failure.id
            except Exception:
                logger.exception(
                    "Could not persist fulfillment failure",
                    extra={"stripe_session_id": stripe_session_id},
                )

        await self._post_alert(
            {
                "event_type": ALERT_EVENT,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "data": {
                    "failure_id": failure_id,
                    "product_line": product_line,
                    "stripe_session_id": stripe_session_id,
                    "stage": stage,
                    "error_type": error_type,
                    "message": message,
                    "context": context,
                },
            }
        )
        return failure_id

    async def _post_alert(self, envelope: dict[str, Any]) -> bool:
        """Single signed POST to the configured alert URL. No retries."""
        url = self.settings.alert_webhook_url
        if not url:
            return False

        payload_json = json.dumps(envelope, default=str)
        headers = {
            "Content-Type": "application/json",
            "X-Label-Event": envelope["event_type"],
        }
        if self.settings.alert_webhook_secret:
            headers["X-Label-Signature"] = sign_payload(payload_json, self.settings.alert_webhook_secret)

        try:
            resp = await self._get_http_client().post(
                url,
                content=payload_json,
                headers=headers,
                timeout=self.settings.alert_timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.warning("Alert webhook unreachable: %s", e)
            return False

        if 200 <= resp.status_code < 300:
            return True
        logger.warning("Alert webhook returned HTTP %s", resp.status_code)
        return False

    # ── Queries ──

    async def list_failures(
        self,
        session: AsyncSession,
        resolved: Optional[bool] = None,
        product_line: Optional[str] = None,
        limit: int = 100,
    ) -> list[FulfillmentFailureModel]:
        query = select(FulfillmentFailureModel)
        if resolved is not None:
            query = query.where(FulfillmentFailureModel.resolved.is_(resolved))
        if product_line is not None:
            query = query.where(FulfillmentFailureModel.product_line == product_line)
        query = query.order_by(FulfillmentFailureModel.created_at.desc()).limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())

    async def resolve_failure(self, session: AsyncSession, failure_id: str) -> Optional[FulfillmentFailureModel]:
        result = await session.execute(
            select(FulfillmentFailureModel).where(FulfillmentFailureModel.id == failure_id)
        )
        failure = result.scalar_one_or_none()
        if failure is None:
            return None
        failure.resolved = True
        await session.flush()
        return failure
