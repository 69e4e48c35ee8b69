from __future__ import annotations

import hmac
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.api.dependencies import get_db, get_payment_service
from dirigia.core.config import settings
from dirigia.core.errors import WebhookAuthError, WebhookPayloadError
from dirigia.core.observability import sentry_breadcrumb
from dirigia.models.schemas import WebhookAck
from dirigia.services.payment_service import PaymentService
from dirigia.services.webhook_normalizer import normalize_abacatepay, normalize_cakto

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    try:
        return json.loads(raw or b"null")
    except ValueError as exc:
        raise WebhookPayloadError("Invalid payload - malformed JSON") from exc


def _check_secret(expected: Optional[str], provided: Optional[str], provider: str) -> None:
    if not expected:
        return
    if not provided or not hmac.compare_digest(str(provided), expected):
        logger.warning("[%s] webhook rejected: secret mismatch", provider)
        sentry_breadcrumb(category="payments", message="webhook.invalid_secret", level="warning", data={"provider": provider})
        raise WebhookAuthError()


@router.post("/cakto", response_model=WebhookAck)
async def cakto_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
):
    """Cakto purchase notifications.

    Acknowledges every structurally valid body with 200, including
    unknown users and unknown events.  400 only when ``event`` is missing.
    """
    payload = await _json_body(request)
    provided = payload.get("secret") if isinstance(payload, dict) else None
    _check_secret(settings.CAKTO_WEBHOOK_SECRET, provided or request.query_params.get("secret"), "cakto")
    event = normalize_cakto(payload)
    return await service.handle_event(db, event)


@router.post("/abacatepay", response_model=WebhookAck)
async def abacatepay_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
):
    """AbacatePay billing notifications; secret arrives as ``?webhookSecret=``."""
    _check_secret(settings.ABACATEPAY_WEBHOOK_SECRET, request.query_params.get("webhookSecret"), "abacatepay")
    payload = await _json_body(request)
    event = normalize_abacatepay(payload)
    return await service.handle_event(db, event)
