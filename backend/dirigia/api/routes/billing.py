from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.api.dependencies import get_checkout_service, get_current_profile, get_db, get_payment_client
from dirigia.core.config import settings
from dirigia.core.errors import NotFoundError
from dirigia.models.schemas import CheckoutRequest, CheckoutResponse, PaymentRead, SimulatePaymentRequest
from dirigia.models.tables import Payment, Profile
from dirigia.services.checkout_service import CheckoutService
from dirigia.services.payment_gateway import AbacatePayClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


def _require_development() -> None:
    if not settings.is_development:
        raise NotFoundError()


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
    service: CheckoutService = Depends(get_checkout_service),
):
    """Create a hosted checkout for the premium plan.

    PIX requires ``customerData`` (name, phone, CPF) and records the
    PENDING payment right away; card checkouts wait for the webhook.
    """
    return await service.create_checkout(db, profile, body)


@router.get("/payments", response_model=List[PaymentRead])
async def list_payments(
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    result = await db.execute(
        select(Payment).where(Payment.user_id == profile.id).order_by(Payment.created_at.desc())
    )
    return [PaymentRead.model_validate(p) for p in result.scalars().all()]


@router.get("/payments/{billing_id}", response_model=PaymentRead)
async def get_payment(
    billing_id: str,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """Current status of one payment (polling alternative to the SSE stream)."""
    payment = await db.scalar(
        select(Payment).where(Payment.billing_id == billing_id, Payment.user_id == profile.id)
    )
    if payment is None:
        raise NotFoundError("Pagamento não encontrado")
    return PaymentRead.model_validate(payment)


@router.get("/list")
async def list_provider_billings(
    profile: Profile = Depends(get_current_profile),
    client: AbacatePayClient = Depends(get_payment_client),
):
    """Provider-side billing list (development only)."""
    _require_development()
    billings = await client.list_billings()
    return {"success": True, "data": billings}


@router.post("/simulate-payment")
async def simulate_payment(
    body: SimulatePaymentRequest,
    profile: Profile = Depends(get_current_profile),
    client: AbacatePayClient = Depends(get_payment_client),
):
    """Ask the provider to mark a dev-mode PIX QR code as paid (development only)."""
    _require_development()
    logger.info("[abacatepay] simulating payment pix=%s user=%s", body.pix_qr_code_id, profile.id)
    data = await client.simulate_pix_payment(body.pix_qr_code_id)
    return {"success": True, "data": data}
