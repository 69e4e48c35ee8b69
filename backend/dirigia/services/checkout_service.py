"""Checkout creation.

Creates a one-time AbacatePay billing for the chosen plan and returns
its hosted URL.  PIX checkouts require the customer's name, phone and
CPF and record the PENDING payment immediately so the status can be
followed before the provider calls back; card checkouts rely on the
webhook to create the row.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.core.config import settings, plan_price_cents
from dirigia.core.errors import PaymentRequestError, PersistenceError
from dirigia.core.observability import sentry_breadcrumb
from dirigia.models.enums import BillingPlan, PaymentMethod
from dirigia.models.schemas import CheckoutRequest, CheckoutResponse
from dirigia.models.tables import Profile
from dirigia.services.payment_gateway import AbacatePayClient
from dirigia.services.payment_service import insert_pending_payment

logger = logging.getLogger(__name__)

PLAN_LABELS: Dict[BillingPlan, str] = {
    BillingPlan.MONTHLY: "DirigIA Premium - Mensal",
    BillingPlan.ANNUAL: "DirigIA Premium - Anual",
}


def provider_methods(method: PaymentMethod) -> list[str]:
    return ["PIX"] if method == PaymentMethod.PIX else ["CARD"]


class CheckoutService:
    def __init__(self, client: Optional[AbacatePayClient] = None) -> None:
        self.client = client or AbacatePayClient()

    async def create_checkout(self, session: AsyncSession, profile: Profile, request: CheckoutRequest) -> CheckoutResponse:
        if request.payment_method == PaymentMethod.PIX and request.customer_data is None:
            raise PaymentRequestError("Nome, telefone e CPF são obrigatórios para pagamento via PIX.")

        amount = plan_price_cents(request.plan.value)
        customer: Optional[Dict[str, Any]] = None
        if request.customer_data is not None:
            customer = {
                "name": request.customer_data.name,
                "cellphone": request.customer_data.phone,
                "email": profile.email,
                "taxId": request.customer_data.cpf,
            }
        frontend = settings.FRONTEND_BASE_URL.rstrip("/")
        sentry_breadcrumb(
            category="checkout",
            message="checkout:create",
            data={"plan": request.plan.value, "method": request.payment_method.value},
        )
        billing = await self.client.create_billing(
            methods=provider_methods(request.payment_method),
            product_id=f"premium-{request.plan.value}",
            product_name=PLAN_LABELS[request.plan],
            amount_cents=amount,
            customer=customer,
            return_url=f"{frontend}/details",
            completion_url=f"{frontend}/details?checkout=success",
            metadata={"userId": profile.id, "plan": request.plan.value},
        )
        billing_id = str(billing["id"])
        logger.info(
            "[checkout] billing=%s plan=%s method=%s user=%s",
            billing_id, request.plan.value, request.payment_method.value, profile.id,
        )

        if request.payment_method == PaymentMethod.PIX:
            try:
                await insert_pending_payment(
                    session,
                    user_id=profile.id,
                    billing_id=billing_id,
                    amount_cents=amount,
                    payment_method=request.payment_method.value,
                    br_code=billing.get("brCode"),
                )
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception("[checkout] failed to record pending payment billing=%s: %s", billing_id, exc)
                raise PersistenceError() from exc

        sentry_breadcrumb(category="checkout", message="created", data={"method": request.payment_method.value})
        return CheckoutResponse(billing_url=str(billing["url"]), billing_id=billing_id)
