"""Provider webhook payloads -> ``CanonicalPaymentEvent``.

Each provider has its own envelope; reconciliation only ever sees the
canonical event.  A body is structurally unusable (``WebhookPayloadError``)
only when it is not a JSON object or carries no event name.  Any other
oddity (missing customer, unknown event) still yields an event so the
webhook can be acknowledged.

Cakto envelope: event name in ``event`` (or ``custom_id``), customer in
``customer`` or ``data.customer``, order in ``order``, ``data.order`` or
``data`` itself.

AbacatePay envelope: ``{"event": "billing.paid", "data": {"billing": {...},
"payment": {...}}}`` or ``data.pixQrCode`` for PIX QR payments.
"""

from __future__ import annotations

import hashlib
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from dirigia.core.errors import WebhookPayloadError
from dirigia.models.enums import PaymentEventKind, PaymentMethod, PaymentProvider
from dirigia.models.schemas import CanonicalPaymentEvent

logger = logging.getLogger(__name__)

CAKTO_EVENTS: Dict[str, PaymentEventKind] = {
    "purchase_approved": PaymentEventKind.PURCHASE_APPROVED,
    "refund": PaymentEventKind.REFUNDED,
    "chargeback": PaymentEventKind.CHARGEBACK,
    "subscription_canceled": PaymentEventKind.SUBSCRIPTION_CANCELED,
    "checkout_created": PaymentEventKind.CHECKOUT_CREATED,
    "waiting_payment": PaymentEventKind.CHECKOUT_CREATED,
    "pix_gerado": PaymentEventKind.CHECKOUT_CREATED,
    "boleto_gerado": PaymentEventKind.CHECKOUT_CREATED,
    "picpay_gerado": PaymentEventKind.CHECKOUT_CREATED,
}

ABACATEPAY_EVENTS: Dict[str, PaymentEventKind] = {
    "billing.created": PaymentEventKind.CHECKOUT_CREATED,
    "billing.paid": PaymentEventKind.PURCHASE_APPROVED,
    "pix.paid": PaymentEventKind.PURCHASE_APPROVED,
    "billing.refunded": PaymentEventKind.REFUNDED,
    "billing.disputed": PaymentEventKind.CHARGEBACK,
    "billing.expired": PaymentEventKind.EXPIRED,
    "pix.expired": PaymentEventKind.EXPIRED,
}


def _obj(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def amount_to_cents(value: Any) -> Optional[int]:
    """Normalise a provider amount to integer cents.

    Integers are already cents.  Decimal numbers (``49.9``) and decimal
    strings (``"49,90"``) are reais.  Integer strings are cents.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int((Decimal(str(value)) * 100).to_integral_value())
    text = _text(value)
    if text is None:
        return None
    if text.isdigit():
        return int(text)
    try:
        return int((Decimal(text.replace(",", ".")) * 100).to_integral_value())
    except InvalidOperation:
        return None


def payload_fingerprint(body: Dict[str, Any]) -> str:
    """SHA-256 of the body with keys sorted, ignoring the shared secret."""
    unsigned = {k: v for k, v in body.items() if k != "secret"}
    canonical = json.dumps(unsigned, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _require_envelope(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise WebhookPayloadError("Invalid payload - expected JSON object")
    return payload


def normalize_cakto(payload: Any) -> CanonicalPaymentEvent:
    body = _require_envelope(payload)
    event = _text(body.get("event")) or _text(body.get("custom_id"))
    if not event:
        raise WebhookPayloadError()
    data = _obj(body.get("data"))
    customer = _obj(body.get("customer")) or _obj(data.get("customer"))
    order = _obj(body.get("order")) or _obj(data.get("order"))
    if not order and data.get("id") is not None:
        order = data
    metadata = _obj(order.get("metadata")) or _obj(body.get("metadata"))

    kind = CAKTO_EVENTS.get(event.lower(), PaymentEventKind.UNKNOWN)
    billing_id = _text(order.get("id")) or _text(body.get("id"))
    amount = amount_to_cents(order.get("amount") or order.get("price") or body.get("amount"))
    return CanonicalPaymentEvent(
        provider=PaymentProvider.CAKTO,
        kind=kind,
        raw_event=event,
        billing_id=billing_id,
        email=_text(customer.get("email")),
        user_id=_text(metadata.get("user_id")) or _text(metadata.get("userId")),
        amount_cents=amount,
        payment_method=PaymentMethod.CAKTO.value,
        fingerprint=payload_fingerprint(body),
    )


def normalize_abacatepay(payload: Any) -> CanonicalPaymentEvent:
    body = _require_envelope(payload)
    event = _text(body.get("event"))
    if not event:
        raise WebhookPayloadError()
    data = _obj(body.get("data"))
    billing = _obj(data.get("billing")) or _obj(data.get("pixQrCode"))
    payment = _obj(data.get("payment"))
    customer = _obj(billing.get("customer"))
    customer_meta = _obj(customer.get("metadata")) or customer
    metadata = _obj(billing.get("metadata"))

    kind = ABACATEPAY_EVENTS.get(event.lower(), PaymentEventKind.UNKNOWN)
    method = _text(payment.get("method"))
    if not method:
        methods = billing.get("methods")
        method = _text(methods[0]) if isinstance(methods, list) and methods else None
    if method and method.upper() == "CARD":
        method = PaymentMethod.CREDIT_CARD.value
    return CanonicalPaymentEvent(
        provider=PaymentProvider.ABACATEPAY,
        kind=kind,
        raw_event=event,
        billing_id=_text(billing.get("id")),
        email=_text(customer_meta.get("email")),
        user_id=_text(metadata.get("userId")) or _text(metadata.get("user_id")),
        amount_cents=amount_to_cents(payment.get("amount") if payment.get("amount") is not None else billing.get("amount")),
        payment_method=method.upper() if method else None,
        br_code=_text(billing.get("brCode")),
        fingerprint=payload_fingerprint(body),
    )
