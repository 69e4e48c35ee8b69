from __future__ import annotations

import pytest

from dirigia.core.errors import WebhookPayloadError
from dirigia.models.enums import PaymentEventKind, PaymentProvider
from dirigia.services.webhook_normalizer import amount_to_cents, normalize_abacatepay, normalize_cakto


@pytest.mark.parametrize(
    "value, expected",
    [(4990, 4990), (49.9, 4990), ("49,90", 4990), ("49.90", 4990), ("4990", 4990), (None, None), ("abc", None)],
)
def test_amount_to_cents(value, expected):
    assert amount_to_cents(value) == expected


def test_cakto_top_level_envelope():
    event = normalize_cakto(
        {
            "event": "purchase_approved",
            "customer": {"email": "Motorista@Example.com"},
            "order": {"id": "ord_1", "amount": 49.9},
        }
    )
    assert event.provider == PaymentProvider.CAKTO
    assert event.kind == PaymentEventKind.PURCHASE_APPROVED
    assert event.billing_id == "ord_1"
    assert event.email == "Motorista@Example.com"
    assert event.amount_cents == 4990
    assert event.payment_method == "CAKTO"


def test_cakto_nested_data_envelope_and_custom_id():
    event = normalize_cakto(
        {
            "custom_id": "refund",
            "data": {"id": "ord_2", "customer": {"email": "a@b.com"}, "metadata": {"user_id": "user-9"}},
        }
    )
    assert event.kind == PaymentEventKind.REFUNDED
    assert event.billing_id == "ord_2"
    assert event.email == "a@b.com"
    assert event.user_id == "user-9"


def test_cakto_unknown_event_still_normalises():
    event = normalize_cakto({"event": "something_new"})
    assert event.kind == PaymentEventKind.UNKNOWN
    assert event.raw_event == "something_new"


@pytest.mark.parametrize("payload", [{}, {"event": ""}, {"data": {}}, [], "purchase_approved", None])
def test_cakto_without_event_is_rejected(payload):
    with pytest.raises(WebhookPayloadError):
        normalize_cakto(payload)


def test_abacatepay_billing_paid():
    event = normalize_abacatepay(
        {
            "event": "billing.paid",
            "data": {
                "billing": {
                    "id": "bill_1",
                    "amount": 4990,
                    "methods": ["CARD"],
                    "customer": {"metadata": {"email": "c@d.com"}},
                    "metadata": {"userId": "user-1"},
                },
                "payment": {"amount": 4990},
            },
        }
    )
    assert event.provider == PaymentProvider.ABACATEPAY
    assert event.kind == PaymentEventKind.PURCHASE_APPROVED
    assert event.billing_id == "bill_1"
    assert event.email == "c@d.com"
    assert event.user_id == "user-1"
    assert event.amount_cents == 4990
    assert event.payment_method == "CREDIT_CARD"


def test_abacatepay_pix_qr_code_expired():
    event = normalize_abacatepay(
        {"event": "pix.expired", "data": {"pixQrCode": {"id": "pix_1", "brCode": "000201...", "amount": 1490}}}
    )
    assert event.kind == PaymentEventKind.EXPIRED
    assert event.billing_id == "pix_1"
    assert event.br_code == "000201..."
    assert event.amount_cents == 1490


def test_abacatepay_without_event_is_rejected():
    with pytest.raises(WebhookPayloadError):
        normalize_abacatepay({"data": {"billing": {"id": "x"}}})


def test_fingerprint_is_stable_and_ignores_the_secret():
    body = {"event": "purchase_approved", "customer": {"email": "m@example.com"}, "amount": 4990}
    first = normalize_cakto(dict(body, secret="s1"))
    reordered = normalize_cakto({"amount": 4990, "customer": {"email": "m@example.com"}, "event": "purchase_approved"})
    other = normalize_cakto(dict(body, amount=5990))
    assert first.fingerprint == reordered.fingerprint
    assert first.fingerprint != other.fingerprint
