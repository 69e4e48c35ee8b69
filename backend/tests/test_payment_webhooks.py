from __future__ import annotations

import json

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from dirigia.api.dependencies import get_payment_service
from dirigia.models.enums import PaymentStatus, PlanType
from dirigia.models.tables import Payment, Profile
from dirigia.services.payment_service import PaymentService


class RecordingPublisher:
    def __init__(self):
        self.calls = []

    async def __call__(self, billing_id, status, previous_status=None):
        self.calls.append((billing_id, status, previous_status))
        return True


@pytest.fixture
def published(app):
    publisher = RecordingPublisher()
    app.dependency_overrides[get_payment_service] = lambda: PaymentService(publisher)
    return publisher.calls


@pytest.fixture
def user(seed, profile_factory):
    return seed(profile_factory(email="motorista@example.com"))


def _cakto(event: str, email: str = "Motorista@Example.com", order_id: str = "ord_1", **extra):
    body = {"event": event, "customer": {"email": email}, "order": {"id": order_id, "amount": 49.9}}
    body.update(extra)
    return body


def _plan(query, user_id="user-1"):
    return query(select(Profile.plan).where(Profile.id == user_id))[0][0]


def _payments(query):
    return query(select(Payment.billing_id, Payment.status, Payment.amount, Payment.user_id))


def test_purchase_approved_upgrades_and_records_payment(client, user, published, query):
    resp = client.post("/webhooks/cakto", json=_cakto("purchase_approved"))
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "User upgraded to premium"}
    assert _plan(query) == PlanType.PREMIUM
    rows = _payments(query)
    assert len(rows) == 1
    assert rows[0].billing_id == "ord_1"
    assert rows[0].status == PaymentStatus.PAID
    assert rows[0].amount == 4990
    assert rows[0].user_id == "user-1"
    assert published == [("ord_1", "PAID", None)]


def test_replayed_approval_is_idempotent(client, user, published, query):
    for _ in range(3):
        assert client.post("/webhooks/cakto", json=_cakto("purchase_approved")).status_code == 200
    assert len(_payments(query)) == 1
    assert _plan(query) == PlanType.PREMIUM
    # Only the first delivery changed the row
    assert published == [("ord_1", "PAID", None)]


def test_replayed_approval_without_billing_id_keeps_one_row(client, user, published, query):
    body = {"event": "purchase_approved", "customer": {"email": "motorista@example.com"}}
    for _ in range(2):
        assert client.post("/webhooks/cakto", json=body).status_code == 200
    rows = _payments(query)
    assert len(rows) == 1
    assert rows[0].billing_id.startswith("cakto-")
    assert rows[0].status == PaymentStatus.PAID
    assert len(published) == 1


def test_distinct_approvals_without_billing_id_are_kept_apart(client, user, published, query):
    first = {"event": "purchase_approved", "customer": {"email": "motorista@example.com"}, "amount": 4990}
    second = dict(first, amount=49900)
    client.post("/webhooks/cakto", json=first)
    client.post("/webhooks/cakto", json=second)
    assert sorted(r.amount for r in _payments(query)) == [4990, 49900]


def test_database_failure_is_a_retryable_error(client, user, published, query, monkeypatch):
    async def broken(self, session, event):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(PaymentService, "resolve_profile", broken)
    resp = client.post("/webhooks/cakto", json=_cakto("purchase_approved"))
    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["kind"] == "persistence"
    assert _payments(query) == []
    assert published == []


def test_unknown_user_is_acknowledged(client, user, published, query):
    resp = client.post("/webhooks/cakto", json=_cakto("purchase_approved", email="ninguem@example.com"))
    assert resp.status_code == 200
    assert resp.json()["message"] == "User not found but webhook received"
    assert _payments(query) == []
    assert _plan(query) == PlanType.FREE


def test_approval_without_customer_is_acknowledged(client, user, published):
    resp = client.post("/webhooks/cakto", json={"event": "purchase_approved"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Missing customer email"


@pytest.mark.parametrize(
    "event, message",
    [("refund", "Refund/chargeback processed"), ("chargeback", "Refund/chargeback processed"),
     ("subscription_canceled", "Subscription canceled processed")],
)
def test_downgrade_events(client, seed, profile_factory, published, query, event, message):
    seed(profile_factory(plan=PlanType.PREMIUM))
    resp = client.post("/webhooks/cakto", json=_cakto(event))
    assert resp.status_code == 200
    assert resp.json()["message"] == message
    assert _plan(query) == PlanType.FREE


def test_unknown_event_is_acknowledged(client, user, published, query):
    resp = client.post("/webhooks/cakto", json=_cakto("boleto_vencido"))
    assert resp.status_code == 200
    assert resp.json()["message"] == "Event boleto_vencido received"
    assert _plan(query) == PlanType.FREE


def test_missing_event_is_bad_request(client, published):
    resp = client.post("/webhooks/cakto", json={"customer": {"email": "a@b.com"}})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Invalid payload - missing event"


def test_malformed_json_is_bad_request(client, published):
    resp = client.post("/webhooks/cakto", content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_cakto_secret_is_enforced_when_configured(client, user, published, query, monkeypatch):
    from dirigia.core import config as cfg

    monkeypatch.setattr(cfg.settings, "CAKTO_WEBHOOK_SECRET", "s3cret")
    resp = client.post("/webhooks/cakto", json=_cakto("purchase_approved", secret="wrong"))
    assert resp.status_code == 401
    assert _plan(query) == PlanType.FREE

    resp = client.post("/webhooks/cakto", json=_cakto("purchase_approved", secret="s3cret"))
    assert resp.status_code == 200
    assert _plan(query) == PlanType.PREMIUM


def test_abacatepay_secret_in_query(client, user, published, monkeypatch):
    from dirigia.core import config as cfg

    monkeypatch.setattr(cfg.settings, "ABACATEPAY_WEBHOOK_SECRET", "abc")
    body = {"event": "billing.paid", "data": {"billing": {"id": "bill_1"}}}
    assert client.post("/webhooks/abacatepay", json=body).status_code == 401
    assert client.post("/webhooks/abacatepay?webhookSecret=abc", json=body).status_code == 200


def test_pending_billing_is_paid_via_owner(client, seed, profile_factory, published, query):
    seed(
        profile_factory(),
        Payment(user_id="user-1", billing_id="bill_1", amount=4990, status=PaymentStatus.PENDING, payment_method="PIX"),
    )
    body = {"event": "billing.paid", "data": {"billing": {"id": "bill_1"}, "payment": {"amount": 4990}}}
    resp = client.post("/webhooks/abacatepay", json=body)
    assert resp.status_code == 200
    assert resp.json()["message"] == "User upgraded to premium"
    rows = _payments(query)
    assert [(r.billing_id, r.status) for r in rows] == [("bill_1", PaymentStatus.PAID)]
    assert _plan(query) == PlanType.PREMIUM
    assert published == [("bill_1", "PAID", "PENDING")]


def test_expiry_only_touches_pending_rows(client, seed, profile_factory, published, query):
    seed(
        profile_factory(),
        Payment(user_id="user-1", billing_id="pix_1", amount=4990, status=PaymentStatus.PENDING),
        Payment(user_id="user-1", billing_id="pix_2", amount=4990, status=PaymentStatus.PAID),
    )
    for billing_id in ("pix_1", "pix_2"):
        resp = client.post("/webhooks/abacatepay", json={"event": "pix.expired", "data": {"pixQrCode": {"id": billing_id}}})
        assert resp.status_code == 200

    statuses = {r.billing_id: r.status for r in _payments(query)}
    assert statuses == {"pix_1": PaymentStatus.EXPIRED, "pix_2": PaymentStatus.PAID}
    assert published == [("pix_1", "EXPIRED", "PENDING")]


def test_late_approval_does_not_revive_expired_payment(client, seed, profile_factory, published, query):
    seed(
        profile_factory(),
        Payment(user_id="user-1", billing_id="pix_1", amount=4990, status=PaymentStatus.EXPIRED),
    )
    body = {"event": "pix.paid", "data": {"pixQrCode": {"id": "pix_1"}}}
    resp = client.post("/webhooks/abacatepay", content=json.dumps(body))
    assert resp.status_code == 200
    assert [r.status for r in _payments(query)] == [PaymentStatus.EXPIRED]
    assert published == []


def test_checkout_created_records_pending_row(client, user, published, query):
    resp = client.post("/webhooks/cakto", json=_cakto("pix_gerado", order_id="ord_9"))
    assert resp.status_code == 200
    assert resp.json()["message"] == "Pending payment recorded"
    rows = _payments(query)
    assert [(r.billing_id, r.status) for r in rows] == [("ord_9", PaymentStatus.PENDING)]
    # Re-delivery keeps the single row
    client.post("/webhooks/cakto", json=_cakto("pix_gerado", order_id="ord_9"))
    assert len(_payments(query)) == 1
