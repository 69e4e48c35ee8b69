"""Payment reconciliation.

Applies canonical webhook events to ``profiles`` and ``payments``.
Guarantees:

* ``payments.billing_id`` is unique and every write is an upsert keyed
  on it, so re-delivered webhooks converge on the same single row.
* A row moves PENDING -> PAID or PENDING -> EXPIRED only.  Terminal rows
  are never rewritten.
* The plan change and the payment upsert commit in one transaction.
* Business outcomes (unknown user, unknown event) are acknowledged;
  only database failures raise.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import logging
import uuid
from typing import Awaitable, Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.core.config import settings
from dirigia.core.errors import WebhookPersistenceError
from dirigia.core.observability import sentry_breadcrumb, sentry_set_tags
from dirigia.models.enums import PaymentEventKind, PaymentStatus, PlanType
from dirigia.models.schemas import CanonicalPaymentEvent, WebhookAck
from dirigia.models.tables import Payment, Profile
from dirigia.services.payment_events import publish_payment_status
from dirigia.utils.sanitization import mask_email

logger = logging.getLogger(__name__)

Publisher = Callable[[str, str, Optional[str]], Awaitable[bool]]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _status_value(status: object) -> Optional[str]:
    if status is None:
        return None
    return status.value if isinstance(status, PaymentStatus) else str(status)


def fallback_billing_id(event: CanonicalPaymentEvent) -> str:
    """Deterministic id for an approval that names no billing.

    Derived from the delivery fingerprint, so a re-delivered webhook maps
    to the row the first delivery created.
    """
    digest = event.fingerprint
    if not digest:
        parts = [event.raw_event, event.user_id or "", (event.email or "").lower(), str(event.amount_cents or "")]
        digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
    return f"{event.provider.value}-{digest[:32]}"


def dialect_insert(session: AsyncSession):
    """Return the dialect ``insert`` that supports ``ON CONFLICT``."""
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"upsert not supported for dialect {name}")


async def insert_pending_payment(
    session: AsyncSession,
    *,
    user_id: str,
    billing_id: str,
    amount_cents: int,
    payment_method: Optional[str],
    plan: str = PlanType.PREMIUM.value,
    br_code: Optional[str] = None,
) -> None:
    """Insert a PENDING row unless one already exists for ``billing_id``.

    Does not commit.
    """
    insert = dialect_insert(session)
    now = _utcnow()
    stmt = (
        insert(Payment)
        .values(
            id=str(uuid.uuid4()),
            user_id=user_id,
            billing_id=billing_id,
            plan=plan,
            amount=amount_cents,
            status=PaymentStatus.PENDING,
            payment_method=payment_method,
            br_code=br_code,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["billing_id"])
    )
    await session.execute(stmt)


class PaymentService:
    def __init__(self, publisher: Optional[Publisher] = None) -> None:
        self.publisher: Publisher = publisher or publish_payment_status

    # ------------------------------------------------------------------ lookups

    async def _payment_status(self, session: AsyncSession, billing_id: str) -> Optional[str]:
        status = await session.scalar(select(Payment.status).where(Payment.billing_id == billing_id))
        return _status_value(status)

    async def resolve_profile(self, session: AsyncSession, event: CanonicalPaymentEvent) -> Optional[Profile]:
        """Find the paying profile: explicit user id, then billing owner, then e-mail."""
        if event.user_id:
            profile = await session.get(Profile, event.user_id)
            if profile is not None:
                return profile
        if event.billing_id:
            owner_id = await session.scalar(select(Payment.user_id).where(Payment.billing_id == event.billing_id))
            if owner_id:
                profile = await session.get(Profile, owner_id)
                if profile is not None:
                    return profile
        if event.email:
            result = await session.execute(
                select(Profile)
                .where(func.lower(Profile.email) == event.email.lower())
                .order_by(Profile.created_at)
                .limit(1)
            )
            return result.scalar_one_or_none()
        return None

    # ------------------------------------------------------------------ dispatch

    async def handle_event(self, session: AsyncSession, event: CanonicalPaymentEvent) -> WebhookAck:
        sentry_set_tags({"payments.provider": event.provider.value, "payments.event": event.raw_event})
        sentry_breadcrumb(
            category="payments",
            message=f"webhook:{event.raw_event}",
            data={"billing_id": event.billing_id, "kind": event.kind.value},
        )
        logger.info(
            "[%s] processing event=%s kind=%s billing=%s",
            event.provider.value, event.raw_event, event.kind.value, event.billing_id,
        )
        try:
            if event.kind == PaymentEventKind.PURCHASE_APPROVED:
                return await self._approve(session, event)
            if event.kind in (PaymentEventKind.REFUNDED, PaymentEventKind.CHARGEBACK):
                return await self._downgrade(session, event, "Refund/chargeback processed")
            if event.kind == PaymentEventKind.SUBSCRIPTION_CANCELED:
                return await self._downgrade(session, event, "Subscription canceled processed")
            if event.kind == PaymentEventKind.CHECKOUT_CREATED:
                return await self._record_pending(session, event)
            if event.kind == PaymentEventKind.EXPIRED:
                return await self._expire(session, event)
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("[%s] database error on event=%s: %s", event.provider.value, event.raw_event, exc)
            raise WebhookPersistenceError() from exc
        logger.info("[%s] event %s acknowledged but no action taken", event.provider.value, event.raw_event)
        return WebhookAck(message=f"Event {event.raw_event} received")

    # ------------------------------------------------------------------ handlers

    async def _approve(self, session: AsyncSession, event: CanonicalPaymentEvent) -> WebhookAck:
        if not (event.user_id or event.billing_id or event.email):
            logger.warning("[%s] approval without customer identification", event.provider.value)
            return WebhookAck(message="Missing customer email")
        profile = await self.resolve_profile(session, event)
        if profile is None:
            logger.error("[%s] user not found for email=%s", event.provider.value, mask_email(event.email))
            return WebhookAck(message="User not found but webhook received")

        billing_id = event.billing_id
        if not billing_id:
            billing_id = fallback_billing_id(event)
            logger.warning("[%s] approval without billing id; recorded as %s", event.provider.value, billing_id)
        previous = await self._payment_status(session, billing_id)
        now = _utcnow()

        await session.execute(
            update(Profile)
            .where(Profile.id == profile.id)
            .values(plan=PlanType.PREMIUM, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        insert = dialect_insert(session)
        stmt = insert(Payment).values(
            id=str(uuid.uuid4()),
            user_id=profile.id,
            billing_id=billing_id,
            plan=PlanType.PREMIUM.value,
            amount=event.amount_cents if event.amount_cents is not None else settings.PLAN_PRICE_MONTHLY_CENTS,
            status=PaymentStatus.PAID,
            payment_method=event.payment_method,
            br_code=event.br_code,
            paid_at=now,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["billing_id"],
            set_={"status": PaymentStatus.PAID, "paid_at": now, "updated_at": now},
            where=Payment.status == PaymentStatus.PENDING,
        )
        await session.execute(stmt)
        await session.commit()

        current = await self._payment_status(session, billing_id)
        if previous == PaymentStatus.EXPIRED.value:
            logger.warning("[%s] approval for expired billing=%s left unchanged", event.provider.value, billing_id)
        logger.info("[%s] user %s upgraded to premium (billing=%s)", event.provider.value, profile.id, billing_id)
        sentry_breadcrumb(category="payments", message="approved", data={"billing_id": billing_id})
        await self._publish_if_changed(billing_id, previous, current)
        return WebhookAck(message="User upgraded to premium")

    async def _downgrade(self, session: AsyncSession, event: CanonicalPaymentEvent, message: str) -> WebhookAck:
        profile = await self.resolve_profile(session, event)
        if profile is None:
            logger.warning(
                "[%s] %s for unknown user email=%s", event.provider.value, event.raw_event, mask_email(event.email)
            )
            return WebhookAck(message=message)
        await session.execute(
            update(Profile)
            .where(Profile.id == profile.id)
            .values(plan=PlanType.FREE, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        logger.info("[%s] user %s downgraded to free due to %s", event.provider.value, profile.id, event.raw_event)
        sentry_breadcrumb(category="payments", message="downgraded", data={"user_id": profile.id, "kind": event.kind.value})
        return WebhookAck(message=message)

    async def _record_pending(self, session: AsyncSession, event: CanonicalPaymentEvent) -> WebhookAck:
        if not event.billing_id:
            return WebhookAck(message=f"Event {event.raw_event} received")
        profile = await self.resolve_profile(session, event)
        if profile is None:
            logger.info("[%s] pending billing=%s for unknown user", event.provider.value, event.billing_id)
            return WebhookAck(message="User not found but webhook received")
        await insert_pending_payment(
            session,
            user_id=profile.id,
            billing_id=event.billing_id,
            amount_cents=event.amount_cents if event.amount_cents is not None else settings.PLAN_PRICE_MONTHLY_CENTS,
            payment_method=event.payment_method,
            br_code=event.br_code,
        )
        await session.commit()
        return WebhookAck(message="Pending payment recorded")

    async def _expire(self, session: AsyncSession, event: CanonicalPaymentEvent) -> WebhookAck:
        if not event.billing_id:
            return WebhookAck(message=f"Event {event.raw_event} received")
        result = await session.execute(
            update(Payment)
            .where(Payment.billing_id == event.billing_id, Payment.status == PaymentStatus.PENDING)
            .values(status=PaymentStatus.EXPIRED, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        if result.rowcount:
            await self._publish_if_changed(event.billing_id, PaymentStatus.PENDING.value, PaymentStatus.EXPIRED.value)
        return WebhookAck(message="Payment expiration processed")

    async def _publish_if_changed(self, billing_id: str, previous: Optional[str], current: Optional[str]) -> None:
        if current is None or current == previous:
            return
        await self.publisher(billing_id, current, previous)
