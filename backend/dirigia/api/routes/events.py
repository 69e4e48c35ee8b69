"""Server-Sent Events (SSE) endpoints.

Exposes a payment status stream backed by Redis pub/sub.  The stream
subscribes to the per-billing channel the webhook handler publishes to:
``payments:billing:{billing_id}``.

Browser ``EventSource`` cannot attach an ``Authorization`` header, so the
access token may also be passed as ``?token=``.
"""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import StreamingResponse

from dirigia.api.dependencies import get_db, get_redis_client
from dirigia.core.config import settings
from dirigia.core.errors import AuthError, NotFoundError
from dirigia.core.security import DEV_USER_EMAIL, DEV_USER_ID, get_or_create_profile, profile_from_token
from dirigia.models.tables import Payment, Profile
from dirigia.services.payment_events import payment_channel

router = APIRouter(prefix="/events", tags=["events"])

KEEPALIVE_SECONDS = 15.0


async def _payment_event_stream(pubsub, channel: str, snapshot: Optional[dict] = None) -> AsyncIterator[bytes]:
    """Yield SSE frames: the current status first, then relayed pub/sub messages."""
    try:
        yield b": connected\n\n"
        if snapshot is not None:
            yield _status_frame(json.dumps(snapshot))
        while True:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=KEEPALIVE_SECONDS)
            if message and message.get("type") == "message":
                data = message.get("data")
                if isinstance(data, bytes):
                    data = data.decode("utf-8", errors="ignore")
                try:
                    json.loads(data)
                    payload = data
                except (TypeError, ValueError):
                    payload = json.dumps({"raw": data})
                yield _status_frame(payload)
            else:
                # Comment frames are ignored by browsers
                yield b": keep-alive\n\n"
                await asyncio.sleep(0)
    finally:
        try:
            await pubsub.unsubscribe(channel)
        finally:
            await pubsub.close()


def _status_frame(payload: str) -> bytes:
    return f"event: payment_status\ndata: {payload}\n\n".encode("utf-8")


async def subscribe_with_snapshot(db: AsyncSession, redis_client, billing_id: str):
    """Subscribe to the billing channel, then read the stored status.

    Reading after subscribing means a transition committed before the
    client connected still reaches it, as the snapshot or as a message.
    """
    pubsub = redis_client.pubsub()
    channel = payment_channel(billing_id)
    await pubsub.subscribe(channel)
    try:
        # Fresh transaction; an earlier read may pin an older snapshot
        await db.commit()
        status = await db.scalar(select(Payment.status).where(Payment.billing_id == billing_id))
    except Exception:
        try:
            await pubsub.unsubscribe(channel)
        finally:
            await pubsub.close()
        raise
    snapshot = None
    if status is not None:
        snapshot = {"billingId": billing_id, "status": getattr(status, "value", status), "previousStatus": None}
    return pubsub, channel, snapshot


async def _stream_profile(request: Request, db: AsyncSession, token: Optional[str]) -> Profile:
    if settings.DEV_AUTH_BYPASS:
        return await get_or_create_profile(db, DEV_USER_ID, DEV_USER_EMAIL, "Dev User")
    auth_header = request.headers.get("Authorization") or ""
    if auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):].strip()
    if not token:
        raise AuthError("Missing auth token")
    return await profile_from_token(db, token)


@router.get("/payments/{billing_id}")
async def payment_status_stream(
    billing_id: str,
    request: Request,
    token: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis_client),
):
    """SSE stream of status transitions for one of the caller's payments.

    The first ``event: payment_status`` frame carries the stored status;
    later frames hold ``billingId``, ``status`` and ``previousStatus`` for
    each transition.  Query-string tokens may end up in proxy logs; they
    are verified exactly like header tokens.
    """
    profile = await _stream_profile(request, db, token)
    owner = await db.scalar(select(Payment.user_id).where(Payment.billing_id == billing_id))
    if owner != profile.id:
        raise NotFoundError("Pagamento não encontrado")

    pubsub, channel, snapshot = await subscribe_with_snapshot(db, redis, billing_id)
    return StreamingResponse(
        _payment_event_stream(pubsub, channel, snapshot),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
