"""Realtime payment status fan-out over Redis pub/sub.

Each persisted status transition is published on
``payments:billing:{billing_id}``; the SSE route relays that channel to
the payment's owner.  Publishing is best-effort: the database row is
the source of truth and clients can always poll it.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from dirigia.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[aioredis.Redis] = None


def payment_channel(billing_id: str) -> str:
    return f"payments:billing:{billing_id}"


def get_redis() -> Optional[aioredis.Redis]:
    """Return a singleton async Redis client, or None when ``REDIS_URL`` is empty."""
    global _redis_client
    if not settings.REDIS_URL:
        return None
    if _redis_client is None:
        _redis_client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


async def publish_payment_status(
    billing_id: str,
    status: str,
    previous_status: Optional[str] = None,
    redis_client: Optional[aioredis.Redis] = None,
) -> bool:
    """Publish one status change; returns False when nothing was sent."""
    client = redis_client or get_redis()
    if client is None:
        return False
    payload = {"billingId": billing_id, "status": status, "previousStatus": previous_status}
    try:
        await client.publish(payment_channel(billing_id), json.dumps(payload))
    except (RedisError, OSError) as exc:
        logger.warning("[payments] failed to publish status billing=%s: %s", billing_id, exc)
        return False
    return True
