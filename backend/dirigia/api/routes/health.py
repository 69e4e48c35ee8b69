from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.api.dependencies import get_db
from dirigia.core.config import settings
from dirigia.services.payment_events import get_redis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.api_route("/health", methods=["GET", "HEAD"])
async def health_check():
    """Health check endpoint (supports GET & HEAD)."""
    return {"status": "healthy"}


@router.get("/health/detailed")
async def detailed_health(db: AsyncSession = Depends(get_db)):
    """Probe the database and Redis; ``degraded`` when either fails."""
    checks = {}
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        logger.warning("[health] database check failed: %s", exc)
        checks["database"] = "error"

    client = get_redis()
    if client is None:
        checks["redis"] = "disabled"
    else:
        try:
            await client.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            logger.warning("[health] redis check failed: %s", exc)
            checks["redis"] = "error"

    healthy = "error" not in checks.values()
    return {
        "status": "healthy" if healthy else "degraded",
        "environment": settings.ENVIRONMENT,
        "checks": checks,
    }
