"""Profile housekeeping and capture-permission preferences.

Capture preferences remember that a user already granted camera or file
access so the client can skip its priming dialog.  Grants expire after
``CAPTURE_PERMISSION_TTL_DAYS``; they are UX hints, never a security
control.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.core.config import settings
from dirigia.core.errors import PersistenceError
from dirigia.models.enums import CaptureMode
from dirigia.models.schemas import CapturePermission, CapturePreferences
from dirigia.models.tables import CapturePreference, OcrRaw, Payment, Profile, Resource

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _aware(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def _to_permission(mode: CaptureMode, row: Optional[CapturePreference], now: dt.datetime) -> CapturePermission:
    if row is None:
        return CapturePermission(mode=mode)
    expires_at = _aware(row.expires_at)
    active = bool(row.granted) and (expires_at is None or expires_at > now)
    return CapturePermission(
        mode=mode,
        granted=active,
        granted_at=_aware(row.granted_at),
        expires_at=expires_at,
        should_prompt=not active,
    )


async def get_capture_preferences(session: AsyncSession, user_id: str, now: Optional[dt.datetime] = None) -> CapturePreferences:
    now = now or _utcnow()
    result = await session.execute(select(CapturePreference).where(CapturePreference.user_id == user_id))
    rows: Dict[CaptureMode, CapturePreference] = {CaptureMode(r.mode): r for r in result.scalars().all()}
    return CapturePreferences(
        camera=_to_permission(CaptureMode.CAMERA, rows.get(CaptureMode.CAMERA), now),
        file=_to_permission(CaptureMode.FILE, rows.get(CaptureMode.FILE), now),
    )


async def set_capture_permission(
    session: AsyncSession,
    user_id: str,
    mode: CaptureMode,
    granted: bool,
    now: Optional[dt.datetime] = None,
) -> CapturePermission:
    now = now or _utcnow()
    row = await session.scalar(
        select(CapturePreference).where(CapturePreference.user_id == user_id, CapturePreference.mode == mode)
    )
    if row is None:
        row = CapturePreference(user_id=user_id, mode=mode)
        session.add(row)
    row.granted = granted
    row.granted_at = now if granted else None
    row.expires_at = now + dt.timedelta(days=settings.CAPTURE_PERMISSION_TTL_DAYS) if granted else None
    row.updated_at = now
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("[profile] failed to store capture preference user=%s mode=%s: %s", user_id, mode.value, exc)
        raise PersistenceError() from exc
    return _to_permission(mode, row, now)


async def update_profile_name(session: AsyncSession, profile: Profile, name: str) -> Profile:
    profile.name = name
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise PersistenceError() from exc
    return profile


async def delete_account_data(session: AsyncSession, user_id: str) -> None:
    """Remove every row owned by ``user_id`` and the profile itself."""
    try:
        for model in (Resource, OcrRaw, Payment, CapturePreference):
            await session.execute(delete(model).where(model.user_id == user_id))
        await session.execute(delete(Profile).where(Profile.id == user_id))
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("[profile] failed to delete account data user=%s: %s", user_id, exc)
        raise PersistenceError() from exc
    logger.info("[profile] account data deleted user=%s", user_id)
