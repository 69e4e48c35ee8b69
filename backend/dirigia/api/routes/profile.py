from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.api.dependencies import get_current_profile, get_db
from dirigia.models.enums import CaptureMode
from dirigia.models.schemas import (
    CapturePermission,
    CapturePermissionUpdate,
    CapturePreferences,
    ProfileRead,
    ProfileUpdate,
)
from dirigia.models.tables import Profile
from dirigia.services.entitlement_service import is_premium
from dirigia.services.profile_service import (
    delete_account_data,
    get_capture_preferences,
    set_capture_permission,
    update_profile_name,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


def _read(profile: Profile) -> ProfileRead:
    return ProfileRead(
        id=profile.id,
        name=profile.name,
        email=profile.email,
        plan=profile.plan,
        resources_count=profile.resources_count or 0,
        is_premium=is_premium(profile),
        created_at=profile.created_at,
    )


@router.get("/me", response_model=ProfileRead)
async def read_profile(profile: Profile = Depends(get_current_profile)):
    return _read(profile)


@router.patch("/me", response_model=ProfileRead)
async def update_profile(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    profile = await update_profile_name(db, profile, body.name)
    return _read(profile)


@router.delete("/me", status_code=204)
async def delete_profile(
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """Delete the caller's profile and every row they own."""
    await delete_account_data(db, profile.id)
    return Response(status_code=204)


@router.get("/me/capture-preferences", response_model=CapturePreferences)
async def read_capture_preferences(
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return await get_capture_preferences(db, profile.id)


@router.put("/me/capture-preferences/{mode}", response_model=CapturePermission)
async def update_capture_preference(
    mode: CaptureMode,
    body: CapturePermissionUpdate,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """Remember (or revoke) a camera/file access grant."""
    return await set_capture_permission(db, profile.id, mode, body.granted)
