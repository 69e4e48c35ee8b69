"""Security and authentication utilities for Supabase-issued JWTs.

Tokens are verified with ``python-jose``.  Projects using the legacy
shared secret sign with HS256 (``SUPABASE_JWT_SECRET``); projects with
asymmetric signing keys publish a JWKS at
``{SUPABASE_URL}/auth/v1/.well-known/jwks.json`` which is fetched with
``requests`` and cached in memory.  The audience claim must match
``SUPABASE_JWT_AUDIENCE`` (``authenticated`` by default).

The local ``profiles`` row is created on first sight of a user, on the
free plan.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.core.config import settings
from dirigia.core.database import get_db
from dirigia.core.errors import AuthConfigurationError, AuthError
from dirigia.models.enums import PlanType
from dirigia.models.tables import Profile

logger = logging.getLogger(__name__)

auth_scheme = HTTPBearer(auto_error=False)

DEV_USER_ID = "00000000-0000-0000-0000-000000000001"
DEV_USER_EMAIL = "dev@example.com"

# JWKS cache.  Cleared once on an unknown kid (key rotation).
_supabase_jwks: Optional[Dict] = None


def _jwks_url() -> str:
    if not settings.SUPABASE_URL:
        raise AuthConfigurationError("SUPABASE_URL is not configured")
    return f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/.well-known/jwks.json"


def get_supabase_jwks() -> Dict:
    """Fetch and cache the JWKS used to verify asymmetric Supabase tokens."""
    global _supabase_jwks
    if _supabase_jwks is not None:
        return _supabase_jwks
    try:
        resp = requests.get(_jwks_url(), timeout=5)
        resp.raise_for_status()
        data = resp.json()
    except requests.RequestException as exc:
        logger.error("[auth] failed to fetch JWKS: %s", exc)
        raise AuthConfigurationError("Failed to fetch JWKS") from exc
    if not isinstance(data, dict) or "keys" not in data:
        raise AuthConfigurationError("Invalid JWKS payload from Supabase")
    _supabase_jwks = data
    return data


def _find_key(kid: Optional[str]) -> Dict:
    global _supabase_jwks
    key = next((k for k in get_supabase_jwks().get("keys", []) if k.get("kid") == kid), None)
    if key is None:
        _supabase_jwks = None
        key = next((k for k in get_supabase_jwks().get("keys", []) if k.get("kid") == kid), None)
    if key is None:
        raise AuthError("Unknown signing key (kid) for token")
    return key


def decode_supabase_jwt(token: str) -> Dict:
    """Decode and verify a Supabase access token.

    Raises:
        AuthError: if the token is malformed, expired or invalid.
    """
    try:
        header = jwt.get_unverified_header(token)
    except Exception as exc:
        raise AuthError(f"Invalid token header: {exc}") from exc
    alg = header.get("alg") or "HS256"
    try:
        if alg == "HS256":
            if not settings.SUPABASE_JWT_SECRET:
                raise AuthConfigurationError("SUPABASE_JWT_SECRET is not configured")
            return jwt.decode(
                token,
                settings.SUPABASE_JWT_SECRET,
                algorithms=["HS256"],
                audience=settings.SUPABASE_JWT_AUDIENCE,
            )
        key = _find_key(header.get("kid"))
        return jwt.decode(token, key, algorithms=[alg], audience=settings.SUPABASE_JWT_AUDIENCE)
    except (AuthError, AuthConfigurationError):
        raise
    except Exception as exc:
        raise AuthError(f"Invalid token: {exc}") from exc


async def get_or_create_profile(db: AsyncSession, user_id: str, email: Optional[str], name: Optional[str]) -> Profile:
    profile = await db.get(Profile, user_id)
    if profile is not None:
        return profile
    profile = Profile(id=user_id, email=email, name=name or email, plan=PlanType.FREE, resources_count=0)
    db.add(profile)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent first request created it
        await db.rollback()
        profile = await db.get(Profile, user_id)
        if profile is None:
            raise
    return profile


async def profile_from_token(db: AsyncSession, token: str) -> Profile:
    payload = decode_supabase_jwt(token)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Invalid token: no sub claim")
    metadata = payload.get("user_metadata") or {}
    name = metadata.get("name") or metadata.get("full_name")
    return await get_or_create_profile(db, str(user_id), payload.get("email"), name)


async def get_current_profile(
    request: Request,
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
) -> Profile:
    """Resolve the profile of the authenticated caller.

    With ``DEV_AUTH_BYPASS`` a fixed development profile is returned.
    """
    if settings.DEV_AUTH_BYPASS:
        return await get_or_create_profile(db, DEV_USER_ID, DEV_USER_EMAIL, "Dev User")
    if credentials is None or not credentials.credentials:
        raise AuthError("Missing bearer token")
    profile = await profile_from_token(db, credentials.credentials)
    request.state.user_id = profile.id
    return profile
