"""Entitlement rules derived from ``Profile.plan``.

The stored plan is the only source of entitlement and it is read per
request, never cached.  Free profiles see a preview of each generated
appeal and cannot export; premium profiles get the full text and both
export formats.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from dirigia.core.config import settings
from dirigia.core.errors import LimitReachedError, PremiumRequiredError
from dirigia.models.enums import PlanType
from dirigia.models.tables import Profile

PREVIEW_PLACEHOLDER = "\n\n[... {hidden} caracteres restantes - Assine para ver o conteúdo completo ...]"


@dataclass(frozen=True)
class PlanLimits:
    plan: PlanType
    full_text: bool
    can_export: bool
    resource_limit: Optional[int]  # None => unlimited


def plan_limits(plan: PlanType) -> PlanLimits:
    matrix: Dict[PlanType, PlanLimits] = {
        PlanType.FREE: PlanLimits(
            plan=PlanType.FREE,
            full_text=False,
            can_export=False,
            resource_limit=settings.FREE_PLAN_RESOURCE_LIMIT,
        ),
        PlanType.PREMIUM: PlanLimits(
            plan=PlanType.PREMIUM,
            full_text=True,
            can_export=True,
            resource_limit=None,
        ),
    }
    return matrix.get(plan, matrix[PlanType.FREE])


def is_premium(profile: Profile) -> bool:
    return profile.plan == PlanType.PREMIUM


@dataclass(frozen=True)
class TextView:
    text: str
    truncated: bool
    hidden_chars: int


def preview_text(text: str, premium: bool, preview_chars: Optional[int] = None) -> TextView:
    """Return what a profile may see of ``text``.

    Premium: the text unchanged.  Free: the first ``preview_chars``
    characters followed by a placeholder stating how many are hidden.
    """
    if premium:
        return TextView(text=text, truncated=False, hidden_chars=0)
    limit = settings.FREE_PREVIEW_CHARS if preview_chars is None else preview_chars
    hidden = max(len(text) - limit, 0)
    if hidden == 0:
        return TextView(text=text, truncated=False, hidden_chars=0)
    return TextView(text=text[:limit] + PREVIEW_PLACEHOLDER.format(hidden=hidden), truncated=True, hidden_chars=hidden)


def ensure_can_generate(profile: Profile) -> None:
    """Raise ``LimitReachedError`` when a free profile used up its allowance."""
    limit = plan_limits(profile.plan).resource_limit
    if limit is not None and (profile.resources_count or 0) >= limit:
        raise LimitReachedError(limit)


def ensure_can_export(profile: Profile) -> None:
    """Raise ``PremiumRequiredError`` (with the checkout link) for free profiles."""
    if not plan_limits(profile.plan).can_export:
        raise PremiumRequiredError(settings.CAKTO_CHECKOUT_URL)
