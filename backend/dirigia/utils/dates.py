"""Date helpers for infraction dates read from notices.

Notices print dates as ``DD/MM/YYYY``; the database and the review
form use ISO ``YYYY-MM-DD``.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Optional

_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_BR_SLASH_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_BR_DASH_RE = re.compile(r"^(\d{2})-(\d{2})-(\d{4})$")


def to_review_date(value: Optional[str]) -> Optional[str]:
    """Convert ``DD/MM/YYYY`` to ``YYYY-MM-DD`` for the review form.

    Any other value is returned unchanged; no validation is applied here.
    """
    if not value:
        return value
    m = _BR_SLASH_RE.match(value.strip())
    if not m:
        return value
    day, month, year = m.groups()
    return f"{year}-{month}-{day}"


def clean_infraction_date(value: Optional[str], today: Optional[dt.date] = None) -> Optional[dt.date]:
    """Parse an infraction date for storage.

    Accepts ``YYYY-MM-DD``, ``DD/MM/YYYY`` and ``DD-MM-YYYY``.  Returns
    ``None`` for other formats, impossible calendar dates (31/02) and
    dates after ``today``.
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    iso = _ISO_RE.match(text)
    br = _BR_SLASH_RE.match(text) or _BR_DASH_RE.match(text)
    if iso:
        year, month, day = iso.groups()
    elif br:
        day, month, year = br.groups()
    else:
        return None
    try:
        parsed = dt.date(int(year), int(month), int(day))
    except ValueError:
        return None
    if parsed > (today or dt.date.today()):
        return None
    return parsed
