"""
Input sanitization utilities for API payloads.
Provides functions to clean and validate string inputs.
"""

import re
from typing import Optional

def sanitize_string(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    # Remove leading/trailing whitespace and dangerous characters
    value = value.strip()
    # Remove control characters
    value = re.sub(r'[\x00-\x1F\x7F]', '', value)
    # Escape HTML
    value = value.replace('<', '&lt;').replace('>', '&gt;')
    return value


def digits_only(value: Optional[str]) -> str:
    """Strip masks from CPF / phone input (``123.456.789-00`` -> ``12345678900``)."""
    if not value:
        return ""
    return re.sub(r'\D', '', str(value))


def mask_email(email: Optional[str]) -> str:
    """Return a log-safe form of an e-mail address (``j***@example.com``)."""
    if not email or "@" not in email:
        return "<none>"
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"
