from __future__ import annotations

import re
from email.utils import parseaddr

EMAIL_PATTERN = re.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)+$"
)
MAX_EMAIL_LENGTH = 320
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15


def normalize_email(email: str | None) -> str:
    """Return a normalized email string for comparisons and storage."""
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    """Return True when an email has a pragmatic valid format."""
    if not email or len(email) > MAX_EMAIL_LENGTH:
        return False
    if "\r" in email or "\n" in email:
        return False
    _, parsed = parseaddr(email)
    if parsed != email:
        return False
    return bool(EMAIL_PATTERN.fullmatch(email))


def sanitize_email(email: str | None) -> str | None:
    """Normalize an email and return None when invalid."""
    normalized = normalize_email(email)
    return normalized if is_valid_email(normalized) else None


def sanitize_phone(phone: str | None) -> str | None:
    """Normalize a phone number to E.164, or None when it cannot be dialed.

    Ten-digit numbers are treated as North American and get a ``+1`` prefix.
    """
    text = str(phone or "").strip()
    if not text or "\r" in text or "\n" in text:
        return None
    digits = re.sub(r"\D", "", text)
    if len(digits) == MIN_PHONE_DIGITS and not text.startswith("+"):
        return f"+1{digits}"
    if MIN_PHONE_DIGITS < len(digits) <= MAX_PHONE_DIGITS or (
        len(digits) == MIN_PHONE_DIGITS and text.startswith("+")
    ):
        return f"+{digits}"
    return None
