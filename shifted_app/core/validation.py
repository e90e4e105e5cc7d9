import re
from typing import Any, Optional

EMAIL_MAX_LEN = 254
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def clean_str(value: Any, max_len: int) -> Optional[str]:
    """Trim and truncate a free-text value; blank or missing becomes None."""
    if value is None:
        return None
    s = str(value).strip()
    return s[:max_len] if s else None


def normalize_email(value: Any) -> str:
    return str(value or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return len(email) <= EMAIL_MAX_LEN and bool(EMAIL_RE.match(email))


def mask_email(email: str) -> str:
    """ab***@example.com - for logs only."""
    local, sep, domain = (email or "").partition("@")
    if not sep:
        return "***"
    return f"{local[:2]}***@{domain}"
