import re
from datetime import datetime, timezone
from typing import Any, Optional

COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2}$")


def iso_utc_now() -> str:
    """Current UTC time as ISO 8601 with second precision, e.g. 2025-01-31T12:00:00Z."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def normalize_country_code(value: Any) -> Optional[str]:
    """Return the trimmed, uppercased 2-letter code or None if it is not one."""
    if value is None:
        return None
    code = str(value).strip().upper()
    if COUNTRY_CODE_RE.match(code):
        return code
    return None


def parse_positive_int(value: Any) -> Optional[int]:
    """
    Parse an admin level style value.

    Accepts ints and integer strings (surrounding whitespace allowed).
    Booleans, floats, empty strings and non-positive numbers give None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        raw = value.strip()
        if raw.isdigit():
            number = int(raw)
            return number if number > 0 else None
    return None


def format_error(error: BaseException) -> str:
    """Human readable one-line description of an exception."""
    message = str(error).strip()
    if not message:
        return error.__class__.__name__
    return message
