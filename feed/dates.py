"""
Date normalisation for sorting.

Portals publish dates as YYYY-MM-DD, DD-MM-YYYY or DD/MM/YYYY. The feed is
sorted by plain string comparison, so every date is first turned into a
zero-padded YYYY-MM-DD string.
"""

import re

INVALID_DATE = "0000-00-00"

_ISO_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_LEADING_INT_RE = re.compile(r"\s*([+-]?[0-9]+)")


def _leading_int(part: str):
    """Integer at the start of `part` ("2025 10:30" -> 2025), or None."""
    m = _LEADING_INT_RE.match(part)
    return int(m.group(1)) if m else None


def normalize_date(text) -> str:
    """
    Return `text` as YYYY-MM-DD, or INVALID_DATE if it cannot be read.

    INVALID_DATE sorts before every real date, so malformed rows end up
    together at one end of a descending feed.
    """
    if not text:
        return INVALID_DATE

    text = str(text).strip()
    if _ISO_RE.fullmatch(text):
        return text

    parts = text.split("-")
    if len(parts) != 3:
        parts = text.split("/")
    if len(parts) != 3:
        return INVALID_DATE

    day, month, year = (_leading_int(p) for p in parts)
    if day is None or month is None or year is None:
        return INVALID_DATE
    if not (1 <= day <= 31 and 1 <= month <= 12 and 2000 <= year <= 2100):
        return INVALID_DATE

    return f"{year:04d}-{month:02d}-{day:02d}"
