"""Field-level coercion helpers applied to every raw value before arithmetic."""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any

from openpyxl.utils.datetime import from_excel

_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
_DATE_FORMATS = ("%d/%m/%Y", "%Y/%m/%d", "%d/%m/%Y %H:%M", "%Y-%m-%d %H:%M:%S")


def normalize_number(raw: Any, fallback: float = 0.0) -> float:
    """Coerce arbitrary input to a finite float, returning `fallback` otherwise.

    Text is stripped of everything except digits, sign, and decimal point, so
    `"$1,250.50"` reads as `1250.5`. Never raises.
    """

    if raw is None or raw == "":
        return fallback
    if isinstance(raw, (int, float)):
        return float(raw) if math.isfinite(raw) else fallback

    cleaned = _NON_NUMERIC_RE.sub("", str(raw))
    if not cleaned:
        return fallback
    try:
        value = float(cleaned)
    except ValueError:
        return fallback
    return value if math.isfinite(value) else fallback


def parse_adjustment(raw: Any) -> float:
    """Parse a sold/received draft value, clamping negatives to zero."""

    return max(0.0, normalize_number(raw, 0.0))


def normalize_text(raw: Any) -> str:
    """Trim text and collapse missing values to an empty string."""

    if raw is None:
        return ""
    return str(raw).strip()


def as_utc(value: datetime) -> datetime:
    """Return `value` as an aware UTC datetime, treating naive values as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse a timestamp cell into an aware UTC datetime.

    Accepts datetimes, dates, spreadsheet serial numbers, ISO-8601 text and a
    couple of day-first layouts. Anything else yields `None`.
    """

    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return as_utc(raw)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day, tzinfo=timezone.utc)
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw) or raw <= 0:
            return None
        try:
            return as_utc(from_excel(raw))
        except (OverflowError, ValueError):
            return None

    text = str(raw).strip()
    if not text:
        return None
    try:
        return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return as_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue
    return None
