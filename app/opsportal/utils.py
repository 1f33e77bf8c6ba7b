"""
Formatting helpers shared by services, templates and the JSON API.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, DecimalException
from typing import Any

UNKNOWN_DATE = "?"


def _coerce_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None
    return None


def format_date(value: Any, utc: bool = False) -> str:
    """'Mar 5, 2025' for a datetime/date/ISO string; '?' when missing or unparseable."""
    dt = _coerce_datetime(value)
    if dt is None:
        return UNKNOWN_DATE
    if utc and dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}"


def format_datetime(value: Any) -> str:
    dt = _coerce_datetime(value)
    if dt is None:
        return UNKNOWN_DATE
    hour = dt.hour % 12 or 12
    ampm = "AM" if dt.hour < 12 else "PM"
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}, {hour}:{dt.minute:02d} {ampm}"


def to_snake_case(text: str | None) -> str:
    if not text:
        return ""
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", text.strip())
    s = re.sub(r"[^0-9a-zA-Z]+", "_", s)
    return s.strip("_").lower()


def format_label(text: str | None) -> str:
    """snake_case / kebab-case → Title Case."""
    if not text:
        return ""
    return " ".join(w.capitalize() for w in re.split(r"[_\-\s]+", text.strip()) if w)


def truncate(text: str | None, length: int = 50) -> str:
    if text is None:
        return ""
    if len(text) <= length:
        return text
    return text[:length] + "..."


def dollars_to_cents(value: Any) -> int | None:
    """'12.34' → 1234. Empty, zero and junk input map to None (column left unset)."""
    if value is None:
        return None
    raw = str(value).strip().replace("$", "").replace(",", "")
    if not raw:
        return None
    try:
        amount = Decimal(raw)
        # "nan" and "inf" parse as Decimals but have no cent value.
        if not amount.is_finite():
            return None
        cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except DecimalException:
        return None
    return cents or None


def cents_to_dollars(cents: int | None) -> str:
    if cents is None:
        return ""
    return f"{cents / 100:,.2f}"


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD date string."""
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def parse_int(value: Any) -> int | None:
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "on", "yes", "y")


def clean(value: Any) -> str | None:
    """Form string → stripped value, or None when blank."""
    if value is None:
        return None
    return str(value).strip() or None
