"""Composite keys and normalisation of loosely typed values.

Every helper here is total: bad input yields ``None``/``""``/``False``
instead of raising, because the functions run on every cell lookup.
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from typing import Any, List, Optional

NO_SHOW = 0

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CLOCK_12H = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$")
_CLOCK_24H = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_HEX = re.compile(r"^#?[0-9a-fA-F]{6}$")
_TRUE_WORDS = {"true", "t", "1", "yes", "y", "on"}


def normalize_id(value: Any) -> Optional[int]:
    """Positive integer id or ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0 or number != int(number):
        return None
    return int(number)


def normalize_date(value: Any) -> str:
    """Strict ``YYYY-MM-DD`` or ``""``; other formats are not coerced."""
    if isinstance(value, datetime):
        return ""
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        return ""
    try:
        date.fromisoformat(value)
    except ValueError:
        return ""
    return value


def normalize_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_WORDS
    return bool(value)


def normalize_time(value: Any) -> Optional[str]:
    """Clock value as ``HH:MM:SS``; accepts ``7:00 PM``, ``19:00`` and ``19:00:00``."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    match = _CLOCK_12H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        meridiem = match.group(3).upper()
        if not 1 <= hour <= 12 or minute > 59:
            return None
        if meridiem == "PM" and hour < 12:
            hour += 12
        if meridiem == "AM" and hour == 12:
            hour = 0
        return f"{hour:02d}:{minute:02d}:00"
    match = _CLOCK_24H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        second = int(match.group(3) or 0)
        if hour > 23 or minute > 59 or second > 59:
            return None
        return f"{hour:02d}:{minute:02d}:{second:02d}"
    return None


def normalize_hex(value: Any) -> str:
    text = str(value or "").strip()
    if not _HEX.match(text):
        return ""
    return "#" + text.lstrip("#").upper()


def normalize_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def assignment_key(work_date: Any, show_id: Any, crew_id: Any) -> str:
    show = normalize_id(show_id) or NO_SHOW
    crew = normalize_id(crew_id) or 0
    return f"{normalize_date(work_date)}|{show}|{crew}"


def shift_key(work_date: Any, crew_id: Any) -> str:
    return f"{normalize_date(work_date)}|{normalize_id(crew_id) or 0}"


def add_days(date_iso: Any, days: int) -> str:
    start = normalize_date(date_iso)
    if not start:
        return ""
    return (date.fromisoformat(start) + timedelta(days=int(days))).isoformat()


def date_list(start_iso: Any, length: int) -> List[str]:
    start = normalize_date(start_iso)
    if not start:
        return []
    return [add_days(start, offset) for offset in range(max(1, int(length)))]


__all__ = [
    "NO_SHOW",
    "normalize_id",
    "normalize_date",
    "normalize_flag",
    "normalize_time",
    "normalize_hex",
    "normalize_text",
    "assignment_key",
    "shift_key",
    "add_days",
    "date_list",
]
