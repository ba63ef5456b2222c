"""
Date parsing for sheet-sourced task records.

Values arrive as ISO strings, day-first ``DD/MM/YYYY [HH:MM[:SS]]`` strings,
spreadsheet serial numbers or already-parsed ``date``/``datetime`` objects.
Every parser here returns a naive ``datetime`` or ``None`` and never raises.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

import pandas as pd

SHEET_EPOCH = datetime(1899, 12, 30)

_DAY_FIRST_RE = re.compile(
    r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})(?:\s+(\d{1,2}):(\d{2})(?::(\d{2}))?)?"
)
_SHEET_DAY_FIRST_RE = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:\s+(\d{1,2}):(\d{1,2})(?::(\d{1,2}))?)?$"
)
_ISO_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def _is_missing(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float):
        return math.isnan(value)
    return False


def _naive(value: datetime) -> datetime:
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_object(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return _naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return convert_serial_to_date(value)
    return None


def _build(year: str, month: str, day: str, hours: str | None, minutes: str | None, seconds: str | None) -> datetime | None:
    try:
        return datetime(
            int(year),
            int(month),
            int(day),
            int(hours or 0),
            int(minutes or 0),
            int(seconds or 0),
        )
    except ValueError:
        return None


def _parse_iso(text: str) -> datetime | None:
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return _naive(datetime.fromisoformat(candidate))
    except ValueError:
        return None


def _parse_fallback(text: str) -> datetime | None:
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return _naive(parsed)


def convert_serial_to_date(serial: float) -> datetime | None:
    """Spreadsheet serial day number (1899-12-30 based) to a datetime."""
    try:
        days = math.floor(serial)
        seconds = math.floor(86400 * (serial - days + 0.0000001))
        return SHEET_EPOCH + timedelta(days=days, seconds=seconds)
    except (OverflowError, ValueError):
        return None


def parse_date_string(value: Any) -> datetime | None:
    """
    Parse a task date, reading ambiguous slash/dash dates as day-first.

    >>> parse_date_string("05/03/2024 14:30")
    datetime.datetime(2024, 3, 5, 14, 30)
    >>> parse_date_string("'2024-03-05")
    datetime.datetime(2024, 3, 5, 0, 0)
    >>> parse_date_string("not a date") is None
    True
    """
    if _is_missing(value):
        return None
    if not isinstance(value, str):
        parsed = _from_object(value)
        if parsed is not None or isinstance(value, (date, int, float)):
            return parsed
        value = str(value)

    text = value.strip()
    if text.startswith("'"):
        text = text[1:].strip()
    if not text:
        return None

    match = _DAY_FIRST_RE.match(text)
    if match:
        day, month, year, hours, minutes, seconds = match.groups()
        return _build(year, month, day, hours, minutes, seconds)

    return _parse_iso(text) or _parse_fallback(text)


def parse_sheet_date(value: Any) -> datetime | None:
    """Parse a planned/actual cell of the order pipeline sheet."""
    if _is_missing(value):
        return None
    if not isinstance(value, str):
        parsed = _from_object(value)
        if parsed is not None or isinstance(value, (date, int, float)):
            return parsed
        value = str(value)

    text = value.strip()
    if not text:
        return None

    if "T" in text or _ISO_PREFIX_RE.match(text):
        return _parse_iso(text) or _parse_fallback(text)

    date_part = text.split(" ")[0]
    if "/" in date_part:
        match = _SHEET_DAY_FIRST_RE.match(text)
        if not match:
            return None
        day, month, year, hours, minutes, seconds = match.groups()
        return _build(year, month, day, hours, minutes, seconds)

    if "-" in date_part:
        return _parse_iso(text) or _parse_fallback(text)
    return None
