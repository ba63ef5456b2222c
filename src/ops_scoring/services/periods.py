from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable

from ops_scoring.services.date_classifier import DateRange, end_of_day, start_of_day

BUCKET_DAYS = 7
MONTHLY_THRESHOLD_DAYS = 45
TILL_DATE_START = date(2000, 1, 1)

_WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class FilterMode(str, Enum):
    WEEK = "week"
    MONTH = "month"
    CUSTOM = "custom"
    TILL_DATE = "tillDate"

    @classmethod
    def parse(cls, value: Any) -> FilterMode:
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().casefold()
        for mode in cls:
            if text in (mode.value.casefold(), mode.name.casefold()):
                return mode
        raise ValueError(f"Unknown filter mode: {value!r}")


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime
    label: str


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _chunk_periods(first: date, last: date, label: Callable[[int, date], str]) -> list[Period]:
    periods: list[Period] = []
    current = first
    index = 1
    while current <= last:
        chunk_end = min(current + timedelta(days=BUCKET_DAYS - 1), last)
        periods.append(Period(start_of_day(current), end_of_day(chunk_end), label(index, current)))
        current += timedelta(days=BUCKET_DAYS)
        index += 1
    return periods


def _month_periods(first: date, last: date) -> list[Period]:
    periods: list[Period] = []
    current = first
    while current <= last:
        month_last = date(current.year, current.month, calendar.monthrange(current.year, current.month)[1])
        chunk_end = min(month_last, last)
        periods.append(
            Period(start_of_day(current), end_of_day(chunk_end), _MONTH_LABELS[current.month - 1])
        )
        current = month_last + timedelta(days=1)
    return periods


def plan_periods(filter_mode: FilterMode | str, date_range: DateRange) -> list[Period]:
    """
    Split ``date_range`` into trend-chart buckets.

    - week: seven daily buckets from ``date_from`` (``date_to`` is not consulted)
    - month: 7-day buckets ``W1, W2, ...``, the last one clipped to ``date_to``
    - custom / tillDate: calendar months when the span exceeds 45 days,
      otherwise 7-day buckets labelled ``D/M``
    """
    mode = FilterMode.parse(filter_mode)
    first = _as_date(date_range.date_from)
    last = _as_date(date_range.date_to)

    if mode is FilterMode.WEEK:
        periods = []
        for offset in range(BUCKET_DAYS):
            day = first + timedelta(days=offset)
            periods.append(Period(start_of_day(day), end_of_day(day), _WEEKDAY_LABELS[day.weekday()]))
        return periods

    if last < first:
        return []
    if mode is FilterMode.MONTH:
        return _chunk_periods(first, last, lambda index, _start: f"W{index}")
    if (last - first).days > MONTHLY_THRESHOLD_DAYS:
        return _month_periods(first, last)
    return _chunk_periods(first, last, lambda _index, start: f"{start.day}/{start.month}")


def default_range(filter_mode: FilterMode | str, today: date) -> DateRange:
    mode = FilterMode.parse(filter_mode)
    if mode is FilterMode.WEEK:
        # weeks start on Sunday
        sunday = today - timedelta(days=(today.weekday() + 1) % 7)
        return DateRange(sunday, today)
    if mode is FilterMode.MONTH:
        last_day = calendar.monthrange(today.year, today.month)[1]
        return DateRange(today.replace(day=1), today.replace(day=last_day))
    if mode is FilterMode.TILL_DATE:
        return DateRange(TILL_DATE_START, today)
    raise ValueError("Custom filter requires an explicit date range (from/to).")
