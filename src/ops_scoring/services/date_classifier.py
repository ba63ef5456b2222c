from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Callable

from ops_scoring.services.dates import parse_date_string

DateParser = Callable[[Any], datetime | None]


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_day(value: date | datetime) -> datetime:
    return datetime.combine(_as_date(value), time.min)


def end_of_day(value: date | datetime) -> datetime:
    """
    Last representable instant of the calendar day (23:59:59.999999).

    Sheet timestamps carry at most millisecond precision, so this agrees with
    a 23:59:59.999 cutoff for every stored value while leaving no gap between
    consecutive day buckets.
    """
    return datetime.combine(_as_date(value), time.max)


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range; ``start``/``end`` widen it to whole days."""

    date_from: date
    date_to: date

    @property
    def start(self) -> datetime:
        return start_of_day(self.date_from)

    @property
    def end(self) -> datetime:
        return end_of_day(self.date_to)

    @property
    def days(self) -> int:
        return (_as_date(self.date_to) - _as_date(self.date_from)).days + 1


def in_range(
    first: Any,
    second: Any,
    window: Any,
    parse: DateParser = parse_date_string,
) -> bool:
    """
    True when either date falls inside ``window`` (anything with ``start``/``end``).

    A task is placed by its deadline or by its last update, whichever lands
    in the window; two unusable dates never match.
    """
    for value in (first, second):
        moment = parse(value)
        if moment is not None and window.start <= moment <= window.end:
            return True
    return False


def is_on_time(due: Any, completed: Any, parse: DateParser = parse_date_string) -> bool:
    due_at = parse(due)
    completed_at = parse(completed)
    if due_at is None or completed_at is None:
        return False
    return completed_at <= end_of_day(due_at)


def time_remaining(due: Any, now: datetime, parse: DateParser = parse_date_string) -> timedelta | None:
    due_at = parse(due)
    if due_at is None:
        return None
    return end_of_day(due_at) - now
