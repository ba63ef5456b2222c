import sys
import unittest
from datetime import date, timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from ops_scoring.services.date_classifier import DateRange
from ops_scoring.services.periods import FilterMode, default_range, plan_periods


class PeriodPlannerTests(unittest.TestCase):
    def assert_covers(self, periods, date_range: DateRange) -> None:
        self.assertEqual(periods[0].start, date_range.start)
        self.assertEqual(periods[-1].end, date_range.end)
        for previous, current in zip(periods, periods[1:]):
            self.assertLess(previous.start, previous.end)
            self.assertEqual(current.start - previous.end, timedelta(microseconds=1))

    def test_week_mode_is_seven_days(self) -> None:
        date_range = DateRange(date(2024, 3, 3), date(2024, 3, 5))
        periods = plan_periods("week", date_range)
        self.assertEqual(
            [p.label for p in periods],
            ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"],
        )
        self.assertEqual(periods[-1].end.date(), date(2024, 3, 9))

    def test_month_mode_weekly_buckets(self) -> None:
        date_range = DateRange(date(2024, 3, 1), date(2024, 3, 31))
        periods = plan_periods(FilterMode.MONTH, date_range)
        self.assertEqual([p.label for p in periods], ["W1", "W2", "W3", "W4", "W5"])
        self.assertEqual(periods[-1].start.date(), date(2024, 3, 29))
        self.assert_covers(periods, date_range)

    def test_long_custom_range_switches_to_months(self) -> None:
        date_range = DateRange(date(2024, 1, 15), date(2024, 3, 15))
        periods = plan_periods("custom", date_range)
        self.assertEqual([p.label for p in periods], ["Jan", "Feb", "Mar"])
        self.assertEqual(periods[1].start.date(), date(2024, 2, 1))
        self.assertEqual(periods[1].end.date(), date(2024, 2, 29))
        self.assert_covers(periods, date_range)

    def test_threshold_range_stays_weekly(self) -> None:
        date_range = DateRange(date(2024, 3, 1), date(2024, 4, 15))
        periods = plan_periods("tillDate", date_range)
        self.assertEqual(periods[0].label, "1/3")
        self.assertEqual(periods[1].label, "8/3")
        self.assertEqual(len(periods), 7)
        self.assert_covers(periods, date_range)

    def test_single_day_range(self) -> None:
        date_range = DateRange(date(2024, 3, 1), date(2024, 3, 1))
        periods = plan_periods("custom", date_range)
        self.assertEqual(len(periods), 1)
        self.assert_covers(periods, date_range)

    def test_reversed_range_has_no_periods(self) -> None:
        self.assertEqual(plan_periods("month", DateRange(date(2024, 3, 5), date(2024, 3, 1))), [])

    def test_filter_mode_parsing(self) -> None:
        self.assertIs(FilterMode.parse("tilldate"), FilterMode.TILL_DATE)
        self.assertIs(FilterMode.parse("TILL_DATE"), FilterMode.TILL_DATE)
        with self.assertRaises(ValueError):
            FilterMode.parse("quarter")


class DefaultRangeTests(unittest.TestCase):
    def test_week_starts_on_sunday(self) -> None:
        self.assertEqual(
            default_range("week", date(2024, 3, 14)),
            DateRange(date(2024, 3, 10), date(2024, 3, 14)),
        )
        self.assertEqual(
            default_range("week", date(2024, 3, 10)),
            DateRange(date(2024, 3, 10), date(2024, 3, 10)),
        )

    def test_month_and_till_date(self) -> None:
        self.assertEqual(
            default_range("month", date(2024, 2, 14)),
            DateRange(date(2024, 2, 1), date(2024, 2, 29)),
        )
        self.assertEqual(
            default_range("tillDate", date(2024, 2, 14)),
            DateRange(date(2000, 1, 1), date(2024, 2, 14)),
        )

    def test_custom_needs_explicit_range(self) -> None:
        with self.assertRaises(ValueError):
            default_range("custom", date(2024, 2, 14))


if __name__ == "__main__":
    unittest.main()
