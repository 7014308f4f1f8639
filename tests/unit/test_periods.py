"""
Unit Tests - Period Aggregation
"""
import math
from datetime import date, datetime

import pytest

from retail_analytics.exceptions import InvalidReportRequest
from retail_analytics.transformation.periods import (
    Aggregate,
    DatedValue,
    Granularity,
    PeriodWindow,
    aggregate,
    breakdown,
    compare,
    compare_values,
    dated,
    dense_daily,
    historical_average,
    observed_history,
    resolve_window,
)


class TestPeriodWindow:
    """Tests for PeriodWindow"""

    def test_previous_is_contiguous_and_equal_length(self):
        window = PeriodWindow.from_inclusive(date(2024, 3, 1), date(2024, 3, 15))
        previous = window.previous()

        assert window.days == 15
        assert previous.days == 15
        assert previous.end == window.start
        assert previous.start == date(2024, 2, 15)

    def test_half_open(self):
        window = PeriodWindow(date(2024, 3, 1), date(2024, 3, 2))
        assert window.contains(date(2024, 3, 1))
        assert window.contains(datetime(2024, 3, 1, 23, 59))
        assert not window.contains(date(2024, 3, 2))

    def test_end_before_start_is_rejected(self):
        with pytest.raises(ValueError):
            PeriodWindow(date(2024, 3, 2), date(2024, 3, 1))

    def test_month_of_handles_leap_february(self):
        window = PeriodWindow.month_of(date(2024, 2, 10))
        assert window.start == date(2024, 2, 1)
        assert window.last_day == date(2024, 2, 29)


class TestAggregate:
    """Tests for aggregate() and compare()"""

    def test_totals_inside_window_only(self):
        window = PeriodWindow.from_inclusive(date(2024, 3, 1), date(2024, 3, 31))
        records = dated([
            (date(2024, 2, 29), 999),
            (date(2024, 3, 1), 100),
            (datetime(2024, 3, 31, 22, 0), 50),
            (date(2024, 4, 1), 999),
        ])

        result = aggregate(records, window)

        assert result == Aggregate(total=150.0, count=2, average=75.0)

    def test_empty_window_is_zero_not_nan(self):
        """current = 0, baseline = 0: zeros and no comparison"""
        window = PeriodWindow.ending_on(date(2024, 3, 15), 7)
        current = aggregate([], window)
        baseline = aggregate([], window.previous())

        assert current.total == 0
        assert current.average == 0
        assert not math.isnan(current.average)
        assert compare(current, baseline) is None

    def test_percent_change(self):
        """150 against 100 is +50%"""
        comparison = compare(Aggregate(total=150, count=3, average=50), Aggregate(total=100, count=2, average=50))
        assert comparison.percent_change == pytest.approx(50.0)
        assert comparison.absolute_change == pytest.approx(50.0)

    @pytest.mark.parametrize("baseline", [0, -10, None])
    def test_no_comparison_without_positive_baseline(self, baseline):
        assert compare_values(150, baseline) is None

    def test_compare_missing_baseline_aggregate(self):
        assert compare(Aggregate(total=10, count=1, average=10), None) is None


class TestHistoricalAverage:
    """Tests for historical_average() and observed_history()"""

    def test_daily_rate_scaled_to_window(self):
        history = PeriodWindow.ending_on(date(2024, 2, 29), 365)
        current = PeriodWindow.ending_on(date(2024, 3, 15), 15)

        assert historical_average(3650.0, history, current) == pytest.approx(150.0)

    def test_empty_history(self):
        window = PeriodWindow(date(2024, 3, 1), date(2024, 3, 1))
        assert historical_average(100.0, window, PeriodWindow.ending_on(date(2024, 3, 15), 7)) == 0.0

    def test_history_starts_at_first_record(self):
        """Thirty days of data are averaged over thirty days, not the full year"""
        history = PeriodWindow(date(2023, 3, 1), date(2024, 3, 1))
        values = [DatedValue(date(2024, 1, 31), 100.0), DatedValue(date(2024, 2, 29), 100.0)]

        observed = observed_history(values, history)

        assert observed == PeriodWindow(date(2024, 1, 31), date(2024, 3, 1))
        assert observed.days == 30

    def test_history_ignores_records_outside_it(self):
        history = PeriodWindow(date(2024, 2, 1), date(2024, 3, 1))
        values = [DatedValue(date(2023, 6, 1), 5.0), DatedValue(date(2024, 3, 2), 5.0)]

        assert observed_history(values, history) == history


class TestBreakdown:
    """Tests for breakdown()"""

    @pytest.fixture
    def records(self):
        return dated([
            (date(2024, 3, 3), 10),   # Sunday, ISO week 9
            (date(2024, 3, 4), 20),   # Monday, ISO week 10
            (date(2024, 3, 10), 30),  # Sunday, ISO week 10
            (date(2024, 4, 1), 40),
            (date(2025, 1, 2), 5),
        ])

    def test_weeks_start_on_monday(self, records):
        buckets = breakdown(records, Granularity.WEEK)

        assert [b.key for b in buckets] == ["2024-W09", "2024-W10", "2024-W14", "2025-W01"]
        assert buckets[1].start == date(2024, 3, 4)
        assert buckets[1].total == pytest.approx(50.0)
        assert buckets[1].count == 2
        assert buckets[1].average == pytest.approx(25.0)

    def test_months(self, records):
        buckets = breakdown(records, Granularity.MONTH)
        assert [(b.key, b.total) for b in buckets] == [("2024-03", 60.0), ("2024-04", 40.0), ("2025-01", 5.0)]

    def test_years(self, records):
        buckets = breakdown(records, "year")
        assert [(b.key, b.count) for b in buckets] == [("2024", 4), ("2025", 1)]

    def test_empty(self):
        assert breakdown([], Granularity.MONTH) == []


class TestDenseDaily:
    """Tests for dense_daily()"""

    @pytest.mark.parametrize("days", [1, 7, 30, 31])
    def test_exactly_one_row_per_day_ascending(self, days):
        window = PeriodWindow.ending_on(date(2024, 3, 31), days)
        rows = dense_daily({"revenue": [DatedValue(date(2024, 3, 31), 5.0)]}, window)

        assert len(rows) == days
        assert [row["date"] for row in rows] == window.dates()

    def test_gaps_are_zero_filled_and_same_day_values_summed(self):
        window = PeriodWindow.from_inclusive(date(2024, 3, 1), date(2024, 3, 3))
        rows = dense_daily(
            {
                "revenue": dated([(date(2024, 3, 1), 10), (date(2024, 3, 1), 5), (date(2024, 3, 9), 99)]),
                "spend": dated([(date(2024, 3, 3), 2)]),
            },
            window,
        )

        assert rows == [
            {"date": date(2024, 3, 1), "revenue": 15.0, "spend": 0.0},
            {"date": date(2024, 3, 2), "revenue": 0.0, "spend": 0.0},
            {"date": date(2024, 3, 3), "revenue": 0.0, "spend": 2.0},
        ]

    def test_empty_series_still_dense(self):
        window = PeriodWindow.ending_on(date(2024, 3, 15), 5)
        rows = dense_daily({"sessions": []}, window)
        assert [row["sessions"] for row in rows] == [0.0] * 5


class TestResolveWindow:
    """Tests for resolve_window()"""

    TODAY = date(2024, 3, 15)

    def test_default_is_last_30_days_including_today(self):
        window = resolve_window(self.TODAY)
        assert window.start == date(2024, 2, 15)
        assert window.last_day == self.TODAY
        assert window.days == 30

    def test_explicit_dates_are_inclusive_and_win_over_preset(self):
        window = resolve_window(self.TODAY, date(2024, 3, 1), date(2024, 3, 10), preset="today")
        assert window.start == date(2024, 3, 1)
        assert window.last_day == date(2024, 3, 10)
        assert window.days == 10

    @pytest.mark.parametrize(
        "preset,start,last_day",
        [
            ("today", date(2024, 3, 15), date(2024, 3, 15)),
            ("yesterday", date(2024, 3, 14), date(2024, 3, 14)),
            ("last_7_days", date(2024, 3, 9), date(2024, 3, 15)),
            ("this_month", date(2024, 3, 1), date(2024, 3, 15)),
            ("last_month", date(2024, 2, 1), date(2024, 2, 29)),
            ("this_year", date(2024, 1, 1), date(2024, 3, 15)),
        ],
    )
    def test_presets(self, preset, start, last_day):
        window = resolve_window(self.TODAY, preset=preset)
        assert (window.start, window.last_day) == (start, last_day)

    def test_end_before_start(self):
        with pytest.raises(InvalidReportRequest):
            resolve_window(self.TODAY, date(2024, 3, 10), date(2024, 3, 1))

    def test_unknown_preset(self):
        with pytest.raises(InvalidReportRequest) as exc_info:
            resolve_window(self.TODAY, preset="fortnight")
        assert "last_30_days" in exc_info.value.details["allowed"]
