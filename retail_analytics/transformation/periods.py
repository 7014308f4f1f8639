"""
Period Aggregation

Windows, aggregates and comparisons behind every KPI card:

- PeriodWindow: half-open [start, end) range of days; the previous window is
  the same length, ending where the current one starts
- aggregate / compare: totals, counts, averages and percentage deltas
- historical_average: the historical daily rate scaled to the current window,
  measured from the first record inside the history span (observed_history)
- breakdown / dense_daily: calendar groupings and zero-filled daily axes,
  computed with Polars
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

import polars as pl

from retail_analytics.exceptions import InvalidReportRequest


class Granularity(str, Enum):
    """Calendar grouping for breakdown tables"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Preset(str, Enum):
    """Named report periods"""
    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    LAST_90_DAYS = "last_90_days"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    THIS_YEAR = "this_year"


_TRUNCATE_EVERY = {
    Granularity.DAY: "1d",
    Granularity.WEEK: "1w",
    Granularity.MONTH: "1mo",
    Granularity.YEAR: "1y",
}

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class PeriodWindow:
    """Half-open interval of days: start is included, end is not"""
    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Window end {self.end} is before start {self.start}")

    @classmethod
    def from_inclusive(cls, first_day: date, last_day: date) -> "PeriodWindow":
        """Window covering first_day..last_day, both included."""
        return cls(first_day, last_day + ONE_DAY)

    @classmethod
    def ending_on(cls, last_day: date, days: int) -> "PeriodWindow":
        """The `days` days up to and including last_day."""
        return cls(last_day - timedelta(days=days - 1), last_day + ONE_DAY)

    @classmethod
    def month_of(cls, day: date) -> "PeriodWindow":
        """Full calendar month containing day."""
        first = day.replace(day=1)
        next_month = (first + timedelta(days=32)).replace(day=1)
        return cls(first, next_month)

    @property
    def days(self) -> int:
        return (self.end - self.start).days

    @property
    def last_day(self) -> date:
        return self.end - ONE_DAY

    def previous(self) -> "PeriodWindow":
        """Same-length window immediately before this one."""
        return PeriodWindow(self.start - timedelta(days=self.days), self.start)

    def preceding(self, days: int) -> "PeriodWindow":
        """The `days` days immediately before this window."""
        return PeriodWindow(self.start - timedelta(days=days), self.start)

    def contains(self, value: Union[date, datetime]) -> bool:
        day = value.date() if isinstance(value, datetime) else value
        return self.start <= day < self.end

    def bounds(self) -> Tuple[datetime, datetime]:
        """Naive UTC datetimes [start 00:00, end 00:00) for timestamp filters."""
        return (
            datetime.combine(self.start, datetime.min.time()),
            datetime.combine(self.end, datetime.min.time()),
        )

    def dates(self) -> List[date]:
        return [self.start + timedelta(days=offset) for offset in range(self.days)]


@dataclass(frozen=True)
class DatedValue:
    """A numeric observation on a day"""
    date: date
    value: float


@dataclass(frozen=True)
class Aggregate:
    """Sum, count and mean of the values in a window"""
    total: float = 0.0
    count: int = 0
    average: float = 0.0


@dataclass(frozen=True)
class Comparison:
    """Change of a current aggregate against a baseline"""
    absolute_change: float
    percent_change: float


@dataclass(frozen=True)
class PeriodBucket:
    """One row of a calendar breakdown"""
    key: str
    start: date
    total: float
    count: int
    average: float


def dated(values: Iterable[Tuple[Union[date, datetime], float]]) -> List[DatedValue]:
    """Build DatedValues from (day or timestamp, value) pairs."""
    return [
        DatedValue(day.date() if isinstance(day, datetime) else day, float(value or 0))
        for day, value in values
    ]


def aggregate(records: Iterable[DatedValue], window: PeriodWindow) -> Aggregate:
    """
    Aggregate the records falling inside a window.

    An empty window aggregates to zeros, never NaN.
    """
    total = 0.0
    count = 0
    for record in records:
        if window.contains(record.date):
            total += record.value
            count += 1
    return Aggregate(total=total, count=count, average=total / count if count else 0.0)


def compare_values(current: float, baseline: Optional[float]) -> Optional[Comparison]:
    """
    Compare two totals.

    Returns None when there is no usable baseline (absent, zero or negative),
    so the UI can render "no comparison" instead of 0% or Infinity.
    """
    if baseline is None or baseline <= 0:
        return None
    change = current - baseline
    return Comparison(absolute_change=change, percent_change=change / baseline * 100)


def compare(current: Aggregate, baseline: Optional[Aggregate]) -> Optional[Comparison]:
    """Compare the totals of two aggregates."""
    return compare_values(current.total, baseline.total if baseline is not None else None)


def historical_average(history_total: float, history: PeriodWindow, current: PeriodWindow) -> float:
    """
    Expected total for the current window at the historical daily rate.

    Normalizes comparisons between windows of different lengths:
    history_total / history.days * current.days.
    """
    if history.days <= 0:
        return 0.0
    return history_total / history.days * current.days


def observed_history(records: Iterable[DatedValue], history: PeriodWindow) -> PeriodWindow:
    """
    Trim a history window to start at its earliest record.

    The daily rate of a source synced for only a few weeks is measured over
    those weeks. Without any record in the window the full window is
    returned.
    """
    days = [record.date for record in records if history.contains(record.date)]
    if not days:
        return history
    return PeriodWindow(min(days), history.end)


def _frame(records: Iterable[DatedValue]) -> pl.DataFrame:
    days: List[date] = []
    values: List[float] = []
    for record in records:
        days.append(record.date)
        values.append(float(record.value))
    return pl.DataFrame(
        {"date": days, "value": values},
        schema={"date": pl.Date, "value": pl.Float64},
    )


def _period_key(start: date, granularity: Granularity) -> str:
    if granularity == Granularity.WEEK:
        iso = start.isocalendar()
        return f"{iso[0]}-W{iso[1]:02d}"
    if granularity == Granularity.MONTH:
        return start.strftime("%Y-%m")
    if granularity == Granularity.YEAR:
        return start.strftime("%Y")
    return start.isoformat()


def breakdown(records: Iterable[DatedValue], granularity: Granularity) -> List[PeriodBucket]:
    """
    Group records by truncated date key.

    Weeks start on Monday and are keyed by ISO week (2024-W10), months by
    year-month (2024-03) and years by year (2024).
    """
    frame = _frame(records)
    if frame.is_empty():
        return []

    grouped = (
        frame.with_columns(
            pl.col("date").dt.truncate(_TRUNCATE_EVERY[Granularity(granularity)]).alias("period_start")
        )
        .group_by("period_start")
        .agg(
            pl.col("value").sum().alias("total"),
            pl.len().alias("count"),
        )
        .sort("period_start")
    )

    return [
        PeriodBucket(
            key=_period_key(row["period_start"], Granularity(granularity)),
            start=row["period_start"],
            total=row["total"],
            count=row["count"],
            average=row["total"] / row["count"] if row["count"] else 0.0,
        )
        for row in grouped.iter_rows(named=True)
    ]


def dense_daily(series: Dict[str, Iterable[DatedValue]], window: PeriodWindow) -> List[dict]:
    """
    Daily axis for a window with one summed column per series.

    Always returns exactly window.days rows in ascending date order; days
    without data are zero-filled so charts don't show gaps.
    """
    if window.days == 0:
        return []

    axis = pl.DataFrame(
        {"date": pl.date_range(window.start, window.last_day, interval="1d", eager=True)}
    )
    for name, records in series.items():
        daily = (
            _frame(record for record in records if window.contains(record.date))
            .group_by("date")
            .agg(pl.col("value").sum().alias(name))
        )
        axis = axis.join(daily, on="date", how="left")

    if series:
        axis = axis.with_columns(pl.col(list(series)).fill_null(0.0))
    return axis.sort("date").to_dicts()


def resolve_window(
    today: date,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    preset: Optional[Union[Preset, str]] = None,
    default_days: int = 30,
) -> PeriodWindow:
    """
    Turn report query parameters into a window.

    Explicit dates (both inclusive) win over a preset; with neither, the last
    `default_days` days including today are used.

    Raises:
        InvalidReportRequest: end before start, or unknown preset
    """
    if start_date or end_date:
        end_date = end_date or today
        start_date = start_date or end_date - timedelta(days=default_days - 1)
        if end_date < start_date:
            raise InvalidReportRequest(
                "endDate must not be before startDate",
                details={"startDate": start_date.isoformat(), "endDate": end_date.isoformat()},
            )
        return PeriodWindow.from_inclusive(start_date, end_date)

    if preset is None:
        return PeriodWindow.ending_on(today, default_days)

    try:
        preset = Preset(preset)
    except ValueError:
        raise InvalidReportRequest(
            f"Unknown preset '{preset}'",
            details={"allowed": [p.value for p in Preset]},
        ) from None

    if preset == Preset.TODAY:
        return PeriodWindow.ending_on(today, 1)
    if preset == Preset.YESTERDAY:
        return PeriodWindow.ending_on(today - ONE_DAY, 1)
    if preset == Preset.LAST_7_DAYS:
        return PeriodWindow.ending_on(today, 7)
    if preset == Preset.LAST_30_DAYS:
        return PeriodWindow.ending_on(today, 30)
    if preset == Preset.LAST_90_DAYS:
        return PeriodWindow.ending_on(today, 90)
    if preset == Preset.THIS_MONTH:
        return PeriodWindow(today.replace(day=1), today + ONE_DAY)
    if preset == Preset.LAST_MONTH:
        return PeriodWindow.month_of(today.replace(day=1) - ONE_DAY)
    return PeriodWindow(today.replace(month=1, day=1), today + ONE_DAY)
