"""
Report Transformation Module
"""
from .attribution import attribute, orders_breakdown, revenue_by_category, OrdersBreakdown
from .currency import normalize, currency_for
from .periods import (
    PeriodWindow,
    DatedValue,
    Aggregate,
    Comparison,
    Granularity,
    Preset,
    aggregate,
    compare,
    compare_values,
    historical_average,
    observed_history,
    breakdown,
    dense_daily,
    resolve_window,
)

__all__ = [
    "attribute",
    "orders_breakdown",
    "revenue_by_category",
    "OrdersBreakdown",
    "normalize",
    "currency_for",
    "PeriodWindow",
    "DatedValue",
    "Aggregate",
    "Comparison",
    "Granularity",
    "Preset",
    "aggregate",
    "compare",
    "compare_values",
    "historical_average",
    "observed_history",
    "breakdown",
    "dense_daily",
    "resolve_window",
]
