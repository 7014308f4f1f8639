"""
API Dependencies

Request-scoped collaborators for the report routes. Tests swap them through
`app.dependency_overrides`.
"""

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import Depends, Query

from retail_analytics.config import ReportingSettings, get_settings
from retail_analytics.database.connection import get_session_factory
from retail_analytics.ingestion.sources import ReportDataSource
from retail_analytics.serving.reports import ReportBuilder
from retail_analytics.transformation.periods import PeriodWindow, resolve_window


def get_reporting_settings() -> ReportingSettings:
    return get_settings().reporting


def get_reference_date() -> date:
    """Today in UTC; stored timestamps are UTC."""
    return datetime.now(timezone.utc).date()


def get_data_source(
    settings: ReportingSettings = Depends(get_reporting_settings),
) -> ReportDataSource:
    return ReportDataSource(get_session_factory(), timeout_seconds=settings.fetch_timeout_seconds)


def get_report_builder(
    source: ReportDataSource = Depends(get_data_source),
    settings: ReportingSettings = Depends(get_reporting_settings),
    today: date = Depends(get_reference_date),
) -> ReportBuilder:
    return ReportBuilder(source, settings, today)


def get_report_window(
    start_date: Optional[date] = Query(None, alias="startDate", description="First day, inclusive"),
    end_date: Optional[date] = Query(None, alias="endDate", description="Last day, inclusive"),
    preset: Optional[str] = Query(None, description="Named period, e.g. last_30_days"),
    settings: ReportingSettings = Depends(get_reporting_settings),
    today: date = Depends(get_reference_date),
) -> PeriodWindow:
    """Resolve the period query parameters; explicit dates win over a preset."""
    return resolve_window(
        today,
        start_date=start_date,
        end_date=end_date,
        preset=preset,
        default_days=settings.default_window_days,
    )
