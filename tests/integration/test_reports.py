"""
Integration Tests - Report Builder
"""
from datetime import date, datetime, timedelta

import pytest

from retail_analytics.database.models import AcuityAppointment, AppointmentCategory, ShopifyOrder
from retail_analytics.ingestion.sources import ReportDataSource
from retail_analytics.serving.reports import ReportBuilder
from retail_analytics.transformation.periods import PeriodWindow

from conftest import TODAY

MARCH_1_TO_15 = PeriodWindow.from_inclusive(date(2024, 3, 1), date(2024, 3, 15))


@pytest.fixture
def builder(session_factory, reporting_settings):
    return ReportBuilder(ReportDataSource(session_factory, timeout_seconds=5.0), reporting_settings, TODAY)


class TestHistoricalAverage:
    """The historical rate is measured from the first synced record"""

    async def test_short_history(self, builder, session_factory):
        """30 days of history at 100 EUR a day expect 1500 EUR over 15 days"""
        first_day = date(2024, 1, 31)
        async with session_factory() as session:
            session.add_all([
                ShopifyOrder(
                    id=str(2000 + offset),
                    customer_email="daily@x.com",
                    total_price=100.0,
                    country="ES",
                    financial_status="paid",
                    created_at=datetime.combine(first_day + timedelta(days=offset), datetime.min.time()),
                )
                for offset in range(30)
            ])
            await session.commit()

        report = await builder.overview(MARCH_1_TO_15)

        revenue = report.kpis.total_revenue
        assert revenue.current == 0
        assert revenue.historical_average == pytest.approx(1500.0)
        assert report.kpis.total_orders.historical_average == pytest.approx(15.0)

    async def test_no_history(self, builder):
        report = await builder.overview(MARCH_1_TO_15)

        assert report.kpis.total_revenue.historical_average == 0
        assert report.kpis.total_revenue.historical_change is None


class TestAppointmentsReport:
    """Tests for ReportBuilder.appointments()"""

    async def test_canceled_and_unknown_store(self, builder, session_factory):
        async with session_factory() as session:
            session.add_all([
                AcuityAppointment(
                    id="b1", customer_email="e@x.com", category="medición",
                    calendar_name="The Bundclub Valencia + Añadir 1 persona más",
                    datetime=datetime(2024, 3, 2, 10, 0), status="booked",
                ),
                AcuityAppointment(
                    id="b2", customer_email="f@x.com", category="medición",
                    calendar_name="Pop-up", datetime=datetime(2024, 3, 3, 10, 0), status="rescheduled",
                ),
                AcuityAppointment(
                    id="b3", customer_email="g@x.com", category="medición",
                    calendar_name="Valencia", datetime=datetime(2024, 3, 4, 10, 0), status="canceled",
                ),
            ])
            await session.commit()

        report = await builder.appointments(MARCH_1_TO_15, category=AppointmentCategory.MEDICION)

        assert report.kpis.total.current == 2
        assert report.kpis.canceled.current == 1
        assert [(row.key, row.current) for row in report.by_store] == [("Unknown", 1), ("Valencia", 1)]
        assert sum(point.appointments for point in report.daily_appointments) == 2

    async def test_store_filter_is_normalized(self, builder, session_factory):
        async with session_factory() as session:
            session.add(
                AcuityAppointment(
                    id="b1", customer_email="e@x.com", category="fitting",
                    calendar_name="- The Bundclub Valencia -",
                    datetime=datetime(2024, 3, 2, 10, 0), status="booked",
                )
            )
            await session.commit()

        report = await builder.appointments(MARCH_1_TO_15, store="valencia")

        assert report.kpis.fitting.current == 1
        assert [row.key for row in report.by_store] == ["Valencia"]
