"""
Unit Tests - Response Assembler
"""
from datetime import date, datetime

import pytest

from retail_analytics.database.models import AppointmentCategory
from retail_analytics.serving import assembler
from retail_analytics.serving.api import schemas
from retail_analytics.transformation.periods import PeriodWindow, dated

from conftest import make_order


class TestKpiBlock:
    """Tests for kpi_block()"""

    def test_change_and_rounding(self):
        block = assembler.kpi_block(150.004, 100.0)
        assert block.current == 150.0
        assert block.change == 50.0
        assert block.absolute_change == 50.0
        assert block.historical_average is None

    def test_zero_baseline_renders_null_change(self):
        block = assembler.kpi_block(0, 0)
        dumped = block.model_dump(by_alias=True)

        assert dumped["current"] == 0
        assert dumped["change"] is None
        assert dumped["absoluteChange"] == 0

    def test_historical_comparison(self):
        block = assembler.kpi_block(120.0, 0.0, historical=80.0)
        assert block.change is None
        assert block.historical_average == 80.0
        assert block.historical_change == 50.0


class TestDensePoints:
    """Tests for dense_points()"""

    def test_every_day_present(self):
        window = PeriodWindow.from_inclusive(date(2024, 3, 1), date(2024, 3, 5))
        points = assembler.dense_points(
            schemas.DailyRevenuePoint,
            window,
            revenue=dated([(date(2024, 3, 2), 10.25), (date(2024, 3, 2), 1)]),
            orders=dated([(date(2024, 3, 2), 1), (date(2024, 3, 2), 1)]),
        )

        assert [p.date for p in points] == window.dates()
        assert points[1].revenue == pytest.approx(11.25)
        assert points[1].orders == 2
        assert all(p.revenue == 0 and p.orders == 0 for i, p in enumerate(points) if i != 1)

    def test_camel_case_output(self):
        window = PeriodWindow.ending_on(date(2024, 3, 1), 1)
        (point,) = assembler.dense_points(schemas.SalesVsInvestmentPoint, window, sales=[], investment=[])
        assert point.model_dump(by_alias=True, mode="json") == {"date": "2024-03-01", "sales": 0.0, "investment": 0.0}


class TestRows:
    """Tests for table row mapping"""

    def test_order_rows_show_both_currencies(self):
        order = make_order("1", datetime(2024, 3, 1), total_price=1000, country="MX", tags=["CDMX"])
        (row,) = assembler.order_rows([order], {"1": AppointmentCategory.FITTING}, rate=0.047)

        assert row.currency == "MXN"
        assert row.total_price == 1000.0
        assert row.total_price_eur == 47.0
        assert row.store == "Cdmx"
        assert row.appointment_category == "fitting"
        assert row.model_dump(by_alias=True)["totalPriceEur"] == 47.0

    def test_revenue_by_category(self):
        dto = assembler.revenue_by_category_dto({AppointmentCategory.MEDICION: 10.123, None: 5})
        assert dto.model_dump(by_alias=True) == {"medicion": 10.12, "fitting": 0.0, "withoutAppointment": 5.0}

    def test_period_info(self):
        info = assembler.period_info(PeriodWindow.from_inclusive(date(2024, 3, 1), date(2024, 3, 15)))
        assert info.end_date == date(2024, 3, 15)
        assert info.previous_start_date == date(2024, 2, 15)
        assert info.previous_end_date == date(2024, 2, 29)

    def test_group_rows_largest_first(self):
        rows = assembler.group_rows({"Madrid": 2, "Cdmx": 2, "Sevilla": 3}, {"Madrid": 1, "Valencia": 4})

        assert [row.key for row in rows] == ["Sevilla", "Cdmx", "Madrid", "Valencia"]
        assert rows[2].change == 100.0
        assert rows[3].current == 0
        assert rows[3].change == -100.0
        assert rows[0].change is None
