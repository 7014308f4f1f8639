"""
Unit Tests - Report Records
"""
from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from retail_analytics.database.models import AppointmentCategory, AppointmentStatus
from retail_analytics.transformation.records import (
    AnalyticsSnapshot,
    Appointment,
    LineItem,
    Order,
    normalize_store_name,
    parse_category,
)


class TestOrder:
    """Tests for Order validation"""

    def test_loose_row_is_defaulted(self):
        order = Order(
            id=1001,
            created_at=datetime(2024, 3, 10, 12, 0),
            customer_email="  Ana@Example.COM ",
            total_price=None,
            country=None,
            tags="Tienda: Madrid, VIP",
            line_items=[{"product_id": 7, "title": None, "quantity": "2", "price": "19.90"}, "junk"],
        )

        assert order.id == "1001"
        assert order.customer_email == "ana@example.com"
        assert order.total_price == 0.0
        assert order.country == "ES"
        assert order.tags == ["Tienda: Madrid", "VIP"]
        assert order.line_items == [LineItem(product_id="7", title="Untitled product", quantity=2, price=19.9)]
        assert order.products_sold == 2

    def test_aware_timestamps_become_naive_utc(self):
        created = datetime(2024, 3, 10, 16, 0, tzinfo=timezone(timedelta(hours=1)))
        order = Order(id="1", created_at=created)
        assert order.created_at == datetime(2024, 3, 10, 15, 0)

    def test_online_and_store(self):
        assert Order(id="1", created_at=datetime(2024, 3, 1)).is_online
        store_order = Order(id="2", created_at=datetime(2024, 3, 1), tags=["VIP", "Tienda: Sevilla"])
        assert not store_order.is_online
        assert store_order.store == "Sevilla"

    def test_missing_created_at_is_invalid(self):
        with pytest.raises(ValidationError):
            Order(id="1")

    def test_records_are_immutable(self):
        order = Order(id="1", created_at=datetime(2024, 3, 1))
        with pytest.raises(ValidationError):
            order.total_price = 10


class TestAppointment:
    """Tests for Appointment validation"""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("canceled", AppointmentStatus.CANCELED),
            ("Cancelled", AppointmentStatus.CANCELED),
            ("rescheduled", AppointmentStatus.RESCHEDULED),
            (None, AppointmentStatus.BOOKED),
            ("scheduled", AppointmentStatus.BOOKED),
        ],
    )
    def test_status(self, raw, expected):
        appointment = Appointment(id="a", datetime=datetime(2024, 3, 1), status=raw)
        assert appointment.status == expected
        assert appointment.is_canceled == (expected == AppointmentStatus.CANCELED)

    def test_unknown_category_becomes_none(self):
        appointment = Appointment(id="a", datetime=datetime(2024, 3, 1), category="consulta")
        assert appointment.category is None

    def test_store_from_calendar(self):
        appointment = Appointment(id="a", datetime=datetime(2024, 3, 1), calendar_name="Medición Ciudad de México")
        assert appointment.store == "Cdmx"


class TestAnalyticsSnapshot:
    """Tests for AnalyticsSnapshot validation"""

    def test_camel_and_snake_keys(self):
        snapshot = AnalyticsSnapshot(
            date=date(2024, 3, 1),
            sessions=None,
            traffic_sources=[{"source": None, "medium": "cpc", "sessions": "12"}, 3],
            top_pages=[
                {"pagePath": "/tienda", "pageTitle": "Tienda", "pageViews": 5, "avgTimeOnPage": 12.5},
                {"page_path": "/", "page_views": 9},
            ],
        )

        assert snapshot.sessions == 0
        assert snapshot.traffic_sources[0].source == "unknown"
        assert snapshot.traffic_sources[0].sessions == 12
        assert len(snapshot.traffic_sources) == 1
        assert [p.page_path for p in snapshot.top_pages] == ["/tienda", "/"]
        assert snapshot.top_pages[1].page_title == "Unknown"


class TestHelpers:
    """Tests for store and category parsing"""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Tienda: Madrid", "Madrid"),
            ("MALAGA", "Málaga"),
            ("Fitting Barcelona", "Barcelona"),
            ("CDMX", "Cdmx"),
            ("Online", None),
            (None, None),
        ],
    )
    def test_normalize_store_name(self, name, expected):
        assert normalize_store_name(name) == expected

    def test_parse_category(self):
        assert parse_category("Medicion") == AppointmentCategory.MEDICION
        assert parse_category(" fitting ") == AppointmentCategory.FITTING
        assert parse_category(42) is None
