"""
Test Suite Configuration
"""
from datetime import date, datetime
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from retail_analytics.config import ReportingSettings
from retail_analytics.database.models import (
    AcuityAppointment,
    AnalyticsDay,
    Base,
    MetaCampaignDay,
    ShopifyOrder,
)
from retail_analytics.ingestion.sources import ReportDataSource
from retail_analytics.transformation.records import Appointment, Order

# Reports in the tests are built as if today were this day
TODAY = date(2024, 3, 15)


def make_order(order_id: str, created_at: datetime, **fields) -> Order:
    """Order record with sensible defaults"""
    return Order(id=order_id, created_at=created_at, **fields)


def make_appointment(appointment_id: str, when: datetime, **fields) -> Appointment:
    """Appointment record with sensible defaults"""
    return Appointment(id=appointment_id, datetime=when, **fields)


@pytest.fixture
def reporting_settings() -> ReportingSettings:
    """Reporting settings independent of the environment"""
    return ReportingSettings(
        mxn_to_eur_rate=0.047,
        attribution_lookback_days=90,
        fetch_timeout_seconds=5.0,
        default_window_days=30,
        history_days=365,
        vip_threshold_eur=2000.0,
        top_limit=10,
    )


@pytest.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    SQLite engine on a temporary file.

    A file database (not :memory:) is shared by every connection, which the
    concurrent per-fetch sessions need.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'reports.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def seeded_db(session_factory) -> async_sessionmaker[AsyncSession]:
    """
    Database with a small March 2024 data set:

    - three March orders (ES store, MX store in MXN, one online) and one February order
    - appointments for the store customers, one of them canceled
    - Meta insights with two rows for the same campaign on the same day
    - one Google Analytics snapshot
    """
    async with session_factory() as session:
        session.add_all([
            ShopifyOrder(
                id="1001",
                order_number="#1001",
                customer_email="A@X.com",
                customer_name="Ana García",
                total_price=100.0,
                country="ES",
                financial_status="paid",
                tags=["Tienda: Madrid"],
                line_items=[{"product_id": 1, "title": "Traje Azul", "quantity": 1, "price": "100.00"}],
                created_at=datetime(2024, 3, 10, 15, 0),
            ),
            ShopifyOrder(
                id="1002",
                order_number="#1002",
                customer_email="b@x.com",
                customer_name="Beatriz López",
                total_price=1000.0,
                country="MX",
                financial_status="paid",
                tags=["CDMX"],
                line_items=[{"product_id": 2, "title": "Camisa", "quantity": 2, "price": "500.00"}],
                created_at=datetime(2024, 3, 12, 12, 0),
            ),
            ShopifyOrder(
                id="1003",
                order_number="#1003",
                customer_email="c@x.com",
                customer_name="Carlos Ruiz",
                total_price=50.0,
                country="ES",
                financial_status="pending",
                tags=[],
                line_items=[{"product_id": 3, "title": "Corbata", "quantity": 1, "price": "50.00"}],
                created_at=datetime(2024, 3, 14, 9, 0),
            ),
            ShopifyOrder(
                id="0999",
                order_number="#0999",
                customer_email="a@x.com",
                customer_name="Ana García",
                total_price=200.0,
                country="ES",
                financial_status="paid",
                tags=["Madrid"],
                line_items=[],
                created_at=datetime(2024, 2, 5, 10, 0),
            ),
            AcuityAppointment(
                id="a1", customer_email="a@x.com", customer_name="Ana García",
                category="medición", calendar_name="Madrid",
                datetime=datetime(2024, 3, 1, 10, 0), status="booked",
            ),
            AcuityAppointment(
                id="a2", customer_email="b@x.com", customer_name="Beatriz López",
                category="fitting", calendar_name="CDMX",
                datetime=datetime(2024, 3, 11, 10, 0), status="canceled",
            ),
            AcuityAppointment(
                id="a3", customer_email="b@x.com", customer_name="Beatriz López",
                category="fitting", calendar_name="CDMX",
                datetime=datetime(2024, 2, 20, 10, 0), status="booked",
            ),
            AcuityAppointment(
                id="a4", customer_email="d@x.com", customer_name="Diego Martín",
                category="medición", calendar_name="Madrid",
                datetime=datetime(2024, 3, 14, 11, 0), status="booked",
            ),
            MetaCampaignDay(
                date=date(2024, 3, 10), campaign_id="c1", campaign_name="PRO_Citas_Madrid",
                spend=20.0, impressions=1000, clicks=50, conversions=2,
            ),
            MetaCampaignDay(
                date=date(2024, 3, 10), campaign_id="c1", campaign_name="PRO_Citas_Madrid",
                spend=5.0, impressions=200, clicks=10, conversions=0,
            ),
            MetaCampaignDay(
                date=date(2024, 3, 12), campaign_id="c2", campaign_name="PRO_Leads_CDMX",
                spend=10.0, impressions=500, clicks=5, conversions=1,
            ),
            AnalyticsDay(
                date=date(2024, 3, 10),
                property_id="properties/1",
                sessions=100,
                users=80,
                new_users=40,
                page_views=300,
                bounce_rate=0.5,
                avg_session_duration=60.0,
                traffic_sources=[
                    {"source": "google", "medium": "organic", "sessions": 60, "users": 50},
                    {"source": "instagram", "medium": "social", "sessions": 40, "users": 30},
                ],
                top_pages=[
                    {"pagePath": "/", "pageTitle": "Home", "pageViews": 200, "avgTimeOnPage": 30},
                ],
            ),
        ])
        await session.commit()

    return session_factory


@pytest.fixture
def data_source(seeded_db) -> ReportDataSource:
    return ReportDataSource(seeded_db, timeout_seconds=5.0)
