"""
Database Models - Synced Source Tables

Mirrors of the tables the sync jobs populate in the managed database. The
reporting API only reads them:

- ShopifyOrder: Shopify orders for the ES and MX stores (prices in local currency)
- AcuityAppointment: Acuity scheduling appointments (medición / fitting)
- MetaCampaignDay: Meta Ads insights, one row per campaign per day
- AnalyticsDay: Google Analytics daily snapshot per tracked property
- IntegrationSetting: connection flag per integration
"""

from datetime import datetime, date
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class AppointmentCategory(str, Enum):
    """Appointment category enumeration"""
    MEDICION = "medición"
    FITTING = "fitting"


class AppointmentStatus(str, Enum):
    """Appointment status enumeration"""
    BOOKED = "booked"
    CANCELED = "canceled"
    RESCHEDULED = "rescheduled"


class Integration(str, Enum):
    """External data sources feeding the dashboard"""
    SHOPIFY = "shopify"
    META = "meta"
    ANALYTICS = "analytics"
    ACUITY = "acuity"


# =============================================================================
# SOURCE TABLES
# =============================================================================

class ShopifyOrder(Base):
    """
    Shopify Orders Table

    One row per order. `country` tells which store (and currency) the order
    belongs to; `tags` carries the in-store metadata (store, customer type).
    """
    __tablename__ = "shopify_orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_number: Mapped[Optional[str]] = mapped_column(String(50))
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    total_price: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False))
    country: Mapped[Optional[str]] = mapped_column(String(2), default="ES")
    financial_status: Mapped[Optional[str]] = mapped_column(String(30))
    tags: Mapped[Optional[List[str]]] = mapped_column(JSON)
    line_items: Mapped[Optional[list]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_shopify_orders_created_at", "created_at"),
        Index("ix_shopify_orders_customer_email", "customer_email"),
        Index("ix_shopify_orders_country", "country"),
    )


class AcuityAppointment(Base):
    """
    Acuity Appointments Table

    `category` is the raw category string from the sync; unknown values are
    kept as-is and ignored by attribution.
    """
    __tablename__ = "acuity_appointments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    category: Mapped[Optional[str]] = mapped_column(String(50))
    calendar_name: Mapped[Optional[str]] = mapped_column(String(255))
    datetime: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(20), default=AppointmentStatus.BOOKED.value)

    __table_args__ = (
        Index("ix_acuity_appointments_datetime", "datetime"),
        Index("ix_acuity_appointments_customer_email", "customer_email"),
        Index("ix_acuity_appointments_status", "status"),
    )


class MetaCampaignDay(Base):
    """
    Meta Ads Campaign Insights Table

    A campaign may be synced more than once per day (one row per ad account
    breakdown), so same-day rows are summed when aggregating.
    """
    __tablename__ = "meta_campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    campaign_id: Mapped[Optional[str]] = mapped_column(String(64))
    campaign_name: Mapped[Optional[str]] = mapped_column(String(255))
    spend: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False))
    impressions: Mapped[Optional[int]] = mapped_column(Integer)
    clicks: Mapped[Optional[int]] = mapped_column(Integer)
    conversions: Mapped[Optional[int]] = mapped_column(Integer)

    __table_args__ = (
        Index("ix_meta_campaigns_date", "date"),
        Index("ix_meta_campaigns_campaign_id", "campaign_id"),
    )


class AnalyticsDay(Base):
    """
    Google Analytics Daily Snapshot Table

    `traffic_sources` and `top_pages` are JSON arrays as returned by the
    reporting API sync.
    """
    __tablename__ = "analytics_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    property_id: Mapped[Optional[str]] = mapped_column(String(64))
    sessions: Mapped[Optional[int]] = mapped_column(Integer)
    users: Mapped[Optional[int]] = mapped_column(Integer)
    new_users: Mapped[Optional[int]] = mapped_column(Integer)
    page_views: Mapped[Optional[int]] = mapped_column(Integer)
    bounce_rate: Mapped[Optional[float]] = mapped_column(Float)
    avg_session_duration: Mapped[Optional[float]] = mapped_column(Float)
    traffic_sources: Mapped[Optional[list]] = mapped_column(JSON)
    top_pages: Mapped[Optional[list]] = mapped_column(JSON)

    __table_args__ = (
        Index("ix_analytics_data_date", "date"),
    )


class IntegrationSetting(Base):
    """Connection state per integration"""
    __tablename__ = "integration_settings"

    integration: Mapped[str] = mapped_column(String(50), primary_key=True)
    connected: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )
