"""
API Response Schemas

Pydantic models for every report payload. Fields are snake_case in Python and
camelCase on the wire; numeric display fields default to 0 and only the
comparison fields of a KPI block are nullable.
"""

from datetime import date, datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope"""
    success: bool = True
    data: T


class ErrorResponse(BaseModel):
    """Error envelope"""
    error: str
    details: Optional[Any] = None


# =============================================================================
# BUILDING BLOCKS
# =============================================================================

class KpiBlock(CamelModel):
    """
    One KPI card.

    `change` is the percent change against the previous window and is null
    when the previous value is zero or missing. `historical_change` compares
    against the historical daily rate scaled to the window.
    """
    current: float = 0
    previous: float = 0
    change: Optional[float] = None
    absolute_change: float = 0
    historical_average: Optional[float] = None
    historical_change: Optional[float] = None


class PeriodInfo(CamelModel):
    """Requested window and its comparison window, both with inclusive end dates"""
    start_date: date
    end_date: date
    days: int
    previous_start_date: date
    previous_end_date: date


class DailyRevenuePoint(CamelModel):
    date: date
    revenue: float = 0
    orders: int = 0


class SalesVsInvestmentPoint(CamelModel):
    date: date
    sales: float = 0
    investment: float = 0


class ComparativePoint(CamelModel):
    date: date
    revenue: float = 0
    spend: float = 0
    sessions: int = 0


class SpendPoint(CamelModel):
    date: date
    spend: float = 0
    clicks: int = 0
    impressions: int = 0


class SessionsPoint(CamelModel):
    date: date
    sessions: int = 0
    users: int = 0


class AppointmentsPoint(CamelModel):
    date: date
    appointments: int = 0
    medicion: int = 0
    fitting: int = 0


class BreakdownRow(CamelModel):
    """Revenue of one day, ISO week, month or year"""
    period: str
    start_date: date
    revenue: float = 0
    orders: int = 0
    average_order_value: float = 0


class ProductRow(CamelModel):
    product_id: Optional[str] = None
    name: str
    sales: int = 0
    revenue: float = 0


class TrafficSourceRow(CamelModel):
    source: str
    medium: str
    sessions: int = 0
    users: int = 0
    percentage: float = 0


class TopPageRow(CamelModel):
    page_path: str
    page_title: str
    page_views: int = 0
    avg_time_on_page: float = 0


class CampaignRow(CamelModel):
    campaign_id: str
    campaign_name: str
    country: str
    spend: float = 0
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    ctr: float = 0
    cpc: float = 0
    cpa: Optional[float] = None
    days_active: int = 0


class CampaignCtrRow(CamelModel):
    campaign_name: str
    ctr: float = 0
    impressions: int = 0
    clicks: int = 0


class OrdersBreakdownDTO(CamelModel):
    total_orders: int = 0
    orders_online: int = 0
    orders_from_medicion: int = 0
    orders_from_fitting: int = 0
    orders_without_appointment: int = 0


class RevenueByCategoryDTO(CamelModel):
    """EUR revenue split by the appointment type each order is attributed to"""
    medicion: float = 0
    fitting: float = 0
    without_appointment: float = 0


class AppointmentGroupRow(CamelModel):
    """Booked appointments of one category or store against the previous window"""
    key: str
    current: int = 0
    previous: int = 0
    change: Optional[float] = None


class VipCustomerRow(CamelModel):
    email: str
    name: str
    city: Optional[str] = None
    ltv: float = 0
    ltv_eur: float = 0
    currency: str = "EUR"
    order_count: int = 0
    next_appointment_date: Optional[datetime] = None


class InsightDTO(CamelModel):
    type: str
    title: str
    description: str


class AlertDTO(CamelModel):
    type: str
    message: str


class OrderRow(CamelModel):
    id: str
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    total_price: float = 0
    currency: str = "EUR"
    total_price_eur: float = 0
    country: str
    financial_status: Optional[str] = None
    created_at: datetime
    store: Optional[str] = None
    online: bool = False
    appointment_category: Optional[str] = None


# =============================================================================
# REPORTS
# =============================================================================

class Report(CamelModel):
    """Sources that failed while building the report and contributed empty data"""
    degraded_sources: List[str] = Field(default_factory=list)


class OverviewKpis(CamelModel):
    total_revenue: KpiBlock
    total_orders: KpiBlock
    average_order_value: KpiBlock
    ad_spend: KpiBlock
    overall_roas: KpiBlock
    total_clicks: KpiBlock
    total_impressions: KpiBlock
    total_sessions: KpiBlock
    total_appointments: KpiBlock


class OverviewCharts(CamelModel):
    revenue: List[DailyRevenuePoint] = Field(default_factory=list)
    comparative: List[ComparativePoint] = Field(default_factory=list)


class OverviewReport(Report):
    period: PeriodInfo
    kpis: OverviewKpis
    charts: OverviewCharts
    top_products: List[ProductRow] = Field(default_factory=list)
    traffic_sources: List[TrafficSourceRow] = Field(default_factory=list)
    revenue_by_category: RevenueByCategoryDTO
    orders_breakdown: OrdersBreakdownDTO
    insights: List[InsightDTO] = Field(default_factory=list)
    integrations: Dict[str, bool] = Field(default_factory=dict)


class DailyKpis(CamelModel):
    sales_yesterday: float = 0
    sales_month: float = 0
    ads_spend_yesterday: float = 0
    ads_spend_month: float = 0
    appointments_yesterday: int = 0
    appointments_month: int = 0
    roas_accumulated: float = 0


class DailyDashboardReport(Report):
    date: date
    kpis: DailyKpis
    daily_revenue: List[DailyRevenuePoint] = Field(default_factory=list)
    sales_vs_investment: List[SalesVsInvestmentPoint] = Field(default_factory=list)
    ctr_by_campaigns: List[CampaignCtrRow] = Field(default_factory=list)
    orders_breakdown: OrdersBreakdownDTO
    top_vip_customers: List[VipCustomerRow] = Field(default_factory=list)
    alerts: List[AlertDTO] = Field(default_factory=list)


class OrdersReport(Report):
    period: PeriodInfo
    orders: List[OrderRow] = Field(default_factory=list)
    total: int = 0


class ShopifyMetricsReport(Report):
    period: PeriodInfo
    revenue: KpiBlock
    orders: KpiBlock
    average_order_value: KpiBlock
    products_sold: KpiBlock
    paid_orders: KpiBlock


class ProductsReport(Report):
    period: PeriodInfo
    products: List[ProductRow] = Field(default_factory=list)


class SalesChartReport(Report):
    period: PeriodInfo
    granularity: str
    series: List[BreakdownRow] = Field(default_factory=list)


class CampaignKpis(CamelModel):
    spend: KpiBlock
    impressions: KpiBlock
    clicks: KpiBlock
    conversions: KpiBlock
    ctr: KpiBlock
    cpc: KpiBlock


class CampaignsReport(Report):
    period: PeriodInfo
    kpis: CampaignKpis
    campaigns: List[CampaignRow] = Field(default_factory=list)
    daily_spend: List[SpendPoint] = Field(default_factory=list)


class AnalyticsKpis(CamelModel):
    sessions: KpiBlock
    users: KpiBlock
    new_users: KpiBlock
    page_views: KpiBlock
    bounce_rate: KpiBlock
    avg_session_duration: KpiBlock


class AnalyticsReport(Report):
    period: PeriodInfo
    kpis: AnalyticsKpis
    traffic_sources: List[TrafficSourceRow] = Field(default_factory=list)
    top_pages: List[TopPageRow] = Field(default_factory=list)
    daily_sessions: List[SessionsPoint] = Field(default_factory=list)


class AppointmentKpis(CamelModel):
    total: KpiBlock
    medicion: KpiBlock
    fitting: KpiBlock
    canceled: KpiBlock


class AppointmentsReport(Report):
    period: PeriodInfo
    kpis: AppointmentKpis
    by_category: List[AppointmentGroupRow] = Field(default_factory=list)
    by_store: List[AppointmentGroupRow] = Field(default_factory=list)
    daily_appointments: List[AppointmentsPoint] = Field(default_factory=list)
