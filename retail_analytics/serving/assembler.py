"""
Response Assembler

Pure mapping from aggregates to the API schemas. Money and rates are rounded
to two decimals here and nowhere else; daily axes always go through
dense_daily so charts never have gaps.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Type, TypeVar

from retail_analytics.database.models import AppointmentCategory
from retail_analytics.serving.api import schemas
from retail_analytics.transformation.attribution import Attribution, OrdersBreakdown
from retail_analytics.transformation.currency import currency_for, normalize
from retail_analytics.transformation.insights import Alert, Insight
from retail_analytics.transformation.marketing import CampaignSummary, PageStats, TrafficShare
from retail_analytics.transformation.periods import (
    DatedValue,
    PeriodBucket,
    PeriodWindow,
    compare_values,
    dense_daily,
)
from retail_analytics.transformation.records import Order
from retail_analytics.transformation.sales import ProductSales, VipCustomer

P = TypeVar("P", bound=schemas.CamelModel)


def round2(value: Optional[float]) -> float:
    return round(float(value or 0), 2)


def kpi_block(
    current: float,
    previous: float,
    historical: Optional[float] = None,
) -> schemas.KpiBlock:
    """Build a KPI card; changes are null without a positive baseline."""
    comparison = compare_values(current, previous)
    block = schemas.KpiBlock(
        current=round2(current),
        previous=round2(previous),
        change=round2(comparison.percent_change) if comparison else None,
        absolute_change=round2(current - previous),
    )
    if historical is not None:
        historical_comparison = compare_values(current, historical)
        block.historical_average = round2(historical)
        block.historical_change = (
            round2(historical_comparison.percent_change) if historical_comparison else None
        )
    return block


def period_info(window: PeriodWindow) -> schemas.PeriodInfo:
    previous = window.previous()
    return schemas.PeriodInfo(
        start_date=window.start,
        end_date=window.last_day,
        days=window.days,
        previous_start_date=previous.start,
        previous_end_date=previous.last_day,
    )


def dense_points(
    model: Type[P],
    window: PeriodWindow,
    **series: Iterable[DatedValue],
) -> List[P]:
    """
    One point per day of the window, each series summed into the model
    field of the same name.
    """
    return [
        model(date=row["date"], **{name: round2(row[name]) for name in series})
        for row in dense_daily(series, window)
    ]


def breakdown_rows(
    revenue: Sequence[PeriodBucket],
) -> List[schemas.BreakdownRow]:
    return [
        schemas.BreakdownRow(
            period=bucket.key,
            start_date=bucket.start,
            revenue=round2(bucket.total),
            orders=bucket.count,
            average_order_value=round2(bucket.average),
        )
        for bucket in revenue
    ]


def product_rows(products: Iterable[ProductSales]) -> List[schemas.ProductRow]:
    return [
        schemas.ProductRow(
            product_id=product.product_id,
            name=product.name,
            sales=product.sales,
            revenue=round2(product.revenue),
        )
        for product in products
    ]


def traffic_rows(sources: Iterable[TrafficShare]) -> List[schemas.TrafficSourceRow]:
    return [
        schemas.TrafficSourceRow(
            source=source.source,
            medium=source.medium,
            sessions=source.sessions,
            users=source.users,
            percentage=round2(source.percentage),
        )
        for source in sources
    ]


def page_rows(pages: Iterable[PageStats]) -> List[schemas.TopPageRow]:
    return [
        schemas.TopPageRow(
            page_path=page.page_path,
            page_title=page.page_title,
            page_views=page.page_views,
            avg_time_on_page=round2(page.avg_time_on_page),
        )
        for page in pages
    ]


def campaign_rows(campaigns: Iterable[CampaignSummary]) -> List[schemas.CampaignRow]:
    return [
        schemas.CampaignRow(
            campaign_id=campaign.campaign_id,
            campaign_name=campaign.campaign_name,
            country=campaign.country,
            spend=round2(campaign.spend),
            impressions=campaign.impressions,
            clicks=campaign.clicks,
            conversions=campaign.conversions,
            ctr=round2(campaign.ctr),
            cpc=round2(campaign.cpc),
            cpa=round2(campaign.cpa) if campaign.cpa is not None else None,
            days_active=campaign.days_active,
        )
        for campaign in campaigns
    ]


def ctr_rows(campaigns: Iterable[CampaignSummary]) -> List[schemas.CampaignCtrRow]:
    return [
        schemas.CampaignCtrRow(
            campaign_name=campaign.campaign_name,
            ctr=round2(campaign.ctr),
            impressions=campaign.impressions,
            clicks=campaign.clicks,
        )
        for campaign in campaigns
    ]


def orders_breakdown_dto(breakdown: OrdersBreakdown) -> schemas.OrdersBreakdownDTO:
    return schemas.OrdersBreakdownDTO(
        total_orders=breakdown.total_orders,
        orders_online=breakdown.orders_online,
        orders_from_medicion=breakdown.orders_from_medicion,
        orders_from_fitting=breakdown.orders_from_fitting,
        orders_without_appointment=breakdown.orders_without_appointment,
    )


def revenue_by_category_dto(
    totals: Dict[Optional[AppointmentCategory], float],
) -> schemas.RevenueByCategoryDTO:
    return schemas.RevenueByCategoryDTO(
        medicion=round2(totals.get(AppointmentCategory.MEDICION)),
        fitting=round2(totals.get(AppointmentCategory.FITTING)),
        without_appointment=round2(totals.get(None)),
    )


def group_rows(
    current: Mapping[str, int],
    previous: Mapping[str, int],
) -> List[schemas.AppointmentGroupRow]:
    """Counts per key for both windows, largest current count first."""
    keys = sorted(set(current) | set(previous), key=lambda key: (-current.get(key, 0), key))
    rows = []
    for key in keys:
        now, before = current.get(key, 0), previous.get(key, 0)
        comparison = compare_values(now, before)
        rows.append(
            schemas.AppointmentGroupRow(
                key=key,
                current=now,
                previous=before,
                change=round2(comparison.percent_change) if comparison else None,
            )
        )
    return rows


def vip_rows(customers: Iterable[VipCustomer]) -> List[schemas.VipCustomerRow]:
    return [
        schemas.VipCustomerRow(
            email=customer.email,
            name=customer.name,
            city=customer.city,
            ltv=round2(customer.ltv),
            ltv_eur=round2(customer.ltv_eur),
            currency=customer.currency,
            order_count=customer.order_count,
            next_appointment_date=customer.next_appointment,
        )
        for customer in customers
    ]


def insight_rows(insights: Iterable[Insight]) -> List[schemas.InsightDTO]:
    return [
        schemas.InsightDTO(type=insight.type, title=insight.title, description=insight.description)
        for insight in insights
    ]


def alert_rows(alerts: Iterable[Alert]) -> List[schemas.AlertDTO]:
    return [schemas.AlertDTO(type=alert.type, message=alert.message) for alert in alerts]


def order_rows(
    orders: Iterable[Order],
    attribution: Attribution,
    rate: Optional[float] = None,
) -> List[schemas.OrderRow]:
    rows = []
    for order in orders:
        category = attribution.get(order.id)
        rows.append(
            schemas.OrderRow(
                id=order.id,
                order_number=order.order_number,
                customer_name=order.customer_name,
                customer_email=order.customer_email,
                total_price=round2(order.total_price),
                currency=currency_for(order.country),
                total_price_eur=round2(normalize(order.total_price, order.country, rate)),
                country=order.country,
                financial_status=order.financial_status,
                created_at=order.created_at,
                store=order.store,
                online=order.is_online,
                appointment_category=category.value if category else None,
            )
        )
    return rows
