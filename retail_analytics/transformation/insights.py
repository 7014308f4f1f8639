"""
Dashboard Insights and Alerts

Rule-based messages derived from already computed KPIs. Rules whose inputs
are missing (disconnected integration, no comparison baseline) are skipped.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from retail_analytics.database.models import Integration
from retail_analytics.transformation.marketing import CampaignSummary, TrafficShare
from retail_analytics.transformation.sales import ProductSales

MAX_ALERTS = 4

# Thresholds, in percent unless noted
ROAS_UP = 3.0
ROAS_DOWN = -5.0
APPOINTMENTS_UP = 10.0
APPOINTMENTS_DOWN = -5.0
SESSIONS_UP = 10.0
DOMINANT_SOURCE_SHARE = 30.0
STAR_PRODUCT_REVENUE_EUR = 1000.0
REVENUE_UP = 15.0
REVENUE_DOWN = -10.0

APPOINTMENT_DROP_RATIO = 0.65
ROAS_IMPROVEMENT_RATIO = 1.15
CITY_IMBALANCE_RATIO = 3
MONTH_SALES_UP = 20.0
MONTH_SALES_DOWN = -15.0


@dataclass(frozen=True)
class Insight:
    type: str
    title: str
    description: str


@dataclass(frozen=True)
class Alert:
    type: str
    message: str


def best_campaign_by_cpa(campaigns: Sequence[CampaignSummary]) -> Optional[CampaignSummary]:
    """Campaign with the lowest cost per conversion among those with spend and conversions."""
    candidates = [c for c in campaigns if c.spend > 0 and c.conversions > 0]
    if not candidates:
        return None
    return min(candidates, key=lambda c: c.cpa)


def overview_insights(
    integrations: Mapping[Integration, bool],
    roas_current: float,
    roas_change: Optional[float],
    revenue_change: Optional[float],
    sessions_change: Optional[float],
    appointments_change: Optional[float],
    traffic_sources: Sequence[TrafficShare],
    top_products: Sequence[ProductSales],
    campaigns: Sequence[CampaignSummary],
) -> List[Insight]:
    """Insights for the period overview, in rule order."""
    insights: List[Insight] = []

    if integrations.get(Integration.META) and roas_current > 0 and roas_change is not None:
        if roas_change > ROAS_UP:
            insights.append(Insight(
                "success", "ROAS rising",
                f"Return on ad spend is up {roas_change:.1f}% on the previous period.",
            ))
        elif roas_change < ROAS_DOWN:
            insights.append(Insight(
                "warning", "ROAS falling",
                f"Return on ad spend is down {abs(roas_change):.1f}%. Review the campaigns.",
            ))

    if integrations.get(Integration.ACUITY) and appointments_change is not None:
        if appointments_change < APPOINTMENTS_DOWN:
            insights.append(Insight(
                "warning", "Fewer appointments",
                f"Appointments dropped {abs(appointments_change):.1f}%. Review follow-ups.",
            ))
        elif appointments_change > APPOINTMENTS_UP:
            insights.append(Insight(
                "success", "Appointments rising",
                f"Appointments grew {appointments_change:.1f}% on the previous period.",
            ))

    if integrations.get(Integration.ANALYTICS):
        if sessions_change is not None and sessions_change > SESSIONS_UP:
            insights.append(Insight(
                "info", "Traffic growing",
                f"Web sessions grew {sessions_change:.1f}% on the previous period.",
            ))
        if traffic_sources and traffic_sources[0].percentage > DOMINANT_SOURCE_SHARE:
            top = traffic_sources[0]
            insights.append(Insight(
                "info", "Dominant traffic source",
                f"{top.source} brings {top.percentage:.1f}% of all sessions.",
            ))

    if integrations.get(Integration.META):
        best = best_campaign_by_cpa(campaigns)
        if best is not None:
            insights.append(Insight(
                "success", "Best campaign",
                f'"{best.campaign_name}" has the lowest CPA of the period: €{best.cpa:.2f}',
            ))

    if integrations.get(Integration.SHOPIFY):
        if top_products and top_products[0].revenue > STAR_PRODUCT_REVENUE_EUR:
            star = top_products[0]
            insights.append(Insight(
                "success", "Star product",
                f'"{star.name}" leads sales with €{star.revenue:.2f} in revenue.',
            ))
        if revenue_change is not None:
            if revenue_change > REVENUE_UP:
                insights.append(Insight(
                    "success", "Revenue growing",
                    f"Revenue grew {revenue_change:.1f}% on the previous period.",
                ))
            elif revenue_change < REVENUE_DOWN:
                insights.append(Insight(
                    "warning", "Revenue falling",
                    f"Revenue dropped {abs(revenue_change):.1f}%. Review the strategy.",
                ))

    return insights


def daily_alerts(
    roas_accumulated: float,
    appointments_yesterday: int,
    appointments_week_before: int,
    top_product: Optional[str],
    month_roas: Optional[float],
    last_month_roas: Optional[float],
    appointments_today_by_store: Dict[str, int],
    sales_month: float,
    sales_last_month: float,
    month_campaigns: Sequence[CampaignSummary],
) -> List[Alert]:
    """
    Alerts for the daily operations dashboard, at most MAX_ALERTS.

    `appointments_week_before` counts the same weekday one week before
    yesterday. Month figures are month to date against the full previous
    month.
    """
    alerts: List[Alert] = []

    if 0 < roas_accumulated < 1:
        alerts.append(Alert(
            "warning",
            f"Accumulated ROAS is {roas_accumulated:.2f}x, below 1. Review your campaigns.",
        ))

    if appointments_week_before > 0 and appointments_yesterday < appointments_week_before * APPOINTMENT_DROP_RATIO:
        decrease = round((appointments_week_before - appointments_yesterday) / appointments_week_before * 100)
        alerts.append(Alert(
            "warning",
            f"Appointments are down {decrease}% on the same day last week.",
        ))

    if top_product:
        alerts.append(Alert("info", f'"{top_product}" is the best seller this month. Check stock.'))

    if month_roas is not None and last_month_roas and month_roas > last_month_roas * ROAS_IMPROVEMENT_RATIO:
        improvement = round((month_roas - last_month_roas) / last_month_roas * 100)
        alerts.append(Alert("success", f"ROAS improved {improvement}% since last month."))

    cities = sorted(appointments_today_by_store.items(), key=lambda item: item[1], reverse=True)
    if len(cities) >= 2:
        (top_city, top_count), (second_city, second_count) = cities[0], cities[1]
        if top_count > second_count * CITY_IMBALANCE_RATIO:
            alerts.append(Alert(
                "info",
                f"{top_count} appointments today in {top_city} and only {second_count} in "
                f"{second_city}. Shift ad budget there?",
            ))

    if sales_last_month > 0:
        change = (sales_month - sales_last_month) / sales_last_month * 100
        if change > MONTH_SALES_UP:
            alerts.append(Alert("success", f"Month sales are up {round(change)}% on last month."))
        elif change < MONTH_SALES_DOWN:
            alerts.append(Alert("warning", f"Month sales are down {round(abs(change))}% on last month."))

    best = best_campaign_by_cpa(month_campaigns)
    if best is not None:
        alerts.append(Alert(
            "success",
            f'"{best.campaign_name}" is this month\'s best campaign at €{best.cpa:.2f} per conversion.',
        ))

    return alerts[:MAX_ALERTS]
