"""
Dashboard API Endpoints

Daily operations dashboard and the period overview.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query

from retail_analytics.serving.api.auth import require_user
from retail_analytics.serving.api.dependencies import get_report_builder, get_report_window
from retail_analytics.serving.api.schemas import ApiResponse, DailyDashboardReport, ErrorResponse, OverviewReport
from retail_analytics.serving.reports import ReportBuilder
from retail_analytics.transformation.periods import PeriodWindow

router = APIRouter(
    dependencies=[Depends(require_user)],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
logger = structlog.get_logger(__name__)


@router.get("", response_model=ApiResponse[DailyDashboardReport])
async def get_daily_dashboard(
    builder: ReportBuilder = Depends(get_report_builder),
) -> ApiResponse[DailyDashboardReport]:
    """
    Yesterday and month-to-date KPIs, sales vs ad investment, CTR by
    campaign, order attribution, VIP customers and alerts.
    """
    return ApiResponse(data=await builder.daily_dashboard())


@router.get("/overview", response_model=ApiResponse[OverviewReport])
async def get_overview(
    window: PeriodWindow = Depends(get_report_window),
    store: Optional[str] = Query(None, description="Only orders and appointments of this store"),
    campaign_id: Optional[str] = Query(None, alias="campaignId"),
    lookback_days: Optional[int] = Query(
        None, alias="lookbackDays", ge=0, le=365,
        description="Days an appointment keeps driving orders",
    ),
    builder: ReportBuilder = Depends(get_report_builder),
) -> ApiResponse[OverviewReport]:
    """Period KPIs against the previous period with charts and insights."""
    logger.info("get_overview called", start=window.start.isoformat(), days=window.days, store=store)
    report = await builder.overview(
        window,
        store=store,
        campaign_id=campaign_id,
        lookback_days=lookback_days,
    )
    return ApiResponse(data=report)
