"""
Meta Ads API Endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from retail_analytics.serving.api.auth import require_user
from retail_analytics.serving.api.dependencies import get_report_builder, get_report_window
from retail_analytics.serving.api.schemas import ApiResponse, CampaignsReport, ErrorResponse
from retail_analytics.serving.reports import ReportBuilder
from retail_analytics.transformation.periods import PeriodWindow

router = APIRouter(
    dependencies=[Depends(require_user)],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)


@router.get("/campaigns", response_model=ApiResponse[CampaignsReport])
async def get_campaigns(
    window: PeriodWindow = Depends(get_report_window),
    campaign_id: Optional[str] = Query(None, alias="campaignId"),
    builder: ReportBuilder = Depends(get_report_builder),
) -> ApiResponse[CampaignsReport]:
    """Per-campaign spend, CTR, CPC and CPA with the daily spend series."""
    return ApiResponse(data=await builder.campaigns(window, campaign_id=campaign_id))
