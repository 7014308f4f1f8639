"""
Google Analytics API Endpoints
"""

from fastapi import APIRouter, Depends

from retail_analytics.serving.api.auth import require_user
from retail_analytics.serving.api.dependencies import get_report_builder, get_report_window
from retail_analytics.serving.api.schemas import AnalyticsReport, ApiResponse, ErrorResponse
from retail_analytics.serving.reports import ReportBuilder
from retail_analytics.transformation.periods import PeriodWindow

router = APIRouter(
    dependencies=[Depends(require_user)],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)


@router.get("", response_model=ApiResponse[AnalyticsReport])
async def get_analytics(
    window: PeriodWindow = Depends(get_report_window),
    builder: ReportBuilder = Depends(get_report_builder),
) -> ApiResponse[AnalyticsReport]:
    """Traffic totals, sources, top pages and daily sessions."""
    return ApiResponse(data=await builder.analytics(window))
