"""
Acuity Appointments API Endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from retail_analytics.database.models import AppointmentCategory
from retail_analytics.serving.api.auth import require_user
from retail_analytics.serving.api.dependencies import get_report_builder, get_report_window
from retail_analytics.serving.api.schemas import ApiResponse, AppointmentsReport, ErrorResponse
from retail_analytics.serving.reports import ReportBuilder
from retail_analytics.transformation.periods import PeriodWindow

router = APIRouter(
    dependencies=[Depends(require_user)],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)


@router.get("", response_model=ApiResponse[AppointmentsReport])
async def get_appointments(
    window: PeriodWindow = Depends(get_report_window),
    category: Optional[AppointmentCategory] = Query(None, description="medición or fitting"),
    store: Optional[str] = Query(None),
    builder: ReportBuilder = Depends(get_report_builder),
) -> ApiResponse[AppointmentsReport]:
    """Booked appointments by category and store, with a dense daily series."""
    return ApiResponse(data=await builder.appointments(window, category=category, store=store))
