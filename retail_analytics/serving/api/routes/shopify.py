"""
Shopify API Endpoints

Orders, sales KPIs, product rankings and revenue charts. Amounts are
normalized to EUR unless a row also states its original currency.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from retail_analytics.serving.api.auth import require_user
from retail_analytics.serving.api.dependencies import get_report_builder, get_report_window
from retail_analytics.serving.api.schemas import (
    ApiResponse,
    ErrorResponse,
    OrdersReport,
    ProductsReport,
    SalesChartReport,
    ShopifyMetricsReport,
)
from retail_analytics.serving.reports import ReportBuilder
from retail_analytics.transformation.periods import Granularity, PeriodWindow

router = APIRouter(
    dependencies=[Depends(require_user)],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)


@router.get("/orders", response_model=ApiResponse[OrdersReport])
async def list_orders(
    window: PeriodWindow = Depends(get_report_window),
    country: Optional[str] = Query(None, min_length=2, max_length=2, description="ES or MX"),
    store: Optional[str] = Query(None),
    financial_status: Optional[str] = Query(None, alias="financialStatus"),
    search: Optional[str] = Query(None, description="Customer name, email or order number"),
    limit: int = Query(50, ge=1, le=500),
    lookback_days: Optional[int] = Query(None, alias="lookbackDays", ge=0, le=365),
    builder: ReportBuilder = Depends(get_report_builder),
) -> ApiResponse[OrdersReport]:
    report = await builder.orders_list(
        window,
        country=country,
        store=store,
        financial_status=financial_status,
        search=search,
        limit=limit,
        lookback_days=lookback_days,
    )
    return ApiResponse(data=report)


@router.get("/metrics", response_model=ApiResponse[ShopifyMetricsReport])
async def get_metrics(
    window: PeriodWindow = Depends(get_report_window),
    country: Optional[str] = Query(None, min_length=2, max_length=2),
    store: Optional[str] = Query(None),
    builder: ReportBuilder = Depends(get_report_builder),
) -> ApiResponse[ShopifyMetricsReport]:
    """Revenue, orders, AOV, units and paid orders against the previous period."""
    return ApiResponse(data=await builder.shopify_metrics(window, country=country, store=store))


@router.get("/products", response_model=ApiResponse[ProductsReport])
async def get_top_products(
    window: PeriodWindow = Depends(get_report_window),
    country: Optional[str] = Query(None, min_length=2, max_length=2),
    store: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=100),
    builder: ReportBuilder = Depends(get_report_builder),
) -> ApiResponse[ProductsReport]:
    return ApiResponse(data=await builder.products(window, country=country, store=store, limit=limit))


@router.get("/charts", response_model=ApiResponse[SalesChartReport])
async def get_sales_chart(
    window: PeriodWindow = Depends(get_report_window),
    granularity: Granularity = Query(Granularity.DAY),
    country: Optional[str] = Query(None, min_length=2, max_length=2),
    store: Optional[str] = Query(None),
    builder: ReportBuilder = Depends(get_report_builder),
) -> ApiResponse[SalesChartReport]:
    """Dense daily revenue, or revenue per ISO week, month or year."""
    report = await builder.sales_chart(window, granularity=granularity, country=country, store=store)
    return ApiResponse(data=report)
