"""
Report Builders

Fan out the source fetches of a report concurrently, then reduce and assemble
the results. A failed source contributes no records and is listed in
`degradedSources`; a disconnected integration is not fetched at all.
"""

import asyncio
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import structlog

from retail_analytics.config.settings import ReportingSettings
from retail_analytics.database.models import AppointmentCategory, Integration
from retail_analytics.ingestion.sources import ReportDataSource, SourceResult
from retail_analytics.serving import assembler
from retail_analytics.serving.api import schemas
from retail_analytics.transformation import insights, marketing, sales
from retail_analytics.transformation.attribution import (
    Attribution,
    attribute,
    orders_breakdown,
    revenue_by_category,
)
from retail_analytics.transformation.periods import (
    DatedValue,
    Granularity,
    PeriodWindow,
    aggregate,
    breakdown,
    historical_average,
    observed_history,
)
from retail_analytics.transformation.records import (
    AdSpendRecord,
    AnalyticsSnapshot,
    Appointment,
    Order,
    normalize_store_name,
)

logger = structlog.get_logger(__name__)

Fetch = Callable[[], Awaitable[SourceResult]]

# Group key for appointments without a category or store
UNKNOWN_GROUP = "Unknown"


def degraded_sources(*results: SourceResult) -> List[str]:
    return sorted({result.source for result in results if not result.ok})


def _span(*windows: PeriodWindow) -> PeriodWindow:
    """Smallest window covering all given windows."""
    return PeriodWindow(min(w.start for w in windows), max(w.end for w in windows))


def _expected_total(values: List[DatedValue], history: PeriodWindow, window: PeriodWindow) -> float:
    """Historical daily rate over the observed part of `history`, scaled to `window`."""
    observed = observed_history(values, history)
    return historical_average(aggregate(values, observed).total, observed, window)


def _appointment_values(appointments: List[Appointment], store: Optional[str] = None) -> List[DatedValue]:
    return [
        DatedValue(appointment.datetime.date(), 1.0)
        for appointment in appointments
        if not appointment.is_canceled and (store is None or appointment.store == store)
    ]


class ReportBuilder:
    """
    Builds every report for one request.

    Args:
        source: Data access for the synced tables
        settings: Reporting constants (rate, lookback, limits)
        today: Reference day, yesterday/month reports are relative to it
    """

    def __init__(self, source: ReportDataSource, settings: ReportingSettings, today: date):
        self.source = source
        self.settings = settings
        self.today = today

    @property
    def rate(self) -> float:
        return self.settings.mxn_to_eur_rate

    async def _connected(self) -> Dict[Integration, bool]:
        return await self.source.integration_status()

    @staticmethod
    async def _gated(connected: bool, integration: Integration, fetch: Fetch) -> SourceResult:
        if not connected:
            logger.debug("Integration disconnected, skipping fetch", source=integration.value)
            return SourceResult.skipped(integration.value)
        return await fetch()

    async def _attributed(
        self,
        orders: List[Order],
        lookback_days: int,
    ) -> Tuple[Attribution, SourceResult]:
        """Attribute orders using their customers' appointments; returns (attribution, result)."""
        if not orders:
            return {}, SourceResult.skipped(Integration.ACUITY.value)
        first = min(order.created_at for order in orders).date()
        last = max(order.created_at for order in orders).date()
        window = PeriodWindow(first - timedelta(days=lookback_days), last + timedelta(days=1))
        emails = [order.customer_email for order in orders if order.customer_email]
        result = await self.source.appointments_for_customers(emails, window)
        return attribute(orders, result.records, lookback_days), result

    # =========================================================================
    # OVERVIEW
    # =========================================================================

    async def overview(
        self,
        window: PeriodWindow,
        store: Optional[str] = None,
        campaign_id: Optional[str] = None,
        lookback_days: Optional[int] = None,
    ) -> schemas.OverviewReport:
        """Period KPIs against the previous window plus charts, rankings and insights."""
        lookback = self.settings.attribution_lookback_days if lookback_days is None else lookback_days
        previous = window.previous()
        history = window.preceding(self.settings.history_days)
        span = _span(history, previous, window)
        comparison_span = _span(previous, window)
        appointment_span = PeriodWindow(span.start - timedelta(days=lookback), span.end)

        status = await self._connected()
        orders_res, appointments_res, ads_res, analytics_res = await asyncio.gather(
            self._gated(status[Integration.SHOPIFY], Integration.SHOPIFY,
                        lambda: self.source.orders(window=span, store=store)),
            self._gated(status[Integration.ACUITY], Integration.ACUITY,
                        lambda: self.source.appointments(window=appointment_span)),
            self._gated(status[Integration.META], Integration.META,
                        lambda: self.source.ad_spend(comparison_span, campaign_id=campaign_id)),
            self._gated(status[Integration.ANALYTICS], Integration.ANALYTICS,
                        lambda: self.source.analytics(comparison_span)),
        )

        orders: List[Order] = orders_res.records
        current_orders = [o for o in orders if window.contains(o.created_at)]
        revenue = sales.revenue_values(orders, self.rate)
        order_counts = sales.order_count_values(orders)
        appointment_values = _appointment_values(appointments_res.records, store)
        ads: List[AdSpendRecord] = ads_res.records
        spend = marketing.spend_values(ads)
        clicks = [DatedValue(r.date, r.clicks) for r in ads]
        impressions = [DatedValue(r.date, r.impressions) for r in ads]
        snapshots: List[AnalyticsSnapshot] = analytics_res.records
        sessions = marketing.session_values(snapshots)

        def totals(values: List[DatedValue]):
            return aggregate(values, window).total, aggregate(values, previous).total

        def with_history(values: List[DatedValue]) -> schemas.KpiBlock:
            current, prior = totals(values)
            return assembler.kpi_block(current, prior, _expected_total(values, history, window))

        revenue_now, revenue_before = totals(revenue)
        orders_now, orders_before = totals(order_counts)
        spend_now, spend_before = totals(spend)
        roas_now = marketing.roas(revenue_now, spend_now)
        roas_before = marketing.roas(revenue_before, spend_before)

        kpis = schemas.OverviewKpis(
            total_revenue=with_history(revenue),
            total_orders=with_history(order_counts),
            average_order_value=assembler.kpi_block(
                revenue_now / orders_now if orders_now else 0.0,
                revenue_before / orders_before if orders_before else 0.0,
            ),
            ad_spend=assembler.kpi_block(spend_now, spend_before),
            overall_roas=assembler.kpi_block(roas_now, roas_before),
            total_clicks=assembler.kpi_block(*totals(clicks)),
            total_impressions=assembler.kpi_block(*totals(impressions)),
            total_sessions=assembler.kpi_block(*totals(sessions)),
            total_appointments=with_history(appointment_values),
        )

        attribution = attribute(current_orders, appointments_res.records, lookback)
        top_products = sales.top_products(current_orders, self.settings.top_limit)
        traffic = marketing.traffic_sources(
            [s for s in snapshots if window.contains(s.date)], self.settings.top_limit
        )
        campaigns = marketing.summarize_campaigns([r for r in ads if window.contains(r.date)])

        generated = insights.overview_insights(
            integrations=status,
            roas_current=roas_now,
            roas_change=kpis.overall_roas.change,
            revenue_change=kpis.total_revenue.change,
            sessions_change=kpis.total_sessions.change,
            appointments_change=kpis.total_appointments.change,
            traffic_sources=traffic,
            top_products=top_products,
            campaigns=campaigns,
        )

        degraded = degraded_sources(orders_res, appointments_res, ads_res, analytics_res)
        logger.info(
            "Overview built",
            start=window.start.isoformat(),
            days=window.days,
            orders=len(current_orders),
            degraded_sources=degraded,
        )

        return schemas.OverviewReport(
            period=assembler.period_info(window),
            kpis=kpis,
            charts=schemas.OverviewCharts(
                revenue=assembler.dense_points(
                    schemas.DailyRevenuePoint, window, revenue=revenue, orders=order_counts
                ),
                comparative=assembler.dense_points(
                    schemas.ComparativePoint, window, revenue=revenue, spend=spend, sessions=sessions
                ),
            ),
            top_products=assembler.product_rows(top_products),
            traffic_sources=assembler.traffic_rows(traffic),
            revenue_by_category=assembler.revenue_by_category_dto(
                revenue_by_category(current_orders, attribution, self.rate)
            ),
            orders_breakdown=assembler.orders_breakdown_dto(orders_breakdown(current_orders, attribution)),
            insights=assembler.insight_rows(generated),
            integrations={integration.value: connected for integration, connected in status.items()},
            degraded_sources=degraded,
        )

    # =========================================================================
    # DAILY DASHBOARD
    # =========================================================================

    async def daily_dashboard(self) -> schemas.DailyDashboardReport:
        """
        Yesterday and month-to-date figures for the operations dashboard.

        Month figures compare month to date against the whole previous month.
        """
        today = self.today
        yesterday = PeriodWindow.ending_on(today - timedelta(days=1), 1)
        week_before = PeriodWindow.ending_on(yesterday.start - timedelta(days=7), 1)
        today_window = PeriodWindow.ending_on(today, 1)
        month = PeriodWindow(today.replace(day=1), today + timedelta(days=1))
        last_month = PeriodWindow.month_of(month.start - timedelta(days=1))
        last_30 = PeriodWindow.ending_on(today, 30)
        span = _span(last_month, last_30, week_before, month)
        lookback = self.settings.attribution_lookback_days
        appointment_span = PeriodWindow(span.start - timedelta(days=lookback), span.end)

        status = await self._connected()
        orders_res, appointments_res, ads_res = await asyncio.gather(
            # Lifetime value needs every order of the customer
            self._gated(status[Integration.SHOPIFY], Integration.SHOPIFY, lambda: self.source.orders()),
            self._gated(status[Integration.ACUITY], Integration.ACUITY,
                        lambda: self.source.appointments(window=appointment_span)),
            self._gated(status[Integration.META], Integration.META, lambda: self.source.ad_spend(span)),
        )

        orders: List[Order] = orders_res.records
        revenue = sales.revenue_values(orders, self.rate)
        spend = marketing.spend_values(ads_res.records)
        appointments: List[Appointment] = appointments_res.records
        appointment_values = _appointment_values(appointments)

        sales_month = aggregate(revenue, month).total
        spend_month = aggregate(spend, month).total
        sales_last_month = aggregate(revenue, last_month).total
        spend_last_month = aggregate(spend, last_month).total
        roas_accumulated = marketing.roas(sales_month, spend_month)

        kpis = schemas.DailyKpis(
            sales_yesterday=assembler.round2(aggregate(revenue, yesterday).total),
            sales_month=assembler.round2(sales_month),
            ads_spend_yesterday=assembler.round2(aggregate(spend, yesterday).total),
            ads_spend_month=assembler.round2(spend_month),
            appointments_yesterday=aggregate(appointment_values, yesterday).count,
            appointments_month=aggregate(appointment_values, month).count,
            roas_accumulated=assembler.round2(roas_accumulated),
        )

        month_orders = [o for o in orders if month.contains(o.created_at)]
        attribution = attribute(month_orders, appointments, lookback)
        month_campaigns = marketing.summarize_campaigns(
            [r for r in ads_res.records if month.contains(r.date)]
        )

        vips = sales.vip_customers(orders, self.settings.vip_threshold_eur, self.settings.top_limit, self.rate)
        upcoming_res = SourceResult.skipped(Integration.ACUITY.value)
        if vips and status[Integration.ACUITY]:
            upcoming_res = await self.source.upcoming_appointments(
                [vip.email for vip in vips],
                datetime.combine(today, datetime.min.time()),
            )
            vips = sales.with_next_appointments(vips, upcoming_res.records)

        best_seller = sales.top_products(month_orders, 1)
        stores_today = Counter(
            appointment.store
            for appointment in appointments
            if appointment.store and not appointment.is_canceled and today_window.contains(appointment.datetime)
        )
        alerts = insights.daily_alerts(
            roas_accumulated=roas_accumulated,
            appointments_yesterday=kpis.appointments_yesterday,
            appointments_week_before=aggregate(appointment_values, week_before).count,
            top_product=best_seller[0].name if best_seller else None,
            month_roas=roas_accumulated if spend_month > 0 else None,
            last_month_roas=marketing.roas(sales_last_month, spend_last_month) if spend_last_month > 0 else None,
            appointments_today_by_store=dict(stores_today),
            sales_month=sales_month,
            sales_last_month=sales_last_month,
            month_campaigns=month_campaigns,
        )

        degraded = degraded_sources(orders_res, appointments_res, ads_res, upcoming_res)
        logger.info("Daily dashboard built", date=today.isoformat(), degraded_sources=degraded)

        return schemas.DailyDashboardReport(
            date=today,
            kpis=kpis,
            daily_revenue=assembler.dense_points(
                schemas.DailyRevenuePoint, month, revenue=revenue, orders=sales.order_count_values(orders)
            ),
            sales_vs_investment=assembler.dense_points(
                schemas.SalesVsInvestmentPoint, last_30, sales=revenue, investment=spend
            ),
            ctr_by_campaigns=assembler.ctr_rows(
                marketing.top_campaigns_by_ctr(month_campaigns, self.settings.top_limit)
            ),
            orders_breakdown=assembler.orders_breakdown_dto(orders_breakdown(month_orders, attribution)),
            top_vip_customers=assembler.vip_rows(vips),
            alerts=assembler.alert_rows(alerts),
            degraded_sources=degraded,
        )

    # =========================================================================
    # SHOPIFY
    # =========================================================================

    async def orders_list(
        self,
        window: PeriodWindow,
        country: Optional[str] = None,
        store: Optional[str] = None,
        financial_status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        lookback_days: Optional[int] = None,
    ) -> schemas.OrdersReport:
        """Filtered orders, newest first, each with its attributed appointment type."""
        lookback = self.settings.attribution_lookback_days if lookback_days is None else lookback_days
        status = await self._connected()
        orders_res = await self._gated(
            status[Integration.SHOPIFY], Integration.SHOPIFY,
            lambda: self.source.orders(
                window=window,
                country=country,
                store=store,
                financial_status=financial_status,
                search=search,
                limit=limit,
            ),
        )
        attribution: Attribution = {}
        appointments_res = SourceResult.skipped(Integration.ACUITY.value)
        if status[Integration.ACUITY]:
            attribution, appointments_res = await self._attributed(orders_res.records, lookback)

        return schemas.OrdersReport(
            period=assembler.period_info(window),
            orders=assembler.order_rows(orders_res.records, attribution, self.rate),
            total=len(orders_res.records),
            degraded_sources=degraded_sources(orders_res, appointments_res),
        )

    async def _orders_with_previous(self, window: PeriodWindow, country: Optional[str], store: Optional[str]):
        status = await self._connected()
        return await self._gated(
            status[Integration.SHOPIFY], Integration.SHOPIFY,
            lambda: self.source.orders(window=_span(window.previous(), window), country=country, store=store),
        )

    async def shopify_metrics(
        self,
        window: PeriodWindow,
        country: Optional[str] = None,
        store: Optional[str] = None,
    ) -> schemas.ShopifyMetricsReport:
        """EUR sales KPIs against the previous window."""
        orders_res = await self._orders_with_previous(window, country, store)
        orders: List[Order] = orders_res.records
        previous = window.previous()

        revenue = sales.revenue_values(orders, self.rate)
        counts = sales.order_count_values(orders)
        products_sold = [DatedValue(o.created_at.date(), o.products_sold) for o in orders]
        paid = [DatedValue(o.created_at.date(), 1.0) for o in orders if o.financial_status == "paid"]

        def block(values: List[DatedValue]) -> schemas.KpiBlock:
            return assembler.kpi_block(aggregate(values, window).total, aggregate(values, previous).total)

        current_revenue, current_count = aggregate(revenue, window), aggregate(counts, window)
        prior_revenue, prior_count = aggregate(revenue, previous), aggregate(counts, previous)

        return schemas.ShopifyMetricsReport(
            period=assembler.period_info(window),
            revenue=block(revenue),
            orders=block(counts),
            average_order_value=assembler.kpi_block(
                current_revenue.total / current_count.total if current_count.total else 0.0,
                prior_revenue.total / prior_count.total if prior_count.total else 0.0,
            ),
            products_sold=block(products_sold),
            paid_orders=block(paid),
            degraded_sources=degraded_sources(orders_res),
        )

    async def products(
        self,
        window: PeriodWindow,
        country: Optional[str] = None,
        store: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> schemas.ProductsReport:
        status = await self._connected()
        orders_res = await self._gated(
            status[Integration.SHOPIFY], Integration.SHOPIFY,
            lambda: self.source.orders(window=window, country=country, store=store),
        )
        ranked = sales.top_products(orders_res.records, limit or self.settings.top_limit)
        return schemas.ProductsReport(
            period=assembler.period_info(window),
            products=assembler.product_rows(ranked),
            degraded_sources=degraded_sources(orders_res),
        )

    async def sales_chart(
        self,
        window: PeriodWindow,
        granularity: Granularity = Granularity.DAY,
        country: Optional[str] = None,
        store: Optional[str] = None,
    ) -> schemas.SalesChartReport:
        """
        Revenue series for the window.

        Daily series are dense; weekly, monthly and yearly series only hold
        periods with orders.
        """
        status = await self._connected()
        orders_res = await self._gated(
            status[Integration.SHOPIFY], Integration.SHOPIFY,
            lambda: self.source.orders(window=window, country=country, store=store),
        )
        revenue = sales.revenue_values(orders_res.records, self.rate)
        granularity = Granularity(granularity)

        if granularity == Granularity.DAY:
            points = assembler.dense_points(
                schemas.DailyRevenuePoint,
                window,
                revenue=revenue,
                orders=sales.order_count_values(orders_res.records),
            )
            series = [
                schemas.BreakdownRow(
                    period=point.date.isoformat(),
                    start_date=point.date,
                    revenue=point.revenue,
                    orders=point.orders,
                    average_order_value=assembler.round2(point.revenue / point.orders) if point.orders else 0,
                )
                for point in points
            ]
        else:
            series = assembler.breakdown_rows(breakdown(revenue, granularity))

        return schemas.SalesChartReport(
            period=assembler.period_info(window),
            granularity=granularity.value,
            series=series,
            degraded_sources=degraded_sources(orders_res),
        )

    # =========================================================================
    # ACUITY
    # =========================================================================

    async def appointments(
        self,
        window: PeriodWindow,
        category: Optional[AppointmentCategory] = None,
        store: Optional[str] = None,
    ) -> schemas.AppointmentsReport:
        """
        Booked appointments by category and store against the previous window.

        Canceled appointments only count towards the canceled KPI.
        """
        previous = window.previous()
        history = window.preceding(self.settings.history_days)
        status = await self._connected()
        appointments_res = await self._gated(
            status[Integration.ACUITY], Integration.ACUITY,
            lambda: self.source.appointments(
                window=_span(history, previous, window),
                category=category.value if category else None,
                include_canceled=True,
            ),
        )
        store_name = (normalize_store_name(store) or store) if store else None
        appointments: List[Appointment] = [
            a for a in appointments_res.records if store_name is None or a.store == store_name
        ]
        booked = [a for a in appointments if not a.is_canceled]
        canceled = [DatedValue(a.datetime.date(), 1.0) for a in appointments if a.is_canceled]
        total = _appointment_values(booked)
        medicion = _appointment_values([a for a in booked if a.category == AppointmentCategory.MEDICION])
        fitting = _appointment_values([a for a in booked if a.category == AppointmentCategory.FITTING])

        def with_history(values: List[DatedValue]) -> schemas.KpiBlock:
            return assembler.kpi_block(
                aggregate(values, window).total,
                aggregate(values, previous).total,
                _expected_total(values, history, window),
            )

        def grouped(key: Callable[[Appointment], Optional[str]]) -> List[schemas.AppointmentGroupRow]:
            current = Counter(key(a) or UNKNOWN_GROUP for a in booked if window.contains(a.datetime))
            prior = Counter(key(a) or UNKNOWN_GROUP for a in booked if previous.contains(a.datetime))
            return assembler.group_rows(current, prior)

        degraded = degraded_sources(appointments_res)
        logger.info(
            "Appointments report built",
            start=window.start.isoformat(),
            days=window.days,
            category=category.value if category else None,
            store=store_name,
            degraded_sources=degraded,
        )

        return schemas.AppointmentsReport(
            period=assembler.period_info(window),
            kpis=schemas.AppointmentKpis(
                total=with_history(total),
                medicion=with_history(medicion),
                fitting=with_history(fitting),
                canceled=assembler.kpi_block(aggregate(canceled, window).total, aggregate(canceled, previous).total),
            ),
            by_category=grouped(lambda a: a.category.value if a.category else None),
            by_store=grouped(lambda a: a.store),
            daily_appointments=assembler.dense_points(
                schemas.AppointmentsPoint, window, appointments=total, medicion=medicion, fitting=fitting
            ),
            degraded_sources=degraded,
        )

    # =========================================================================
    # META ADS
    # =========================================================================

    async def campaigns(
        self,
        window: PeriodWindow,
        campaign_id: Optional[str] = None,
    ) -> schemas.CampaignsReport:
        """Per-campaign totals and spend KPIs against the previous window."""
        previous = window.previous()
        status = await self._connected()
        ads_res = await self._gated(
            status[Integration.META], Integration.META,
            lambda: self.source.ad_spend(_span(previous, window), campaign_id=campaign_id),
        )
        ads: List[AdSpendRecord] = ads_res.records
        current = marketing.ad_totals(r for r in ads if window.contains(r.date))
        prior = marketing.ad_totals(r for r in ads if previous.contains(r.date))

        def ctr(totals: Dict[str, float]) -> float:
            return totals["clicks"] / totals["impressions"] * 100 if totals["impressions"] else 0.0

        def cpc(totals: Dict[str, float]) -> float:
            return totals["spend"] / totals["clicks"] if totals["clicks"] else 0.0

        current_ads = [r for r in ads if window.contains(r.date)]
        return schemas.CampaignsReport(
            period=assembler.period_info(window),
            kpis=schemas.CampaignKpis(
                spend=assembler.kpi_block(current["spend"], prior["spend"]),
                impressions=assembler.kpi_block(current["impressions"], prior["impressions"]),
                clicks=assembler.kpi_block(current["clicks"], prior["clicks"]),
                conversions=assembler.kpi_block(current["conversions"], prior["conversions"]),
                ctr=assembler.kpi_block(ctr(current), ctr(prior)),
                cpc=assembler.kpi_block(cpc(current), cpc(prior)),
            ),
            campaigns=assembler.campaign_rows(marketing.summarize_campaigns(current_ads)),
            daily_spend=assembler.dense_points(
                schemas.SpendPoint,
                window,
                spend=marketing.spend_values(current_ads),
                clicks=[DatedValue(r.date, r.clicks) for r in current_ads],
                impressions=[DatedValue(r.date, r.impressions) for r in current_ads],
            ),
            degraded_sources=degraded_sources(ads_res),
        )

    # =========================================================================
    # GOOGLE ANALYTICS
    # =========================================================================

    async def analytics(self, window: PeriodWindow) -> schemas.AnalyticsReport:
        """Traffic KPIs against the previous window with sources and pages."""
        previous = window.previous()
        status = await self._connected()
        analytics_res = await self._gated(
            status[Integration.ANALYTICS], Integration.ANALYTICS,
            lambda: self.source.analytics(_span(previous, window)),
        )
        snapshots: List[AnalyticsSnapshot] = analytics_res.records
        current_snapshots = [s for s in snapshots if window.contains(s.date)]
        current = marketing.analytics_totals(current_snapshots)
        prior = marketing.analytics_totals([s for s in snapshots if previous.contains(s.date)])

        return schemas.AnalyticsReport(
            period=assembler.period_info(window),
            kpis=schemas.AnalyticsKpis(
                **{
                    name: assembler.kpi_block(current[name], prior[name])
                    for name in (
                        "sessions", "users", "new_users", "page_views", "bounce_rate", "avg_session_duration",
                    )
                }
            ),
            traffic_sources=assembler.traffic_rows(
                marketing.traffic_sources(current_snapshots, self.settings.top_limit)
            ),
            top_pages=assembler.page_rows(marketing.top_pages(current_snapshots, self.settings.top_limit)),
            daily_sessions=assembler.dense_points(
                schemas.SessionsPoint,
                window,
                sessions=marketing.session_values(current_snapshots),
                users=[DatedValue(s.date, s.users) for s in current_snapshots],
            ),
            degraded_sources=degraded_sources(analytics_res),
        )
