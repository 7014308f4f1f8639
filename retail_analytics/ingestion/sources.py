"""
Report Data Sources

Read access to the synced source tables. Every fetch returns a SourceResult
instead of raising: a source that errors or exceeds its timeout comes back
with empty records and a SourceFetchError, and the report is built from
whatever succeeded.

Fetches are meant to run concurrently (asyncio.gather), so each one opens its
own session from the factory.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Generic, List, Optional, Sequence, Type, TypeVar

import structlog
from pydantic import ValidationError
from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from retail_analytics.database.models import (
    AcuityAppointment,
    AnalyticsDay,
    AppointmentStatus,
    Integration,
    IntegrationSetting,
    MetaCampaignDay,
    ShopifyOrder,
)
from retail_analytics.exceptions import SourceFetchError
from retail_analytics.transformation.periods import PeriodWindow
from retail_analytics.transformation.records import (
    AdSpendRecord,
    AnalyticsSnapshot,
    Appointment,
    Order,
    Record,
)

logger = structlog.get_logger(__name__)

R = TypeVar("R", bound=Record)

# Attribution needs the customer's earlier appointments; large IN lists are chunked
EMAIL_CHUNK_SIZE = 500

CANCELED_STATUSES = (AppointmentStatus.CANCELED.value, "cancelled")


@dataclass(frozen=True)
class SourceResult(Generic[R]):
    """Records of one source fetch, or the error that replaced them"""
    source: str
    records: List[R] = field(default_factory=list)
    error: Optional[SourceFetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def skipped(cls, source: str) -> "SourceResult[R]":
        """Result for a disconnected integration: no records, no error."""
        return cls(source=source)


class ReportDataSource:
    """
    Typed, time-boxed queries against the synced tables.

    Args:
        session_factory: Factory producing a fresh AsyncSession per fetch
        timeout_seconds: Upper bound for a single fetch
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout_seconds: float = 10.0,
    ):
        self.session_factory = session_factory
        self.timeout_seconds = timeout_seconds

    async def _execute(self, stmt: Select) -> Sequence:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalars().all()

    async def _execute_all(self, stmts: Sequence[Select]) -> List:
        rows: List = []
        for stmt in stmts:
            rows.extend(await self._execute(stmt))
        return rows

    async def _fetch(self, source: str, stmt: Select, model: Type[R]) -> SourceResult[R]:
        return await self._fetch_many(source, [stmt], model)

    async def _fetch_many(self, source: str, stmts: Sequence[Select], model: Type[R]) -> SourceResult[R]:
        """Run the statements one after another under a single timeout."""
        try:
            rows = await asyncio.wait_for(self._execute_all(stmts), timeout=self.timeout_seconds)
        except Exception as e:
            error = SourceFetchError(source, e)
            logger.warning(
                "Source fetch failed",
                source=source,
                error=str(e) or repr(e),
                error_type=type(e).__name__,
            )
            return SourceResult(source=source, error=error)

        records: List[R] = []
        skipped = 0
        for row in rows:
            try:
                records.append(model.model_validate(row))
            except ValidationError as e:
                skipped += 1
                logger.warning(
                    "Skipping malformed row",
                    source=source,
                    row_id=getattr(row, "id", None),
                    errors=e.error_count(),
                )

        logger.debug("Source fetched", source=source, records=len(records), skipped=skipped)
        return SourceResult(source=source, records=records)

    async def orders(
        self,
        window: Optional[PeriodWindow] = None,
        country: Optional[str] = None,
        emails: Optional[Sequence[str]] = None,
        store: Optional[str] = None,
        financial_status: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> SourceResult[Order]:
        """
        Shopify orders, newest first.

        `store` is matched against the order tags after loading, since tags
        are stored as JSON.
        """
        stmt = select(ShopifyOrder).order_by(ShopifyOrder.created_at.desc())
        if window is not None:
            start, end = window.bounds()
            stmt = stmt.where(ShopifyOrder.created_at >= start, ShopifyOrder.created_at < end)
        if country:
            stmt = stmt.where(ShopifyOrder.country == country.upper())
        if emails is not None:
            stmt = stmt.where(func.lower(ShopifyOrder.customer_email).in_([e.lower() for e in emails]))
        if financial_status:
            stmt = stmt.where(ShopifyOrder.financial_status == financial_status)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(ShopifyOrder.customer_name).like(pattern),
                    func.lower(ShopifyOrder.customer_email).like(pattern),
                    func.lower(ShopifyOrder.order_number).like(pattern),
                )
            )
        if limit is not None and not store:
            stmt = stmt.limit(limit)

        result = await self._fetch(Integration.SHOPIFY.value, stmt, Order)
        if store and result.ok:
            records = [order for order in result.records if order.store == store]
            if limit is not None:
                records = records[:limit]
            result = SourceResult(source=result.source, records=records)
        return result

    @staticmethod
    def _appointments_stmt(
        window: Optional[PeriodWindow] = None,
        emails: Optional[Sequence[str]] = None,
        category: Optional[str] = None,
        include_canceled: bool = False,
    ) -> Select:
        stmt = select(AcuityAppointment).order_by(AcuityAppointment.datetime)
        if window is not None:
            start, end = window.bounds()
            stmt = stmt.where(AcuityAppointment.datetime >= start, AcuityAppointment.datetime < end)
        if emails is not None:
            stmt = stmt.where(
                func.lower(AcuityAppointment.customer_email).in_([e.lower() for e in emails])
            )
        if category:
            stmt = stmt.where(AcuityAppointment.category == category)
        if not include_canceled:
            stmt = stmt.where(
                or_(
                    AcuityAppointment.status.is_(None),
                    AcuityAppointment.status.not_in(CANCELED_STATUSES),
                )
            )
        return stmt

    async def appointments(
        self,
        window: Optional[PeriodWindow] = None,
        emails: Optional[Sequence[str]] = None,
        category: Optional[str] = None,
        include_canceled: bool = False,
    ) -> SourceResult[Appointment]:
        """Acuity appointments in a window, optionally limited to some customers or a category."""
        if emails is not None and not emails:
            return SourceResult(source=Integration.ACUITY.value)
        stmt = self._appointments_stmt(window, emails, category, include_canceled)
        return await self._fetch(Integration.ACUITY.value, stmt, Appointment)

    async def appointments_for_customers(
        self,
        emails: Sequence[str],
        window: PeriodWindow,
    ) -> SourceResult[Appointment]:
        """
        Appointments of a set of customers, queried in email chunks.

        All chunks share one timeout; any failing chunk fails the whole result.
        """
        unique = sorted({email.lower() for email in emails if email})
        if not unique:
            return SourceResult(source=Integration.ACUITY.value)
        stmts = [
            self._appointments_stmt(window, unique[offset:offset + EMAIL_CHUNK_SIZE])
            for offset in range(0, len(unique), EMAIL_CHUNK_SIZE)
        ]
        return await self._fetch_many(Integration.ACUITY.value, stmts, Appointment)

    async def upcoming_appointments(
        self,
        emails: Sequence[str],
        after: datetime,
    ) -> SourceResult[Appointment]:
        if not emails:
            return SourceResult(source=Integration.ACUITY.value)
        stmt = (
            select(AcuityAppointment)
            .where(
                AcuityAppointment.datetime >= after,
                func.lower(AcuityAppointment.customer_email).in_([e.lower() for e in emails]),
                or_(
                    AcuityAppointment.status.is_(None),
                    AcuityAppointment.status.not_in(CANCELED_STATUSES),
                ),
            )
            .order_by(AcuityAppointment.datetime)
        )
        return await self._fetch(Integration.ACUITY.value, stmt, Appointment)

    async def ad_spend(
        self,
        window: PeriodWindow,
        campaign_id: Optional[str] = None,
    ) -> SourceResult[AdSpendRecord]:
        """Meta Ads insight rows in a window (end exclusive)."""
        stmt = (
            select(MetaCampaignDay)
            .where(MetaCampaignDay.date >= window.start, MetaCampaignDay.date < window.end)
            .order_by(MetaCampaignDay.date)
        )
        if campaign_id:
            stmt = stmt.where(MetaCampaignDay.campaign_id == campaign_id)
        return await self._fetch(Integration.META.value, stmt, AdSpendRecord)

    async def analytics(self, window: PeriodWindow) -> SourceResult[AnalyticsSnapshot]:
        """Google Analytics daily snapshots in a window (end exclusive)."""
        stmt = (
            select(AnalyticsDay)
            .where(AnalyticsDay.date >= window.start, AnalyticsDay.date < window.end)
            .order_by(AnalyticsDay.date)
        )
        return await self._fetch(Integration.ANALYTICS.value, stmt, AnalyticsSnapshot)

    async def integration_status(self) -> Dict[Integration, bool]:
        """
        Connection flag per integration.

        Integrations without a row count as disconnected. If the lookup
        itself fails every integration is reported connected, so a broken
        settings table never blanks the dashboard.
        """
        stmt = select(IntegrationSetting)
        try:
            rows = await asyncio.wait_for(self._execute(stmt), timeout=self.timeout_seconds)
        except Exception as e:
            logger.warning(
                "Integration status lookup failed, assuming all connected",
                error=str(e) or repr(e),
                error_type=type(e).__name__,
            )
            return {integration: True for integration in Integration}

        if not rows:
            # Nothing configured yet: attempt every source
            return {integration: True for integration in Integration}

        status = {integration: False for integration in Integration}
        for row in rows:
            try:
                status[Integration(row.integration)] = bool(row.connected)
            except ValueError:
                logger.debug("Unknown integration setting", integration=row.integration)
        return status
