"""
Integration Tests - Report Data Sources
"""
import asyncio
from datetime import date, datetime

import pytest
from sqlalchemy import text

from retail_analytics.database.models import Integration, IntegrationSetting
from retail_analytics.ingestion.sources import EMAIL_CHUNK_SIZE, ReportDataSource
from retail_analytics.transformation.periods import PeriodWindow

MARCH = PeriodWindow.from_inclusive(date(2024, 3, 1), date(2024, 3, 31))


class SlowDataSource(ReportDataSource):
    """Data source whose queries never finish in time"""

    async def _execute(self, stmt):
        await asyncio.sleep(1)
        return await super()._execute(stmt)


class SteadyDataSource(ReportDataSource):
    """Data source where every statement takes a fixed time"""

    delay = 0.2

    async def _execute(self, stmt):
        await asyncio.sleep(self.delay)
        return await super()._execute(stmt)


class TestFetches:
    """Tests for the typed fetches"""

    async def test_orders_in_window_newest_first(self, data_source):
        result = await data_source.orders(window=MARCH)

        assert result.ok
        assert [o.id for o in result.records] == ["1003", "1002", "1001"]
        assert result.records[2].customer_email == "a@x.com"

    async def test_order_filters(self, data_source):
        mexican = await data_source.orders(window=MARCH, country="mx")
        madrid = await data_source.orders(store="Madrid")
        searched = await data_source.orders(search="beatriz")
        limited = await data_source.orders(limit=1)

        assert [o.id for o in mexican.records] == ["1002"]
        assert sorted(o.id for o in madrid.records) == ["0999", "1001"]
        assert [o.id for o in searched.records] == ["1002"]
        assert [o.id for o in limited.records] == ["1003"]

    async def test_appointments_exclude_canceled(self, data_source):
        result = await data_source.appointments(window=MARCH)
        assert [a.id for a in result.records] == ["a1", "a4"]

        with_canceled = await data_source.appointments(window=MARCH, include_canceled=True)
        assert [a.id for a in with_canceled.records] == ["a1", "a2", "a4"]

    async def test_appointments_for_customers_matches_email_case(self, data_source):
        result = await data_source.appointments_for_customers(
            ["A@x.com", "b@X.com"], PeriodWindow.from_inclusive(date(2024, 1, 1), date(2024, 3, 31))
        )
        assert sorted(a.id for a in result.records) == ["a1", "a3"]

    async def test_upcoming_appointments(self, data_source):
        result = await data_source.upcoming_appointments(["d@x.com", "b@x.com"], datetime(2024, 3, 5))
        assert [a.id for a in result.records] == ["a4"]

    async def test_ad_spend_keeps_every_row(self, data_source):
        result = await data_source.ad_spend(MARCH, campaign_id="c1")
        assert len(result.records) == 2
        assert sum(r.spend for r in result.records) == pytest.approx(25.0)

    async def test_analytics(self, data_source):
        result = await data_source.analytics(MARCH)
        (snapshot,) = result.records
        assert snapshot.top_pages[0].page_path == "/"
        assert snapshot.traffic_sources[1].source == "instagram"


class TestDegradation:
    """A failing source returns an error result instead of raising"""

    async def test_query_error(self, data_source, seeded_db):
        async with seeded_db() as session:
            await session.execute(text("DROP TABLE meta_campaigns"))
            await session.commit()

        result = await data_source.ad_spend(MARCH)

        assert not result.ok
        assert result.records == []
        assert result.error.source == Integration.META.value

    async def test_timeout_is_a_fetch_failure(self, seeded_db):
        source = SlowDataSource(seeded_db, timeout_seconds=0.05)

        result = await source.orders(window=MARCH)

        assert not result.ok
        assert result.records == []
        assert isinstance(result.error.cause, asyncio.TimeoutError)

    async def test_chunked_fetch_shares_one_timeout(self, seeded_db):
        """Two email chunks at 0.2s each overrun a 0.3s budget that each chunk alone would meet"""
        source = SteadyDataSource(seeded_db, timeout_seconds=0.3)
        emails = ["b@x.com"] + [f"customer{i}@x.com" for i in range(EMAIL_CHUNK_SIZE)]
        window = PeriodWindow.from_inclusive(date(2024, 1, 1), date(2024, 3, 31))

        single = await source.appointments_for_customers(["b@x.com"], window)
        chunked = await source.appointments_for_customers(emails, window)

        assert single.ok
        assert [a.id for a in single.records] == ["a3"]
        assert not chunked.ok
        assert chunked.records == []
        assert isinstance(chunked.error.cause, asyncio.TimeoutError)


class TestIntegrationStatus:
    """Tests for integration_status()"""

    async def test_no_settings_means_all_connected(self, data_source):
        status = await data_source.integration_status()
        assert all(status.values())

    async def test_configured_flags(self, data_source, seeded_db):
        async with seeded_db() as session:
            session.add_all([
                IntegrationSetting(integration="shopify", connected=True),
                IntegrationSetting(integration="meta", connected=False),
            ])
            await session.commit()

        status = await data_source.integration_status()

        assert status[Integration.SHOPIFY] is True
        assert status[Integration.META] is False
        # integrations without a row are disconnected
        assert status[Integration.ANALYTICS] is False

    async def test_lookup_failure_fails_open(self, data_source, seeded_db):
        async with seeded_db() as session:
            await session.execute(text("DROP TABLE integration_settings"))
            await session.commit()

        status = await data_source.integration_status()

        assert all(status.values())
