"""
Marketing Metrics

Reductions over Meta Ads insight rows and Google Analytics snapshots.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from retail_analytics.transformation.currency import detect_campaign_country
from retail_analytics.transformation.periods import DatedValue
from retail_analytics.transformation.records import AdSpendRecord, AnalyticsSnapshot


@dataclass(frozen=True)
class CampaignSummary:
    """Totals of one campaign over a window"""
    campaign_id: str
    campaign_name: str
    country: str
    spend: float
    impressions: int
    clicks: int
    conversions: int
    days_active: int

    @property
    def ctr(self) -> float:
        """Click-through rate in percent"""
        return self.clicks / self.impressions * 100 if self.impressions else 0.0

    @property
    def cpc(self) -> float:
        return self.spend / self.clicks if self.clicks else 0.0

    @property
    def cpa(self) -> Optional[float]:
        return self.spend / self.conversions if self.conversions else None


@dataclass(frozen=True)
class TrafficShare:
    source: str
    medium: str
    sessions: int
    users: int
    percentage: float


@dataclass(frozen=True)
class PageStats:
    page_path: str
    page_title: str
    page_views: int
    avg_time_on_page: float


def spend_values(records: Iterable[AdSpendRecord]) -> List[DatedValue]:
    return [DatedValue(record.date, record.spend) for record in records]


def summarize_campaigns(records: Iterable[AdSpendRecord]) -> List[CampaignSummary]:
    """
    Sum insight rows per campaign.

    Several rows for the same campaign on the same day are added together,
    never overwritten. Sorted by spend, highest first.
    """
    campaigns: Dict[str, dict] = {}
    for record in records:
        entry = campaigns.setdefault(
            record.campaign_id,
            {
                "campaign_id": record.campaign_id,
                "campaign_name": record.campaign_name,
                "spend": 0.0,
                "impressions": 0,
                "clicks": 0,
                "conversions": 0,
                "days": set(),
            },
        )
        entry["spend"] += record.spend
        entry["impressions"] += record.impressions
        entry["clicks"] += record.clicks
        entry["conversions"] += record.conversions
        entry["days"].add(record.date)

    summaries = [
        CampaignSummary(
            campaign_id=entry["campaign_id"],
            campaign_name=entry["campaign_name"],
            country=detect_campaign_country(entry["campaign_name"]),
            spend=entry["spend"],
            impressions=entry["impressions"],
            clicks=entry["clicks"],
            conversions=entry["conversions"],
            days_active=len(entry["days"]),
        )
        for entry in campaigns.values()
    ]
    return sorted(summaries, key=lambda c: c.spend, reverse=True)


def top_campaigns_by_ctr(summaries: Sequence[CampaignSummary], limit: int = 10) -> List[CampaignSummary]:
    """Campaigns with spend, ranked by click-through rate."""
    spending = [c for c in summaries if c.spend > 0]
    return sorted(spending, key=lambda c: c.ctr, reverse=True)[:limit]


def ad_totals(records: Iterable[AdSpendRecord]) -> Dict[str, float]:
    totals = {"spend": 0.0, "impressions": 0.0, "clicks": 0.0, "conversions": 0.0}
    for record in records:
        totals["spend"] += record.spend
        totals["impressions"] += record.impressions
        totals["clicks"] += record.clicks
        totals["conversions"] += record.conversions
    return totals


def roas(revenue: float, spend: float) -> float:
    """Return on ad spend, 0 without spend."""
    return revenue / spend if spend > 0 else 0.0


def session_values(snapshots: Iterable[AnalyticsSnapshot]) -> List[DatedValue]:
    return [DatedValue(snapshot.date, snapshot.sessions) for snapshot in snapshots]


def traffic_sources(snapshots: Iterable[AnalyticsSnapshot], limit: int = 10) -> List[TrafficShare]:
    """Sessions per source/medium across snapshots with each pair's share of the total."""
    sources: Dict[tuple, dict] = {}
    for snapshot in snapshots:
        for source in snapshot.traffic_sources:
            entry = sources.setdefault(
                (source.source, source.medium),
                {"source": source.source, "medium": source.medium, "sessions": 0, "users": 0},
            )
            entry["sessions"] += source.sessions
            entry["users"] += source.users

    total = sum(entry["sessions"] for entry in sources.values())
    ranked = sorted(sources.values(), key=lambda s: s["sessions"], reverse=True)
    return [
        TrafficShare(**entry, percentage=entry["sessions"] / total * 100 if total else 0.0)
        for entry in ranked[:limit]
    ]


def top_pages(snapshots: Iterable[AnalyticsSnapshot], limit: int = 10) -> List[PageStats]:
    """Page views per path; time on page is the view-weighted mean."""
    pages: Dict[str, dict] = {}
    for snapshot in snapshots:
        for page in snapshot.top_pages:
            entry = pages.setdefault(
                page.page_path,
                {"page_path": page.page_path, "page_title": page.page_title, "page_views": 0, "weighted_time": 0.0},
            )
            entry["page_views"] += page.page_views
            entry["weighted_time"] += page.avg_time_on_page * page.page_views

    ranked = sorted(pages.values(), key=lambda p: p["page_views"], reverse=True)
    return [
        PageStats(
            page_path=entry["page_path"],
            page_title=entry["page_title"],
            page_views=entry["page_views"],
            avg_time_on_page=entry["weighted_time"] / entry["page_views"] if entry["page_views"] else 0.0,
        )
        for entry in ranked[:limit]
    ]


def analytics_totals(snapshots: Sequence[AnalyticsSnapshot]) -> Dict[str, float]:
    """Summed traffic counts plus mean bounce rate and session duration per snapshot."""
    count = len(snapshots)
    return {
        "sessions": sum(s.sessions for s in snapshots),
        "users": sum(s.users for s in snapshots),
        "new_users": sum(s.new_users for s in snapshots),
        "page_views": sum(s.page_views for s in snapshots),
        "bounce_rate": sum(s.bounce_rate for s in snapshots) / count if count else 0.0,
        "avg_session_duration": sum(s.avg_session_duration for s in snapshots) / count if count else 0.0,
    }
