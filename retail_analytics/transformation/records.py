"""
Typed Report Records

Immutable records handed to the aggregation code. Rows coming from the synced
tables have loose shapes (NULL prices, JSON blobs with camelCase or snake_case
keys, mixed-case emails), so every field is validated and defaulted here once
instead of in each report.
"""

from datetime import date, datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from retail_analytics.database.models import AppointmentCategory, AppointmentStatus

KNOWN_STORES = {
    "madrid": "Madrid",
    "sevilla": "Sevilla",
    "seville": "Sevilla",
    "málaga": "Málaga",
    "malaga": "Málaga",
    "barcelona": "Barcelona",
    "valencia": "Valencia",
    "murcia": "Murcia",
    "bilbao": "Bilbao",
    "zaragoza": "Zaragoza",
    "cdmx": "Cdmx",
    "ciudad de méxico": "Cdmx",
    "ciudad de mexico": "Cdmx",
    "méxico": "Cdmx",
    "mexico": "Cdmx",
}

_CATEGORY_ALIASES = {
    "medición": AppointmentCategory.MEDICION,
    "medicion": AppointmentCategory.MEDICION,
    "fitting": AppointmentCategory.FITTING,
}


def normalize_store_name(name: Optional[str]) -> Optional[str]:
    """Map a free-form store, tag or calendar name to a canonical store."""
    if not name:
        return None
    lowered = name.strip().lower()
    if lowered.startswith("tienda:"):
        lowered = lowered[len("tienda:"):].strip()
    if lowered in KNOWN_STORES:
        return KNOWN_STORES[lowered]
    for key, store in KNOWN_STORES.items():
        if key in lowered:
            return store
    return None


def parse_category(value: Any) -> Optional[AppointmentCategory]:
    """Recognised appointment category, or None for anything else."""
    if isinstance(value, AppointmentCategory):
        return value
    if not isinstance(value, str):
        return None
    return _CATEGORY_ALIASES.get(value.strip().lower())


def to_naive_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC; aware inputs are converted."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _number(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _integer(value: Any) -> int:
    return int(_number(value))


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


class Record(BaseModel):
    """Base class for report records"""

    model_config = ConfigDict(frozen=True, from_attributes=True)


class LineItem(Record):
    """Shopify line item"""
    product_id: Optional[str] = None
    title: str = "Untitled product"
    quantity: int = 0
    price: float = 0.0

    @field_validator("product_id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> Optional[str]:
        return str(v) if v not in (None, "") else None

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, v: Any) -> str:
        return v or "Untitled product"

    @field_validator("quantity", mode="before")
    @classmethod
    def _default_quantity(cls, v: Any) -> int:
        return _integer(v)

    @field_validator("price", mode="before")
    @classmethod
    def _default_price(cls, v: Any) -> float:
        return _number(v)


class Order(Record):
    """Shopify order as consumed by the reports"""
    id: str
    order_number: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    total_price: float = 0.0
    country: str = "ES"
    financial_status: Optional[str] = None
    created_at: datetime
    tags: List[str] = Field(default_factory=list)
    line_items: List[LineItem] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("customer_email", mode="before")
    @classmethod
    def _clean_email(cls, v: Any) -> Optional[str]:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip().lower()

    @field_validator("total_price", mode="before")
    @classmethod
    def _default_price(cls, v: Any) -> float:
        return _number(v)

    @field_validator("country", mode="before")
    @classmethod
    def _default_country(cls, v: Any) -> str:
        return v.strip().upper() if isinstance(v, str) and v.strip() else "ES"

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, v: Any) -> List[str]:
        # Shopify exports tags as a comma separated string
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [str(tag).strip() for tag in v if str(tag).strip()]

    @field_validator("line_items", mode="before")
    @classmethod
    def _default_items(cls, v: Any) -> list:
        return [item for item in (v or []) if isinstance(item, (dict, LineItem))]

    @property
    def is_online(self) -> bool:
        """Online orders carry no store tags"""
        return not self.tags

    @property
    def store(self) -> Optional[str]:
        for tag in self.tags:
            store = normalize_store_name(tag)
            if store:
                return store
        return None

    @property
    def products_sold(self) -> int:
        return sum(item.quantity for item in self.line_items)


class Appointment(Record):
    """Acuity appointment"""
    id: str
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    category: Optional[AppointmentCategory] = None
    calendar_name: Optional[str] = None
    datetime: datetime
    status: AppointmentStatus = AppointmentStatus.BOOKED

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("customer_email", mode="before")
    @classmethod
    def _clean_email(cls, v: Any) -> Optional[str]:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip().lower()

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: Any) -> Optional[AppointmentCategory]:
        return parse_category(v)

    @field_validator("datetime")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> AppointmentStatus:
        if isinstance(v, AppointmentStatus):
            return v
        value = str(v or "").strip().lower()
        if value in ("canceled", "cancelled"):
            return AppointmentStatus.CANCELED
        if value == AppointmentStatus.RESCHEDULED.value:
            return AppointmentStatus.RESCHEDULED
        return AppointmentStatus.BOOKED

    @property
    def is_canceled(self) -> bool:
        return self.status == AppointmentStatus.CANCELED

    @property
    def store(self) -> Optional[str]:
        return normalize_store_name(self.calendar_name)


class AdSpendRecord(Record):
    """Meta Ads insight row: one campaign, one day"""
    date: date
    campaign_id: str = "unknown"
    campaign_name: str = "Unnamed campaign"
    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0

    @field_validator("campaign_id", mode="before")
    @classmethod
    def _campaign_id(cls, v: Any) -> str:
        return str(v) if v not in (None, "") else "unknown"

    @field_validator("campaign_name", mode="before")
    @classmethod
    def _campaign_name(cls, v: Any) -> str:
        return v or "Unnamed campaign"

    @field_validator("spend", mode="before")
    @classmethod
    def _spend(cls, v: Any) -> float:
        return _number(v)

    @field_validator("impressions", "clicks", "conversions", mode="before")
    @classmethod
    def _counts(cls, v: Any) -> int:
        return _integer(v)


class TrafficSource(Record):
    """Sessions per source/medium"""
    source: str = "unknown"
    medium: str = "unknown"
    sessions: int = 0
    users: int = 0

    @classmethod
    def from_raw(cls, raw: dict) -> "TrafficSource":
        return cls(
            source=_pick(raw, "source", default="unknown") or "unknown",
            medium=_pick(raw, "medium", default="unknown") or "unknown",
            sessions=_integer(raw.get("sessions")),
            users=_integer(raw.get("users")),
        )


class TopPage(Record):
    """Page views per page path"""
    page_path: str = "/"
    page_title: str = "Unknown"
    page_views: int = 0
    avg_time_on_page: float = 0.0

    @classmethod
    def from_raw(cls, raw: dict) -> "TopPage":
        return cls(
            page_path=_pick(raw, "page_path", "pagePath", default="/"),
            page_title=_pick(raw, "page_title", "pageTitle", default="Unknown"),
            page_views=_integer(_pick(raw, "page_views", "pageViews")),
            avg_time_on_page=_number(_pick(raw, "avg_time_on_page", "avgTimeOnPage")),
        )


class AnalyticsSnapshot(Record):
    """Google Analytics daily snapshot"""
    date: date
    sessions: int = 0
    users: int = 0
    new_users: int = 0
    page_views: int = 0
    bounce_rate: float = 0.0
    avg_session_duration: float = 0.0
    traffic_sources: List[TrafficSource] = Field(default_factory=list)
    top_pages: List[TopPage] = Field(default_factory=list)

    @field_validator("sessions", "users", "new_users", "page_views", mode="before")
    @classmethod
    def _counts(cls, v: Any) -> int:
        return _integer(v)

    @field_validator("bounce_rate", "avg_session_duration", mode="before")
    @classmethod
    def _rates(cls, v: Any) -> float:
        return _number(v)

    @field_validator("traffic_sources", mode="before")
    @classmethod
    def _sources(cls, v: Any) -> list:
        return [
            TrafficSource.from_raw(raw) if isinstance(raw, dict) else raw
            for raw in (v or [])
            if isinstance(raw, (dict, TrafficSource))
        ]

    @field_validator("top_pages", mode="before")
    @classmethod
    def _pages(cls, v: Any) -> list:
        return [
            TopPage.from_raw(raw) if isinstance(raw, dict) else raw
            for raw in (v or [])
            if isinstance(raw, (dict, TopPage))
        ]
