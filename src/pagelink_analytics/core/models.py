"""
Pydantic models for analytics data.
"""
import logging
from collections.abc import Iterable
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

# =============================================================================
# Raw Data Models
# =============================================================================

class EventType(str, Enum):
    """Recorded visitor action.

    The stored vocabulary is open-ended; any value not listed here parses
    as UNKNOWN and is ignored by every aggregation.
    """
    VIEW = "view"
    EMBED_LOAD = "embed_load"
    DOWNLOAD = "download"
    ENGAGED = "engaged"
    CLICK = "click"
    SCROLL = "scroll"
    CONVERSION = "conversion"
    LEAD_CAPTURE = "lead_capture"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class AnalyticsEvent(BaseModel):
    """A single recorded visitor action."""
    model_config = ConfigDict(extra="ignore")

    id: str | int | None = None

    # Scope
    workspace_id: str | None = None
    document_id: str | None = None
    asset_id: str | None = None
    short_link_id: str | None = None
    collection_id: str | None = None

    event_type: str
    visitor_id: str | None = None
    created_at: datetime

    # Referrer
    referrer: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None

    # Technology
    user_agent: str | None = None

    # Geography
    country_code: str | None = None
    country: str | None = None
    country_name: str | None = None
    city: str | None = None

    # Engagement
    time_on_page: float | None = None
    scroll_depth: float | None = None

    # Joined display rows (export only)
    asset: dict[str, Any] | None = None
    short_link: dict[str, Any] | None = None
    collection: dict[str, Any] | None = None

    @property
    def type(self) -> EventType:
        return EventType(self.event_type)


def parse_events(rows: Iterable[dict[str, Any]]) -> list[AnalyticsEvent]:
    """Validate raw event rows, dropping rows that do not parse.

    A row with a missing or malformed ``created_at`` (or a missing
    ``event_type``) is skipped rather than failing the whole window.
    """
    events = []
    dropped = 0
    for row in rows:
        try:
            events.append(AnalyticsEvent.model_validate(row))
        except ValidationError:
            dropped += 1
    if dropped:
        logger.debug(f"Dropped {dropped} malformed analytics event rows")
    return events


class ABTestEvent(BaseModel):
    """A view or conversion recorded against one A/B variant."""
    variant_id: str
    event_type: str
    created_at: datetime | None = None


# =============================================================================
# Workspace Analytics Response
# =============================================================================

class Overview(BaseModel):
    """Headline numbers for the workspace dashboard."""
    total_views: int
    total_downloads: int
    unique_visitors: int
    avg_views_per_day: int
    views_change: float
    downloads_change: float
    visitors_change: float


class TimeSeriesPoint(BaseModel):
    """A single day in the views-over-time chart."""
    date: date
    views: int = 0
    downloads: int = 0
    unique_visitors: int = 0


class TopAsset(BaseModel):
    id: str
    filename: str
    views: int
    downloads: int


class TopLink(BaseModel):
    id: str
    slug: str
    target: str
    views: int
    unique_visitors: int


class TopCollection(BaseModel):
    id: str
    name: str
    slug: str
    views: int


class SourceStats(BaseModel):
    """Stats for a traffic source."""
    source: str
    visits: int
    percentage: int


class DeviceStats(BaseModel):
    """Stats for device breakdown."""
    device: str
    visits: int
    percentage: int


class BrowserStats(BaseModel):
    """Stats for browser breakdown."""
    browser: str
    visits: int
    percentage: int


class CountryStats(BaseModel):
    """Stats for a country."""
    country: str
    code: str
    visits: int
    percentage: int


class WorkspaceAnalytics(BaseModel):
    """Complete workspace analytics response."""
    overview: Overview
    views_over_time: list[TimeSeriesPoint]
    top_assets: list[TopAsset] = Field(default_factory=list)
    top_links: list[TopLink] = Field(default_factory=list)
    top_collections: list[TopCollection] = Field(default_factory=list)
    traffic_sources: list[SourceStats]
    devices: list[DeviceStats]
    browsers: list[BrowserStats]
    countries: list[CountryStats]


# =============================================================================
# Asset Analytics Response
# =============================================================================

class AssetInfo(BaseModel):
    """Stored details of one asset."""
    id: str
    filename: str
    mime_type: str | None = None
    size_bytes: int | None = None
    view_count: int = 0
    download_count: int = 0
    created_at: datetime | None = None


class AssetOverview(BaseModel):
    total_views: int
    total_downloads: int
    unique_visitors: int
    embed_loads: int
    avg_views_per_day: int


class AssetTimeSeriesPoint(BaseModel):
    date: date
    views: int = 0
    downloads: int = 0


class ReferrerCount(BaseModel):
    referrer: str
    visits: int


class RecentEvent(BaseModel):
    """One row of the asset's activity feed."""
    id: str | int | None = None
    event_type: str
    country_name: str | None = None
    city: str | None = None
    referrer: str | None = None
    created_at: datetime


class EmbedLocation(BaseModel):
    """A site the asset is embedded on."""
    domain: str
    embeds: int


class AssetAnalytics(BaseModel):
    """Complete per-asset analytics response."""
    asset: AssetInfo
    overview: AssetOverview
    views_over_time: list[AssetTimeSeriesPoint]
    top_referrers: list[ReferrerCount]
    recent_events: list[RecentEvent]
    embed_locations: list[EmbedLocation]


# =============================================================================
# Document Analytics Response
# =============================================================================
# Serialized with camelCase keys (model_dump(by_alias=True)).

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentInfo(CamelModel):
    id: str
    slug: str | None = None
    title: str | None = None
    total_views: int = 0


class Period(CamelModel):
    start: datetime
    end: datetime
    days: int


class Summary(CamelModel):
    views: int
    unique_visitors: int
    avg_views_per_day: float
    views_trend: float | None = None  # % vs previous period, None if no prior views
    visitors_trend: float | None = None


class DailyStat(CamelModel):
    date: date
    views: int
    unique_visitors: int


class HourlyStat(CamelModel):
    hour: int
    views: int
    unique_visitors: int


class ReferrerStat(CamelModel):
    source: str
    count: int
    percentage: int


class GeoStat(CamelModel):
    country: str
    count: int
    percentage: int


class DeviceStat(CamelModel):
    device: str
    count: int
    percentage: int


class BrowserStat(CamelModel):
    browser: str
    count: int
    percentage: int


class EngagementStats(CamelModel):
    """Visitor engagement for a document."""
    bounce_rate: int  # 0-100
    avg_time_on_page: float  # seconds
    avg_scroll_depth: float  # percent of page
    engaged_visitors: int = 0
    total_visitors: int = 0


class FunnelStage(CamelModel):
    """One stage of the visitor funnel."""
    stage: str  # visited, viewed, engaged, converted
    label: str
    count: int
    rate: int  # whole percent of visited


class FunnelStats(CamelModel):
    stages: list[FunnelStage]
    conversion_rate: float  # one decimal place


class DocumentAnalytics(CamelModel):
    """Complete per-document analytics response."""
    document: DocumentInfo
    period: Period
    summary: Summary
    daily_stats: list[DailyStat]
    hourly_stats: list[HourlyStat]
    referrer_stats: list[ReferrerStat]
    geo_stats: list[GeoStat]
    device_stats: list[DeviceStat]
    browser_stats: list[BrowserStat]
    engagement_stats: EngagementStats
    funnel_stats: FunnelStats


# =============================================================================
# A/B Test Models
# =============================================================================

def conversion_rate(views: int, conversions: int) -> float:
    """Conversions per hundred views; 0 with no views."""
    if views <= 0:
        return 0.0
    return conversions / views * 100


class ABTestStatus(str, Enum):
    NOT_CONFIGURED = "not_configured"
    RUNNING = "running"
    CONCLUDED = "concluded"


class ABVariant(CamelModel):
    """One version of an A/B-tested document.

    ``conversion_rate`` is always derived from ``views`` and ``conversions``
    on validation; a stored value is ignored.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    name: str
    html: str = ""
    traffic_percent: int = 0
    views: int = 0
    conversions: int = 0
    conversion_rate: float = 0.0

    @model_validator(mode="after")
    def _derive_conversion_rate(self) -> "ABVariant":
        self.conversion_rate = conversion_rate(self.views, self.conversions)
        return self


class ABTestConfig(CamelModel):
    """A/B test settings stored on the document."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    enabled: bool = False
    test_name: str | None = None
    variants: list[ABVariant] = Field(default_factory=list)
    goal_type: str | None = None  # clicks, form, scroll
    goal_selector: str | None = None
    min_sample_size: int = 100
    confidence_level: int = 95
    winner_id: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
