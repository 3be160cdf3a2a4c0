"""
Response assembly for the analytics call sites.

The workspace dashboard, the per-asset page and the per-document page use
different event tables, different referrer labels and different response
shapes, so each has its own composer.
"""
from collections.abc import Iterable, Sequence
from datetime import date, timedelta, timezone, tzinfo
from typing import Any

from ..referrer import DIRECT_HOSTNAME
from .buckets import (
    ASSET_VIEW_TYPES,
    DOCUMENT_VIEW_TYPES,
    WORKSPACE_VIEW_TYPES,
    aggregate_daily,
    aggregate_hourly,
    in_window,
    to_local,
    today,
    window_bounds,
)
from .engagement import compute_engagement, compute_funnel
from .models import (
    AnalyticsEvent,
    AssetAnalytics,
    AssetInfo,
    AssetOverview,
    AssetTimeSeriesPoint,
    BrowserStat,
    BrowserStats,
    CountryStats,
    DailyStat,
    DeviceStat,
    DeviceStats,
    DocumentAnalytics,
    DocumentInfo,
    EmbedLocation,
    EventType,
    GeoStat,
    HourlyStat,
    Overview,
    Period,
    RecentEvent,
    ReferrerCount,
    ReferrerStat,
    SourceStats,
    Summary,
    TimeSeriesPoint,
    TopAsset,
    TopCollection,
    TopLink,
    WorkspaceAnalytics,
)
from .rollup import (
    TOP_BROWSERS,
    TOP_COUNTRIES,
    TOP_GEO,
    TOP_REFERRERS,
    TOP_SOURCES,
    FrequencyTable,
    document_country,
    document_source,
    rollup_dimensions,
    workspace_country,
    workspace_source,
)
from .rounding import percent_change, round_half_up

# Placeholder trend deltas for the workspace dashboard.
# TODO: compute from a previous-period fetch, as the document endpoint does.
WORKSPACE_VIEWS_CHANGE = 0.0
WORKSPACE_DOWNLOADS_CHANGE = 0.0
WORKSPACE_VISITORS_CHANGE = 0.0

# Asset page list sizes
TOP_ASSET_REFERRERS = 5
RECENT_EVENTS = 20


def previous_window_end(days: int, end: date) -> date:
    """Last day of the equally long window right before the current one."""
    return end - timedelta(days=days)


# =============================================================================
# WORKSPACE
# =============================================================================

def _link_target(row: dict[str, Any]) -> str:
    asset = row.get("asset") or {}
    collection = row.get("collection") or {}
    return asset.get("filename") or collection.get("name") or "Unknown"


def _visitors_by_link(events: Iterable[AnalyticsEvent]) -> dict[str, int]:
    visitors: dict[str, set[str]] = {}
    for event in events:
        if event.short_link_id and event.visitor_id:
            visitors.setdefault(event.short_link_id, set()).add(event.visitor_id)
    return {link_id: len(ids) for link_id, ids in visitors.items()}


def compose_workspace_analytics(
    events: Sequence[AnalyticsEvent],
    days: int,
    end: date | None = None,
    tz: tzinfo = timezone.utc,
    top_assets: Sequence[dict[str, Any]] = (),
    top_links: Sequence[dict[str, Any]] = (),
    top_collections: Sequence[dict[str, Any]] = (),
) -> WorkspaceAnalytics:
    """
    Build the workspace dashboard payload.

    Args:
        events: Workspace analytics events; those outside the window are ignored
        days: Window length in days
        end: Last day of the window (default: today in ``tz``)
        tz: Bucketing timezone
        top_assets: Asset rows (id, filename, view_count, download_count)
        top_links: Short-link rows (id, slug, view_count, asset, collection)
        top_collections: Collection rows (id, name, slug, view_count)
    """
    end = end or today(tz)
    window = in_window(events, days, end, tz)

    series = aggregate_daily(window, days, end, tz, WORKSPACE_VIEW_TYPES)
    tables = rollup_dimensions(window, workspace_source, workspace_country)
    link_visitors = _visitors_by_link(window)

    sources = [
        SourceStats(source=r.label, visits=r.count, percentage=r.percentage)
        for r in tables.sources.ranked(TOP_SOURCES)
    ]
    if not sources:
        sources = [SourceStats(source="Direct", visits=0, percentage=100)]

    return WorkspaceAnalytics(
        overview=Overview(
            total_views=series.total_views,
            total_downloads=series.total_downloads,
            unique_visitors=series.unique_visitors,
            avg_views_per_day=int(round_half_up(series.total_views / days)),
            views_change=WORKSPACE_VIEWS_CHANGE,
            downloads_change=WORKSPACE_DOWNLOADS_CHANGE,
            visitors_change=WORKSPACE_VISITORS_CHANGE,
        ),
        views_over_time=[
            TimeSeriesPoint(
                date=d.date,
                views=d.views,
                downloads=d.downloads,
                unique_visitors=d.unique_visitors,
            )
            for d in series.days
        ],
        top_assets=[
            TopAsset(
                id=str(row["id"]),
                filename=row.get("filename") or "",
                views=row.get("view_count") or 0,
                downloads=row.get("download_count") or 0,
            )
            for row in top_assets
        ],
        top_links=[
            TopLink(
                id=str(row["id"]),
                slug=row.get("slug") or "",
                target=_link_target(row),
                views=row.get("view_count") or 0,
                unique_visitors=link_visitors.get(str(row["id"]), 0),
            )
            for row in top_links
        ],
        top_collections=[
            TopCollection(
                id=str(row["id"]),
                name=row.get("name") or "",
                slug=row.get("slug") or "",
                views=row.get("view_count") or 0,
            )
            for row in top_collections
        ],
        traffic_sources=sources,
        devices=[
            DeviceStats(device=r.label, visits=r.count, percentage=r.percentage)
            for r in tables.devices.ranked()
        ],
        browsers=[
            BrowserStats(browser=r.label, visits=r.count, percentage=r.percentage)
            for r in tables.browsers.ranked(TOP_BROWSERS)
        ],
        countries=[
            CountryStats(
                country=tables.country_names[r.label],
                code=r.label,
                visits=r.count,
                percentage=r.percentage,
            )
            for r in tables.countries.ranked(TOP_COUNTRIES)
        ],
    )


# =============================================================================
# ASSET
# =============================================================================

def compose_asset_analytics(
    asset: dict[str, Any],
    events: Sequence[AnalyticsEvent],
    days: int,
    end: date | None = None,
    tz: tzinfo = timezone.utc,
) -> AssetAnalytics:
    """
    Build the per-asset analytics payload.

    Only ``view`` events count as views; embed loads are reported apart.
    Referrers are tallied by hostname over every event in the window, and
    the hostnames that loaded the asset's embed become its embed locations.

    Args:
        asset: Asset row (id, filename, mime_type, size_bytes, view_count,
            download_count, created_at)
        events: Asset events; those outside the window are ignored
        days: Window length in days
        end: Last day of the window (default: today in ``tz``)
        tz: Bucketing timezone
    """
    end = end or today(tz)
    window = in_window(events, days, end, tz)
    series = aggregate_daily(window, days, end, tz, ASSET_VIEW_TYPES)

    referrers = FrequencyTable()
    embed_sites = FrequencyTable()
    embed_loads = 0
    for event in window:
        source = document_source(event)
        referrers.add(source)
        if event.type == EventType.EMBED_LOAD:
            embed_loads += 1
            if source != DIRECT_HOSTNAME:
                embed_sites.add(source)

    top_referrers = [
        ReferrerCount(referrer=r.label, visits=r.count)
        for r in referrers.ranked(TOP_ASSET_REFERRERS)
    ]
    if not top_referrers:
        top_referrers = [ReferrerCount(referrer=DIRECT_HOSTNAME, visits=0)]

    newest = sorted(window, key=lambda e: to_local(e.created_at, timezone.utc), reverse=True)

    return AssetAnalytics(
        asset=AssetInfo(
            id=str(asset["id"]),
            filename=asset.get("filename") or "",
            mime_type=asset.get("mime_type"),
            size_bytes=asset.get("size_bytes"),
            view_count=asset.get("view_count") or 0,
            download_count=asset.get("download_count") or 0,
            created_at=asset.get("created_at"),
        ),
        overview=AssetOverview(
            total_views=series.total_views,
            total_downloads=series.total_downloads,
            unique_visitors=series.unique_visitors,
            embed_loads=embed_loads,
            avg_views_per_day=int(round_half_up(series.total_views / days)),
        ),
        views_over_time=[
            AssetTimeSeriesPoint(date=d.date, views=d.views, downloads=d.downloads)
            for d in series.days
        ],
        top_referrers=top_referrers,
        recent_events=[
            RecentEvent(
                id=e.id,
                event_type=e.event_type,
                country_name=e.country_name,
                city=e.city,
                referrer=e.referrer,
                created_at=e.created_at,
            )
            for e in newest[:RECENT_EVENTS]
        ],
        embed_locations=[
            EmbedLocation(domain=r.label, embeds=r.count) for r in embed_sites.ranked()
        ],
    )


# =============================================================================
# DOCUMENT
# =============================================================================

def _view_count(events: Iterable[AnalyticsEvent]) -> int:
    return sum(1 for e in events if e.type == EventType.VIEW)


def _visitor_count(events: Iterable[AnalyticsEvent]) -> int:
    return len({e.visitor_id for e in events if e.visitor_id})


def compose_document_analytics(
    document: dict[str, Any],
    events: Sequence[AnalyticsEvent],
    previous_events: Sequence[AnalyticsEvent],
    days: int,
    end: date | None = None,
    tz: tzinfo = timezone.utc,
) -> DocumentAnalytics:
    """
    Build the per-document analytics payload.

    Args:
        document: Document row (id, slug, title, view_count)
        events: Document events; those outside the window are ignored
        previous_events: Events of the preceding window of equal length,
            used for the view and visitor trends
        days: Window length in days
        end: Last day of the window (default: today in ``tz``)
        tz: Bucketing timezone
    """
    end = end or today(tz)
    window = in_window(events, days, end, tz)
    previous = in_window(previous_events, days, previous_window_end(days, end), tz)

    series = aggregate_daily(window, days, end, tz, DOCUMENT_VIEW_TYPES)
    hourly = aggregate_hourly(window, tz)
    tables = rollup_dimensions(window, document_source, document_country)

    views = _view_count(window)
    visitors = series.unique_visitors
    start_at, end_at = window_bounds(days, end, tz)

    return DocumentAnalytics(
        document=DocumentInfo(
            id=str(document["id"]),
            slug=document.get("slug"),
            title=document.get("title"),
            total_views=document.get("view_count") or 0,
        ),
        period=Period(start=start_at, end=end_at, days=days),
        summary=Summary(
            views=views,
            unique_visitors=visitors,
            avg_views_per_day=round_half_up(views / days, 1),
            views_trend=percent_change(views, _view_count(previous)),
            visitors_trend=percent_change(visitors, _visitor_count(previous)),
        ),
        daily_stats=[
            DailyStat(date=d.date, views=d.views, unique_visitors=d.unique_visitors)
            for d in series.days
        ],
        hourly_stats=[
            HourlyStat(hour=h.hour, views=h.views, unique_visitors=h.unique_visitors)
            for h in hourly
        ],
        referrer_stats=[
            ReferrerStat(source=r.label, count=r.count, percentage=r.percentage)
            for r in tables.sources.ranked(TOP_REFERRERS)
        ],
        geo_stats=[
            GeoStat(country=tables.country_names[r.label], count=r.count, percentage=r.percentage)
            for r in tables.countries.ranked(TOP_GEO)
        ],
        device_stats=[
            DeviceStat(device=r.label, count=r.count, percentage=r.percentage)
            for r in tables.devices.ranked()
        ],
        browser_stats=[
            BrowserStat(browser=r.label, count=r.count, percentage=r.percentage)
            for r in tables.browsers.ranked(TOP_BROWSERS)
        ],
        engagement_stats=compute_engagement(window),
        funnel_stats=compute_funnel(window),
    )
