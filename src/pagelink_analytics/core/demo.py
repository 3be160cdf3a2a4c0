"""
Demo payloads.

Served whenever the event store is unavailable so the dashboards always
render a populated state during onboarding and demos. Each payload has the
exact shape of its real counterpart.
"""
import random
from datetime import date, datetime, time, timedelta, timezone

from .buckets import window_dates
from .engagement import FUNNEL_LABELS
from .models import (
    ABTestConfig,
    ABVariant,
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
    EngagementStats,
    FunnelStage,
    FunnelStats,
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
from .rounding import round_half_up

DEMO_ASSETS = [
    ("1", "product-hero.png", 1247, 89),
    ("2", "pricing-table.pdf", 892, 234),
    ("3", "demo-video.mp4", 654, 45),
    ("4", "logo-dark.svg", 543, 321),
    ("5", "team-photo.jpg", 432, 67),
]

DEMO_LINKS = [
    ("1", "abc123", "product-hero.png", 567, 423),
    ("2", "xyz789", "pricing-table.pdf", 345, 298),
    ("3", "demo01", "demo-video.mp4", 234, 187),
]

DEMO_COLLECTIONS = [
    ("1", "Q4 Marketing Assets", "q4-marketing", 234),
    ("2", "Product Launch 2024", "product-launch", 187),
    ("3", "Brand Guidelines", "brand-guide", 156),
]

# (label, share of total views in percent)
DEMO_SOURCES = [("Direct", 35), ("Google", 25), ("Twitter", 15), ("LinkedIn", 12), ("Email", 8), ("Other", 5)]
DEMO_DEVICES = [("Desktop", 58), ("Mobile", 35), ("Tablet", 7)]
DEMO_BROWSERS = [("Chrome", 64), ("Safari", 19), ("Firefox", 8), ("Edge", 6), ("Other", 3)]
DEMO_COUNTRIES = [
    ("United States", "US", 42),
    ("United Kingdom", "GB", 15),
    ("Germany", "DE", 12),
    ("Canada", "CA", 9),
    ("Australia", "AU", 7),
    ("France", "FR", 5),
    ("Other", "XX", 10),
]
DEMO_REFERRERS = [("direct", 359), ("google.com", 234), ("linkedin.com", 156), ("twitter.com", 98)]
DEMO_GEO = [("United States", 456), ("United Kingdom", 123), ("Germany", 89), ("Canada", 67)]

# (label, share of total views in percent)
DEMO_ASSET_REFERRERS = [("direct", 40), ("google.com", 25), ("twitter.com", 15), ("linkedin.com", 10), ("other", 10)]
DEMO_EMBED_LOCATIONS = [("company-website.com", 45), ("partner-site.io", 23), ("blog.example.com", 12)]
DEMO_CITIES = [
    ("United States", "New York"),
    ("United Kingdom", "London"),
    ("Germany", "Berlin"),
    ("Canada", "Toronto"),
    ("United States", "San Francisco"),
]


def _share(total: int, pct: int) -> int:
    return int(total * pct / 100)


def _is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def demo_workspace_analytics(
    days: int,
    end: date | None = None,
    rng: random.Random | None = None,
) -> WorkspaceAnalytics:
    """Plausible workspace analytics with quieter weekends."""
    rng = rng or random.Random()
    end = end or datetime.now(timezone.utc).date()

    points = []
    for day in window_dates(days, end):
        base = rng.randint(50, 149) * (0.6 if _is_weekend(day) else 1)
        points.append(TimeSeriesPoint(
            date=day,
            views=int(base),
            downloads=int(base * 0.15),
            unique_visitors=int(base * 0.7),
        ))

    total_views = sum(p.views for p in points)

    return WorkspaceAnalytics(
        overview=Overview(
            total_views=total_views,
            total_downloads=sum(p.downloads for p in points),
            unique_visitors=sum(p.unique_visitors for p in points),
            avg_views_per_day=int(round_half_up(total_views / days)),
            views_change=12.5,
            downloads_change=8.3,
            visitors_change=15.2,
        ),
        views_over_time=points,
        top_assets=[
            TopAsset(id=i, filename=f, views=v, downloads=d) for i, f, v, d in DEMO_ASSETS
        ],
        top_links=[
            TopLink(id=i, slug=s, target=t, views=v, unique_visitors=u) for i, s, t, v, u in DEMO_LINKS
        ],
        top_collections=[
            TopCollection(id=i, name=n, slug=s, views=v) for i, n, s, v in DEMO_COLLECTIONS
        ],
        traffic_sources=[
            SourceStats(source=s, visits=_share(total_views, p), percentage=p) for s, p in DEMO_SOURCES
        ],
        devices=[
            DeviceStats(device=d, visits=_share(total_views, p), percentage=p) for d, p in DEMO_DEVICES
        ],
        browsers=[
            BrowserStats(browser=b, visits=_share(total_views, p), percentage=p) for b, p in DEMO_BROWSERS
        ],
        countries=[
            CountryStats(country=n, code=c, visits=_share(total_views, p), percentage=p)
            for n, c, p in DEMO_COUNTRIES
        ],
    )


def demo_document_analytics(
    document_id: str = "demo",
    days: int = 30,
    end: date | None = None,
    rng: random.Random | None = None,
) -> DocumentAnalytics:
    """Plausible per-document analytics."""
    rng = rng or random.Random()
    end = end or datetime.now(timezone.utc).date()
    dates = window_dates(days, end)

    daily = [
        DailyStat(date=d, views=rng.randint(10, 59), unique_visitors=rng.randint(5, 34))
        for d in dates
    ]
    views = sum(d.views for d in daily)
    visitors = sum(d.unique_visitors for d in daily)

    # Busier during working hours
    hourly = []
    for hour in range(24):
        weight = 3 if 9 <= hour <= 17 else 1
        hour_views = rng.randint(0, 10) * weight
        hourly.append(HourlyStat(hour=hour, views=hour_views, unique_visitors=int(hour_views * 0.7)))

    referrer_total = sum(c for _, c in DEMO_REFERRERS)
    geo_total = sum(c for _, c in DEMO_GEO)

    funnel_counts = [("visited", 412), ("viewed", 398), ("engaged", 187), ("converted", 23)]

    return DocumentAnalytics(
        document=DocumentInfo(id=document_id, slug="demo-document", title="Demo Document", total_views=1234),
        period=Period(
            start=datetime.combine(dates[0], time.min, tzinfo=timezone.utc),
            end=datetime.combine(end, time.max, tzinfo=timezone.utc),
            days=days,
        ),
        summary=Summary(
            views=views,
            unique_visitors=visitors,
            avg_views_per_day=round_half_up(views / days, 1),
            views_trend=12.4,
            visitors_trend=8.1,
        ),
        daily_stats=daily,
        hourly_stats=hourly,
        referrer_stats=[
            ReferrerStat(source=s, count=c, percentage=int(round_half_up(c / referrer_total * 100)))
            for s, c in sorted(DEMO_REFERRERS, key=lambda r: r[1], reverse=True)
        ],
        geo_stats=[
            GeoStat(country=n, count=c, percentage=int(round_half_up(c / geo_total * 100)))
            for n, c in DEMO_GEO
        ],
        device_stats=[
            DeviceStat(device=d, count=_share(views, p), percentage=p) for d, p in DEMO_DEVICES
        ],
        browser_stats=[
            BrowserStat(browser=b, count=_share(views, p), percentage=p) for b, p in DEMO_BROWSERS
        ],
        engagement_stats=EngagementStats(
            bounce_rate=42,
            avg_time_on_page=94.5,
            avg_scroll_depth=63.2,
            engaged_visitors=187,
            total_visitors=412,
        ),
        funnel_stats=FunnelStats(
            stages=[
                FunnelStage(
                    stage=stage,
                    label=FUNNEL_LABELS[stage],
                    count=count,
                    rate=int(round_half_up(count / 412 * 100)),
                )
                for stage, count in funnel_counts
            ],
            conversion_rate=5.6,
        ),
    )


def demo_asset_analytics(
    asset_id: str = "demo",
    days: int = 30,
    end: date | None = None,
    rng: random.Random | None = None,
) -> AssetAnalytics:
    """Plausible per-asset analytics with quieter weekends."""
    rng = rng or random.Random()
    end = end or datetime.now(timezone.utc).date()
    window_end = datetime.combine(end, time.max, tzinfo=timezone.utc)

    points = []
    for day in window_dates(days, end):
        base = rng.randint(10, 39) * (0.6 if _is_weekend(day) else 1)
        points.append(AssetTimeSeriesPoint(date=day, views=int(base), downloads=int(base * 0.2)))

    total_views = sum(p.views for p in points)
    total_downloads = sum(p.downloads for p in points)

    recent = []
    for i in range(20):
        country, city = rng.choice(DEMO_CITIES)
        recent.append(RecentEvent(
            id=f"event-{i}",
            event_type="download" if rng.random() > 0.8 else "view",
            country_name=country,
            city=city,
            referrer=rng.choice([None, "https://google.com", "https://twitter.com", "https://linkedin.com"]),
            created_at=window_end - timedelta(seconds=rng.uniform(0, days * 86400)),
        ))
    recent.sort(key=lambda e: e.created_at, reverse=True)

    return AssetAnalytics(
        asset=AssetInfo(
            id=asset_id,
            filename="demo-asset.png",
            mime_type="image/png",
            size_bytes=245000,
            view_count=total_views,
            download_count=total_downloads,
            created_at=window_end - timedelta(days=30),
        ),
        overview=AssetOverview(
            total_views=total_views,
            total_downloads=total_downloads,
            unique_visitors=int(total_views * 0.65),
            embed_loads=int(total_views * 0.15),
            avg_views_per_day=int(round_half_up(total_views / days)),
        ),
        views_over_time=points,
        top_referrers=[
            ReferrerCount(referrer=r, visits=_share(total_views, p)) for r, p in DEMO_ASSET_REFERRERS
        ],
        recent_events=recent,
        embed_locations=[EmbedLocation(domain=d, embeds=n) for d, n in DEMO_EMBED_LOCATIONS],
    )


def demo_ab_test() -> ABTestConfig:
    return ABTestConfig(
        enabled=True,
        test_name="Hero CTA Test",
        goal_type="clicks",
        goal_selector=".cta-button",
        started_at=datetime.now(timezone.utc) - timedelta(days=7),
        variants=[
            ABVariant(
                id="variant-a", name="Original", html="<h1>Original</h1>",
                traffic_percent=50, views=523, conversions=42,
            ),
            ABVariant(
                id="variant-b", name="Blue CTA", html="<h1>Blue CTA</h1>",
                traffic_percent=50, views=518, conversions=58,
            ),
        ],
    )
