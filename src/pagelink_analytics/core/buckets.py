"""
Time-bucketed aggregation of analytics events.

Every day of the requested window gets a bucket up front, so a window with
no traffic still yields one zero point per day. Events that fall outside the
window are skipped, never used to extend it.
"""
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from .models import AnalyticsEvent, EventType

# View types per call site
WORKSPACE_VIEW_TYPES = frozenset({EventType.VIEW, EventType.EMBED_LOAD})
DOCUMENT_VIEW_TYPES = frozenset({EventType.VIEW})
ASSET_VIEW_TYPES = frozenset({EventType.VIEW})

HOURS = range(24)


@dataclass
class DailyBucket:
    date: date
    views: int = 0
    downloads: int = 0
    visitors: set[str] = field(default_factory=set)


@dataclass
class HourlyBucket:
    hour: int
    views: int = 0
    visitors: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class DailyCounts:
    """Serialized daily bucket."""
    date: date
    views: int
    downloads: int
    unique_visitors: int


@dataclass(frozen=True)
class HourlyCounts:
    """Serialized hourly bucket."""
    hour: int
    views: int
    unique_visitors: int


@dataclass(frozen=True)
class DailySeries:
    """Result of a daily aggregation pass."""
    days: list[DailyCounts]
    unique_visitors: int  # across the whole window

    @property
    def total_views(self) -> int:
        return sum(d.views for d in self.days)

    @property
    def total_downloads(self) -> int:
        return sum(d.downloads for d in self.days)


def to_local(moment: datetime, tz: tzinfo) -> datetime:
    """Convert a timestamp to ``tz``; naive timestamps are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz)


def today(tz: tzinfo) -> date:
    return datetime.now(tz).date()


def window_dates(days: int, end: date) -> list[date]:
    """The ``days`` calendar days ending on ``end``, oldest first."""
    return [end - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def window_bounds(days: int, end: date, tz: tzinfo = timezone.utc) -> tuple[datetime, datetime]:
    """First and last instant of the window, in ``tz``."""
    first = end - timedelta(days=days - 1)
    return (
        datetime.combine(first, time.min, tzinfo=tz),
        datetime.combine(end, time.max, tzinfo=tz),
    )


def in_window(
    events: Iterable[AnalyticsEvent],
    days: int,
    end: date,
    tz: tzinfo = timezone.utc,
) -> list[AnalyticsEvent]:
    """Events whose local day falls inside the window."""
    first = end - timedelta(days=days - 1)
    return [e for e in events if first <= to_local(e.created_at, tz).date() <= end]


def aggregate_daily(
    events: Iterable[AnalyticsEvent],
    days: int,
    end: date | None = None,
    tz: tzinfo = timezone.utc,
    view_types: frozenset[EventType] = WORKSPACE_VIEW_TYPES,
) -> DailySeries:
    """
    Fold events into one bucket per day of the window.

    Args:
        events: Events in any order
        days: Window length; the series has exactly this many points
        end: Last day of the window (default: today in ``tz``)
        tz: Timezone the day keys are computed in
        view_types: Event types counted as views

    Returns:
        DailySeries sorted by date ascending
    """
    if end is None:
        end = today(tz)

    buckets = {d: DailyBucket(date=d) for d in window_dates(days, end)}
    window_visitors: set[str] = set()

    for event in events:
        bucket = buckets.get(to_local(event.created_at, tz).date())
        if bucket is None:
            continue

        event_type = event.type
        if event_type in view_types:
            bucket.views += 1
        elif event_type == EventType.DOWNLOAD:
            bucket.downloads += 1

        if event.visitor_id:
            bucket.visitors.add(event.visitor_id)
            window_visitors.add(event.visitor_id)

    return DailySeries(
        days=[
            DailyCounts(
                date=b.date,
                views=b.views,
                downloads=b.downloads,
                unique_visitors=len(b.visitors),
            )
            for b in sorted(buckets.values(), key=lambda b: b.date)
        ],
        unique_visitors=len(window_visitors),
    )


def aggregate_hourly(
    events: Iterable[AnalyticsEvent],
    tz: tzinfo = timezone.utc,
) -> list[HourlyCounts]:
    """Fold events into the 24 hours of the day; only views are counted."""
    buckets = [HourlyBucket(hour=h) for h in HOURS]

    for event in events:
        bucket = buckets[to_local(event.created_at, tz).hour]
        if event.type == EventType.VIEW:
            bucket.views += 1
        if event.visitor_id:
            bucket.visitors.add(event.visitor_id)

    return [
        HourlyCounts(hour=b.hour, views=b.views, unique_visitors=len(b.visitors))
        for b in buckets
    ]
