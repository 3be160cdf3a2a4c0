"""
Engagement metrics and the visitor funnel.
"""
from collections.abc import Iterable

from .models import AnalyticsEvent, EngagementStats, EventType, FunnelStage, FunnelStats
from .rounding import percent, round_half_up

ENGAGEMENT_TYPES = frozenset({EventType.ENGAGED, EventType.CLICK, EventType.SCROLL})
CONVERSION_TYPES = frozenset({EventType.CONVERSION, EventType.LEAD_CAPTURE})

FUNNEL_LABELS = {
    "visited": "Visited",
    "viewed": "Viewed",
    "engaged": "Engaged",
    "converted": "Converted",
}


def _positive_mean(values: Iterable[float | None]) -> float:
    present = [v for v in values if v is not None and v > 0]
    if not present:
        return 0
    return sum(present) / len(present)


def compute_engagement(events: Iterable[AnalyticsEvent]) -> EngagementStats:
    """
    Bounce rate and averages for a set of events.

    A visitor enters the engagement map on a view and is marked engaged by
    any engaged/click/scroll event, whichever order the events arrive in.
    Bounce rate is the share of mapped visitors never marked engaged.
    """
    events = list(events)
    engaged: dict[str, bool] = {}

    for event in events:
        if not event.visitor_id:
            continue
        event_type = event.type
        if event_type == EventType.VIEW:
            engaged.setdefault(event.visitor_id, False)
        elif event_type in ENGAGEMENT_TYPES:
            engaged[event.visitor_id] = True

    total = len(engaged)
    engaged_count = sum(1 for flag in engaged.values() if flag)
    bounce_rate = int(round_half_up((1 - engaged_count / total) * 100)) if total else 0

    return EngagementStats(
        bounce_rate=bounce_rate,
        avg_time_on_page=_positive_mean(e.time_on_page for e in events),
        avg_scroll_depth=_positive_mean(e.scroll_depth for e in events),
        engaged_visitors=engaged_count,
        total_visitors=total,
    )


def compute_funnel(events: Iterable[AnalyticsEvent]) -> FunnelStats:
    """
    Visitor funnel: visited, viewed, engaged, converted.

    Stages are independent membership tests on each visitor's set of event
    types, so a visitor can count as converted without a recorded view.
    Stage rates are whole percents of visited; the overall conversion rate
    keeps one decimal.
    """
    seen: dict[str, set[EventType]] = {}
    for event in events:
        if event.visitor_id:
            seen.setdefault(event.visitor_id, set()).add(event.type)

    visited = len(seen)
    counts = {
        "visited": visited,
        "viewed": sum(1 for types in seen.values() if EventType.VIEW in types),
        "engaged": sum(1 for types in seen.values() if types & ENGAGEMENT_TYPES),
        "converted": sum(1 for types in seen.values() if types & CONVERSION_TYPES),
    }

    stages = [
        FunnelStage(
            stage=stage,
            label=FUNNEL_LABELS[stage],
            count=count,
            rate=100 if stage == "visited" else percent(count, visited),
        )
        for stage, count in counts.items()
    ]

    conversion_rate = round_half_up(counts["converted"] / visited * 1000) / 10 if visited else 0.0

    return FunnelStats(stages=stages, conversion_rate=conversion_rate)
