"""
Dimensional rollups: traffic source, country, device and browser tables.

Only view events contribute; downloads, engagement and conversion events
are excluded from every table.
"""
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from ..referrer import classify_referrer, referrer_hostname
from ..user_agent import classify_user_agent
from .models import AnalyticsEvent, EventType
from .rounding import percent

# Workspace table sizes
TOP_SOURCES = 6
TOP_COUNTRIES = 7
TOP_BROWSERS = 5

# Document table sizes
TOP_REFERRERS = 10
TOP_GEO = 10


@dataclass(frozen=True)
class RankedCount:
    """One row of a ranked dimension table."""
    label: str
    count: int
    percentage: int


class FrequencyTable:
    """Running label counts for one dimension.

    Insertion order is kept, so equal counts rank in first-seen order.
    """

    def __init__(self):
        self._counts: dict[str, int] = {}

    def add(self, label: str, amount: int = 1) -> None:
        self._counts[label] = self._counts.get(label, 0) + amount

    def __len__(self) -> int:
        return len(self._counts)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def ranked(self, limit: int | None = None) -> list[RankedCount]:
        """Rows sorted by count descending, truncated to ``limit``.

        Percentages are of the whole table, not of the rows kept.
        """
        total = self.total or 1
        rows = sorted(self._counts.items(), key=lambda item: item[1], reverse=True)
        if limit is not None:
            rows = rows[:limit]
        return [
            RankedCount(label=label, count=count, percentage=percent(count, total))
            for label, count in rows
        ]


@dataclass
class DimensionTables:
    sources: FrequencyTable = field(default_factory=FrequencyTable)
    countries: FrequencyTable = field(default_factory=FrequencyTable)
    devices: FrequencyTable = field(default_factory=FrequencyTable)
    browsers: FrequencyTable = field(default_factory=FrequencyTable)

    # country key -> display name
    country_names: dict[str, str] = field(default_factory=dict)


def workspace_source(event: AnalyticsEvent) -> str:
    return classify_referrer(event.referrer, event.utm_source)


def document_source(event: AnalyticsEvent) -> str:
    return referrer_hostname(event.referrer)


def workspace_country(event: AnalyticsEvent) -> tuple[str, str] | None:
    """(ISO code, name); both are needed for a row."""
    if event.country_code and event.country_name:
        return event.country_code, event.country_name
    return None


def document_country(event: AnalyticsEvent) -> tuple[str, str] | None:
    label = event.country or event.country_name or event.country_code
    if label:
        return label, label
    return None


def rollup_dimensions(
    events: Iterable[AnalyticsEvent],
    source_of: Callable[[AnalyticsEvent], str] = workspace_source,
    country_of: Callable[[AnalyticsEvent], tuple[str, str] | None] = workspace_country,
) -> DimensionTables:
    """
    Count view events per traffic source, country, device and browser.

    Args:
        events: Events in any order; non-view events are ignored
        source_of: Traffic source labeller for the call site
        country_of: Returns (key, display name) or None when unknown

    Returns:
        DimensionTables ready for ``FrequencyTable.ranked``
    """
    tables = DimensionTables()

    for event in events:
        if event.type != EventType.VIEW:
            continue

        tables.sources.add(source_of(event))

        country = country_of(event)
        if country:
            key, name = country
            tables.country_names.setdefault(key, name)
            tables.countries.add(key)

        if event.user_agent:
            ua = classify_user_agent(event.user_agent)
            tables.devices.add(ua.device.value)
            tables.browsers.add(ua.browser)

    return tables
