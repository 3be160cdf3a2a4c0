"""Tests for event parsing, daily/hourly buckets and dimension rollups."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from pagelink_analytics.core.buckets import (
    DOCUMENT_VIEW_TYPES,
    aggregate_daily,
    aggregate_hourly,
    in_window,
    window_bounds,
    window_dates,
)
from pagelink_analytics.core.models import AnalyticsEvent, EventType, parse_events
from pagelink_analytics.core.rollup import (
    FrequencyTable,
    document_country,
    document_source,
    rollup_dimensions,
)

END = date(2026, 3, 30)

CHROME = "Mozilla/5.0 (Macintosh) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
IPHONE = "Mozilla/5.0 (iPhone) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"


def _event(event_type="view", when=None, **fields):
    return AnalyticsEvent(
        event_type=event_type,
        created_at=when or datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc),
        **fields,
    )


class TestParseEvents:
    """Test tolerant parsing of raw event rows."""

    def test_valid_rows_parse(self):
        events = parse_events([
            {"event_type": "view", "created_at": "2026-03-15T10:00:00Z", "visitor_id": "v1"},
        ])
        assert len(events) == 1
        assert events[0].type == EventType.VIEW
        assert events[0].created_at.tzinfo is not None

    def test_malformed_rows_dropped(self):
        events = parse_events([
            {"event_type": "view", "created_at": "not a date"},
            {"event_type": "view"},
            {"created_at": "2026-03-15T10:00:00Z"},
            {"event_type": "download", "created_at": "2026-03-15T11:00:00Z"},
        ])
        assert [e.event_type for e in events] == ["download"]

    def test_unknown_type_kept_as_unknown(self):
        events = parse_events([{"event_type": "hover", "created_at": "2026-03-15T10:00:00Z"}])
        assert events[0].type == EventType.UNKNOWN
        assert events[0].event_type == "hover"

    def test_extra_columns_ignored(self):
        events = parse_events([{
            "event_type": "view",
            "created_at": "2026-03-15T10:00:00Z",
            "ip_hash": "abc",
        }])
        assert len(events) == 1


class TestWindow:
    """Test window date helpers."""

    def test_window_dates_has_exactly_days_entries(self):
        dates = window_dates(7, END)
        assert len(dates) == 7
        assert dates[0] == END - timedelta(days=6)
        assert dates[-1] == END

    def test_window_bounds_cover_whole_days(self):
        start, end = window_bounds(7, END)
        assert start == datetime(2026, 3, 24, 0, 0, tzinfo=timezone.utc)
        assert end.date() == END
        assert (end.hour, end.minute, end.second) == (23, 59, 59)

    def test_in_window_drops_outside_events(self):
        inside = _event(when=datetime(2026, 3, 30, 23, 0, tzinfo=timezone.utc))
        before = _event(when=datetime(2026, 3, 23, 23, 0, tzinfo=timezone.utc))
        after = _event(when=datetime(2026, 3, 31, 0, 0, tzinfo=timezone.utc))
        assert in_window([inside, before, after], 7, END) == [inside]


class TestAggregateDaily:
    """Test the daily bucketing pass."""

    def test_three_events_on_one_day(self):
        """view, view, download by one visitor on day 15 of a 30-day window."""
        day_15 = window_dates(30, END)[14]
        when = datetime.combine(day_15, datetime.min.time(), tzinfo=timezone.utc) + timedelta(hours=9)
        events = [
            _event("view", when, visitor_id="v1"),
            _event("view", when, visitor_id="v1"),
            _event("download", when, visitor_id="v1"),
        ]

        series = aggregate_daily(events, 30, END)

        assert len(series.days) == 30
        bucket = series.days[14]
        assert bucket.date == day_15
        assert (bucket.views, bucket.downloads, bucket.unique_visitors) == (2, 1, 1)
        others = [d for d in series.days if d.date != day_15]
        assert all(d.views == d.downloads == d.unique_visitors == 0 for d in others)
        assert series.unique_visitors == 1

    def test_empty_window_has_zero_points(self):
        series = aggregate_daily([], 7, END)
        assert [d.date for d in series.days] == window_dates(7, END)
        assert series.total_views == 0
        assert series.unique_visitors == 0

    def test_sorted_ascending(self):
        events = [
            _event(when=datetime(2026, 3, 30, 8, tzinfo=timezone.utc)),
            _event(when=datetime(2026, 3, 25, 8, tzinfo=timezone.utc)),
        ]
        dates = [d.date for d in aggregate_daily(events, 7, END).days]
        assert dates == sorted(dates)

    def test_out_of_window_events_skipped(self):
        events = [_event(when=datetime(2026, 1, 1, tzinfo=timezone.utc), visitor_id="old")]
        series = aggregate_daily(events, 7, END)
        assert len(series.days) == 7
        assert series.total_views == 0
        assert series.unique_visitors == 0

    def test_embed_load_counts_as_workspace_view(self):
        series = aggregate_daily([_event("embed_load", when=datetime(2026, 3, 30, tzinfo=timezone.utc))], 1, END)
        assert series.total_views == 1

    def test_document_counts_only_views(self):
        events = [_event("embed_load", when=datetime(2026, 3, 30, tzinfo=timezone.utc), visitor_id="v1")]
        series = aggregate_daily(events, 1, END, view_types=DOCUMENT_VIEW_TYPES)
        assert series.total_views == 0
        # Any event type still identifies a visitor
        assert series.days[0].unique_visitors == 1

    def test_unknown_types_are_inert(self):
        events = [_event("hover", when=datetime(2026, 3, 30, tzinfo=timezone.utc))]
        series = aggregate_daily(events, 1, END)
        assert (series.total_views, series.total_downloads) == (0, 0)

    def test_distinct_visitors_across_window(self):
        events = [
            _event(when=datetime(2026, 3, 29, tzinfo=timezone.utc), visitor_id="v1"),
            _event(when=datetime(2026, 3, 30, tzinfo=timezone.utc), visitor_id="v1"),
            _event(when=datetime(2026, 3, 30, tzinfo=timezone.utc), visitor_id="v2"),
        ]
        series = aggregate_daily(events, 7, END)
        assert series.unique_visitors == 2
        assert sum(d.unique_visitors for d in series.days) == 3

    def test_days_keyed_in_configured_timezone(self):
        """23:30 UTC on the 29th is already the 30th in Berlin."""
        event = _event(when=datetime(2026, 3, 29, 23, 30, tzinfo=timezone.utc))
        berlin = ZoneInfo("Europe/Berlin")

        utc_series = aggregate_daily([event], 2, END)
        berlin_series = aggregate_daily([event], 2, END, tz=berlin)

        assert utc_series.days[0].views == 1
        assert berlin_series.days[1].views == 1

    def test_naive_timestamps_taken_as_utc(self):
        event = _event(when=datetime(2026, 3, 30, 1, 0))
        assert aggregate_daily([event], 1, END).total_views == 1


class TestAggregateHourly:
    """Test the hour-of-day pass."""

    def test_always_24_buckets(self):
        hours = aggregate_hourly([])
        assert [h.hour for h in hours] == list(range(24))

    def test_counts_views_and_visitors(self):
        events = [
            _event("view", datetime(2026, 3, 30, 14, 5, tzinfo=timezone.utc), visitor_id="v1"),
            _event("view", datetime(2026, 3, 29, 14, 50, tzinfo=timezone.utc), visitor_id="v2"),
            _event("click", datetime(2026, 3, 29, 14, 55, tzinfo=timezone.utc), visitor_id="v3"),
        ]
        hour = aggregate_hourly(events)[14]
        assert hour.views == 2
        assert hour.unique_visitors == 3


class TestFrequencyTable:
    """Test ranking and percentages."""

    def test_ranked_by_count(self):
        table = FrequencyTable()
        for label in ["a", "b", "b", "c", "c", "c"]:
            table.add(label)
        assert [r.label for r in table.ranked()] == ["c", "b", "a"]

    def test_ties_keep_first_seen_order(self):
        table = FrequencyTable()
        for label in ["x", "y", "z"]:
            table.add(label)
        assert [r.label for r in table.ranked()] == ["x", "y", "z"]

    def test_limit_keeps_full_total(self):
        """Percentages stay relative to the whole table after truncation."""
        table = FrequencyTable()
        table.add("a", 50)
        table.add("b", 30)
        table.add("c", 20)
        rows = table.ranked(limit=2)
        assert [(r.label, r.percentage) for r in rows] == [("a", 50), ("b", 30)]

    def test_percentages_round_half_up(self):
        table = FrequencyTable()
        table.add("a", 1)
        table.add("b", 7)
        # 1/8 = 12.5% -> 13
        assert table.ranked()[1].percentage == 13

    def test_empty_table(self):
        assert FrequencyTable().ranked() == []


class TestRollupDimensions:
    """Test source, country, device and browser tables."""

    def test_only_views_contribute(self):
        events = [
            _event("view", referrer="https://google.com", user_agent=CHROME),
            _event("download", referrer="https://bing.com", user_agent=IPHONE),
            _event("click", referrer="https://bing.com"),
        ]
        tables = rollup_dimensions(events)
        assert [r.label for r in tables.sources.ranked()] == ["Google"]
        assert [r.label for r in tables.browsers.ranked()] == ["Chrome"]

    def test_missing_user_agent_not_counted(self):
        tables = rollup_dimensions([_event("view")])
        assert len(tables.devices) == 0
        assert len(tables.browsers) == 0
        assert tables.sources.total == 1

    def test_workspace_country_needs_code_and_name(self):
        events = [
            _event(country_code="DE", country_name="Germany"),
            _event(country_code="FR"),
        ]
        tables = rollup_dimensions(events)
        rows = tables.countries.ranked()
        assert [(r.label, r.count) for r in rows] == [("DE", 1)]
        assert tables.country_names["DE"] == "Germany"

    def test_document_labels(self):
        events = [
            _event(referrer="https://www.google.com/", country="Canada"),
            _event(referrer=None, country_code="US"),
        ]
        tables = rollup_dimensions(events, document_source, document_country)
        assert {r.label for r in tables.sources.ranked()} == {"www.google.com", "direct"}
        assert {r.label for r in tables.countries.ranked()} == {"Canada", "US"}

    def test_unknown_referrers_collapse_to_other(self):
        events = [_event(referrer=f"https://site{i % 3}.example.com") for i in range(10)]
        rows = rollup_dimensions(events).sources.ranked()
        assert [(r.label, r.percentage) for r in rows] == [("Other", 100)]

    def test_percentages_sum_near_100(self):
        referrers = ["https://google.com"] * 3 + ["https://bing.com"] * 3 + [None] * 3
        rows = rollup_dimensions([_event(referrer=r) for r in referrers]).sources.ranked()
        # 33 + 33 + 33
        assert 99 <= sum(r.percentage for r in rows) <= 101
