"""
Raw event export (CSV and JSON).
"""
import csv
import random
from collections.abc import Iterable
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime, timedelta, timezone
from io import StringIO

from .models import AnalyticsEvent

CSV_HEADERS = [
    "Timestamp",
    "Event Type",
    "Asset",
    "Link Slug",
    "Collection",
    "Country",
    "City",
    "Referrer",
    "UTM Source",
    "UTM Medium",
    "UTM Campaign",
]


@dataclass(frozen=True)
class ExportRow:
    timestamp: str
    event_type: str
    asset: str = ""
    link_slug: str = ""
    collection: str = ""
    country: str = ""
    city: str = ""
    referrer: str = ""
    utm_source: str = ""
    utm_medium: str = ""
    utm_campaign: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def _joined(row: dict | None, key: str) -> str:
    return (row or {}).get(key) or ""


def export_rows(events: Iterable[AnalyticsEvent]) -> list[ExportRow]:
    """Flatten events for export, newest first."""
    ordered = sorted(events, key=lambda e: e.created_at, reverse=True)
    return [
        ExportRow(
            timestamp=e.created_at.isoformat(),
            event_type=e.event_type,
            asset=_joined(e.asset, "filename"),
            link_slug=_joined(e.short_link, "slug"),
            collection=_joined(e.collection, "name"),
            country=e.country_name or "",
            city=e.city or "",
            referrer=e.referrer or "",
            utm_source=e.utm_source or "",
            utm_medium=e.utm_medium or "",
            utm_campaign=e.utm_campaign or "",
        )
        for e in ordered
    ]


def to_csv(rows: Iterable[ExportRow]) -> str:
    """Render rows as CSV with every cell quoted."""
    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    names = [f.name for f in fields(ExportRow)]
    for row in rows:
        writer.writerow([getattr(row, name) for name in names])
    return output.getvalue()


def export_filename(start: date, end: date, export_format: str) -> str:
    return f"analytics-{start.isoformat()}-to-{end.isoformat()}.{export_format}"


def demo_export_rows(
    days: int,
    end: datetime | None = None,
    rng: random.Random | None = None,
) -> list[ExportRow]:
    """Random sample events spread over the window, newest first."""
    rng = rng or random.Random()
    end = end or datetime.now(timezone.utc)

    rows = []
    for offset in range(days):
        day_start = end - timedelta(days=offset + 1)
        for _ in range(rng.randint(5, 24)):
            moment = day_start + timedelta(seconds=rng.uniform(0, 86400))
            rows.append(ExportRow(
                timestamp=moment.isoformat(),
                event_type="download" if rng.random() > 0.8 else "view",
                asset=rng.choice(["product-hero.png", "pricing-table.pdf", "demo-video.mp4", "logo-dark.svg"]),
                link_slug=rng.choice(["abc123", "xyz789", "demo01"]) if rng.random() > 0.5 else "",
                collection=rng.choice(["Q4 Marketing", "Product Launch"]) if rng.random() > 0.7 else "",
                country=rng.choice(["United States", "United Kingdom", "Germany", "Canada"]),
                city=rng.choice(["New York", "London", "Berlin", "Toronto", "San Francisco"]),
                referrer=rng.choice(["", "google.com", "twitter.com", "linkedin.com"]),
                utm_source=rng.choice(["newsletter", "social", "partner"]) if rng.random() > 0.7 else "",
                utm_medium=rng.choice(["email", "cpc", "referral"]) if rng.random() > 0.7 else "",
                utm_campaign=rng.choice(["launch-2024", "summer-promo"]) if rng.random() > 0.8 else "",
            ))

    rows.sort(key=lambda r: r.timestamp, reverse=True)
    return rows
