"""
Core analytics module.

Contains the event models, the aggregation passes and the event store client.
"""

from .client import EventStoreClient, EventStoreError, NotAuthenticatedError
from .composer import (
    compose_asset_analytics,
    compose_document_analytics,
    compose_workspace_analytics,
)
from .models import (
    ABTestConfig,
    ABVariant,
    AnalyticsEvent,
    AssetAnalytics,
    DocumentAnalytics,
    EventType,
    WorkspaceAnalytics,
    parse_events,
)

__all__ = [
    "AnalyticsEvent", "EventType", "parse_events",
    "WorkspaceAnalytics", "AssetAnalytics", "DocumentAnalytics",
    "ABTestConfig", "ABVariant",
    "compose_workspace_analytics", "compose_asset_analytics", "compose_document_analytics",
    "EventStoreClient", "EventStoreError", "NotAuthenticatedError",
]
