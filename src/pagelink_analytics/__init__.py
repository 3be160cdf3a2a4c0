"""
Analytics aggregation for Pagelink workspaces and documents.

Usage:
    from pagelink_analytics import setup_analytics

    analytics = setup_analytics(
        store_url="https://your-project.supabase.co",
        store_api_key="your-anon-key",
        timezone="Europe/Berlin",
    )

    # Include the API routes
    app.include_router(analytics.router, prefix="/api")

Without a store URL and key every endpoint serves demo data.
"""

from fastapi import FastAPI

from .config import AnalyticsConfig
from .core import EventStoreClient
from .routes import create_analytics_router

__version__ = "0.1.0"
__all__ = ["setup_analytics", "create_app", "Analytics", "AnalyticsConfig", "EventStoreClient"]


class Analytics:
    """Main analytics interface for an application."""

    def __init__(self, config: AnalyticsConfig, client: EventStoreClient = None):
        self.config = config
        self.client = client
        if self.client is None and config.is_configured:
            self.client = EventStoreClient(
                base_url=config.store_url,
                api_key=config.store_api_key,
                timeout=config.request_timeout,
            )
        self.router = create_analytics_router(config, self.client)


def setup_analytics(
    store_url: str = None,
    store_api_key: str = None,
    timezone: str = "UTC",
    **options,
) -> Analytics:
    """
    Set up analytics for an application.

    Args:
        store_url: Base URL of the event store (REST and auth endpoints)
        store_api_key: Public API key of the event store
        timezone: IANA timezone the daily and hourly buckets are keyed in
        **options: Further AnalyticsConfig fields (default_days, max_days, ...)

    Returns:
        Analytics instance with its router
    """
    config = AnalyticsConfig(
        store_url=store_url,
        store_api_key=store_api_key,
        timezone=timezone,
        **options,
    )
    return Analytics(config)


def create_app(config: AnalyticsConfig = None) -> FastAPI:
    """Standalone API app; configuration is read from the environment by default."""
    analytics = Analytics(config or AnalyticsConfig.from_env())
    app = FastAPI(title="Pagelink Analytics", version=__version__)
    app.include_router(analytics.router, prefix="/api")
    return app
