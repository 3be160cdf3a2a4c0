"""
Analytics API routes.

JSON endpoints over the aggregation core; one router factory per surface.
"""

from .analytics import create_analytics_router

__all__ = ["create_analytics_router"]
