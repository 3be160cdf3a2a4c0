"""
Configuration for Pagelink Analytics.
"""
import logging
import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# Query window limits
DEFAULT_DAYS = 30
MAX_DAYS = 365


class InvalidTimezoneError(ValueError):
    """Raised when the configured timezone is not a known IANA zone."""
    pass


def validate_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name.

    Raises:
        InvalidTimezoneError: If the zone cannot be loaded
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidTimezoneError(
            f"Unknown timezone {name!r}. Use an IANA name such as 'UTC' or 'Europe/London'."
        ) from None


@dataclass
class AnalyticsConfig:
    """Configuration for the analytics endpoints.

    When ``store_url`` or ``store_api_key`` is missing the endpoints serve
    demo data instead of querying the event store.
    """

    # Event store (hosted database REST interface)
    store_url: str | None = None
    store_api_key: str | None = None

    # Bucketing timezone; day and hour keys are computed in this zone
    timezone: str = "UTC"

    # Query window
    default_days: int = DEFAULT_DAYS
    max_days: int = MAX_DAYS

    # HTTP
    request_timeout: float = 30.0

    # Serve demo payloads when the store is unavailable
    demo_fallback: bool = True

    @property
    def is_configured(self) -> bool:
        """Check if the event store is configured."""
        return bool(self.store_url and self.store_api_key)

    @property
    def tzinfo(self) -> ZoneInfo:
        return validate_timezone(self.timezone)

    def __post_init__(self):
        """Validate configuration after initialization."""
        validate_timezone(self.timezone)

        if self.default_days < 1 or self.default_days > self.max_days:
            raise ValueError(
                f"default_days must be between 1 and {self.max_days}, got {self.default_days}"
            )

        if self.store_url:
            self.store_url = self.store_url.rstrip("/")

        if not self.is_configured:
            logger.warning("Event store is not configured; analytics endpoints will serve demo data")

    @classmethod
    def from_env(cls) -> "AnalyticsConfig":
        """Build a config from ``PAGELINK_*`` environment variables."""
        return cls(
            store_url=os.environ.get("PAGELINK_STORE_URL"),
            store_api_key=os.environ.get("PAGELINK_STORE_API_KEY"),
            timezone=os.environ.get("PAGELINK_TIMEZONE", "UTC"),
        )
