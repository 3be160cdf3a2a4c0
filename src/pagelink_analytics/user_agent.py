"""
User-Agent classification for device and browser breakdowns.

User-Agents are notoriously messy (Chrome claims to be Mozilla, Safari, and
Chrome all at once), so each check is a plain substring test on the
lowercased string and the checks run in a fixed priority order. The order is
the tie-break:

- Mobile is checked before Tablet, so a UA matching both is Mobile
- Chrome excludes "edg" so Edge is not reported as Chrome
- Safari excludes "chrome" so desktop Chrome is not reported as Safari

Chrome on iOS identifies itself as "CriOS" and still carries "Safari", so it
is counted as Safari.
"""

from dataclasses import dataclass
from enum import Enum


class DeviceType(str, Enum):
    """Device category."""
    DESKTOP = "Desktop"
    MOBILE = "Mobile"
    TABLET = "Tablet"


@dataclass(frozen=True)
class UserAgentInfo:
    """
    Classified user-agent.

    Attributes:
        device: Device category
        browser: Browser family (Chrome, Safari, Firefox, Edge or Other)
    """
    device: DeviceType = DeviceType.DESKTOP
    browser: str = "Other"

    def to_dict(self) -> dict:
        return {"device": self.device.value, "browser": self.browser}


MOBILE_INDICATORS = ("mobile", "android", "iphone")
TABLET_INDICATORS = ("tablet", "ipad")


def _detect_device_type(ua: str) -> DeviceType:
    """Detect device type from a lowercased user-agent string."""
    if any(indicator in ua for indicator in MOBILE_INDICATORS):
        return DeviceType.MOBILE

    if any(indicator in ua for indicator in TABLET_INDICATORS):
        return DeviceType.TABLET

    return DeviceType.DESKTOP


def _detect_browser(ua: str) -> str:
    """Detect browser family from a lowercased user-agent string."""
    if "chrome" in ua and "edg" not in ua:
        return "Chrome"
    if "safari" in ua and "chrome" not in ua:
        return "Safari"
    if "firefox" in ua:
        return "Firefox"
    if "edg" in ua:
        return "Edge"
    return "Other"


def classify_user_agent(user_agent: str | None) -> UserAgentInfo:
    """
    Classify a user-agent string into device and browser.

    Args:
        user_agent: The User-Agent header value

    Returns:
        UserAgentInfo; an empty string classifies as Desktop / Other

    Examples:
        >>> classify_user_agent("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1")
        UserAgentInfo(device=<DeviceType.MOBILE: 'Mobile'>, browser='Safari')
    """
    ua = (user_agent or "").lower()
    return UserAgentInfo(
        device=_detect_device_type(ua),
        browser=_detect_browser(ua),
    )
