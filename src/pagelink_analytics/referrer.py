"""
Referrer classification for traffic source analysis.

Two schemes are in use and they are intentionally incompatible:

- Workspace analytics: ``classify_referrer`` maps a referrer (or an explicit
  UTM source) onto a small set of canonical labels such as "Google" or
  "Twitter". Anything unrecognised is "Other", no referrer is "Direct".
- Document analytics: ``referrer_hostname`` reports the referrer's hostname
  verbatim ("www.google.com"), collapsing missing or malformed referrers to
  "direct".

Dashboards built on one label set cannot read the other, so the two
functions must stay separate.
"""

from urllib.parse import urlparse

DIRECT = "Direct"
OTHER = "Other"

# Hostname-scheme label for missing or unparseable referrers
DIRECT_HOSTNAME = "direct"

# =============================================================================
# CANONICAL SOURCES
# =============================================================================
# Order matters! Substrings are not mutually exclusive, the first match wins.
# Each tuple: (substrings, label)

SOURCE_PATTERNS = [
    (("google",), "Google"),
    (("bing",), "Bing"),
    (("twitter", "t.co"), "Twitter"),
    (("linkedin",), "LinkedIn"),
    (("facebook",), "Facebook"),
    (("instagram",), "Instagram"),
    (("youtube",), "YouTube"),
]


def _capitalize(value: str) -> str:
    """Upper-case the first character only ("newsletter" -> "Newsletter")."""
    return value[:1].upper() + value[1:]


def classify_referrer(referrer: str | None, utm_source: str | None = None) -> str:
    """
    Classify a referrer into a canonical traffic source label.

    Args:
        referrer: The Referer header value (can be empty or None)
        utm_source: The utm_source of the visit, which takes precedence

    Returns:
        One of the canonical labels, the capitalised UTM source, "Direct"
        or "Other"

    Examples:
        >>> classify_referrer("https://t.co/abc123")
        'Twitter'

        >>> classify_referrer(None, "newsletter")
        'Newsletter'

        >>> classify_referrer(None)
        'Direct'
    """
    if utm_source:
        return _capitalize(utm_source)

    if not referrer:
        return DIRECT

    referrer_lower = referrer.lower()
    for substrings, label in SOURCE_PATTERNS:
        if any(s in referrer_lower for s in substrings):
            return label

    return OTHER


def referrer_hostname(referrer: str | None) -> str:
    """
    Extract the referrer hostname as a traffic source label.

    Unlike ``classify_referrer`` the hostname is returned as-is, without
    "www." stripping or canonical naming.

    Examples:
        >>> referrer_hostname("https://www.linkedin.com/feed/")
        'www.linkedin.com'

        >>> referrer_hostname("not a url")
        'direct'
    """
    if not referrer:
        return DIRECT_HOSTNAME

    try:
        hostname = urlparse(referrer.strip()).hostname
    except ValueError:
        return DIRECT_HOSTNAME

    return hostname or DIRECT_HOSTNAME
