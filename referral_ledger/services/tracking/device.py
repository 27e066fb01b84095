"""
Request context helpers for click tracking.

Device detection uses user agent substring heuristics. Location lookup goes
through a pluggable resolver; the default resolver performs no lookup.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from referral_ledger.config.referral_constants import SOCIAL_PLATFORMS
from referral_ledger.models.enums import ClickSource, DeviceType


@dataclass(frozen=True)
class RequestContext:
    """HTTP request data captured with a click."""

    ip_address: str | None = None
    user_agent: str | None = None
    referer: str | None = None
    source: ClickSource | None = None


class GeoResolver(Protocol):
    """Resolves an IP address to a location dict."""

    def resolve(self, ip_address: str) -> dict[str, Any] | None:
        """Return location data or None when unknown."""
        ...


class NullGeoResolver:
    """Resolver used when no GeoIP service is configured."""

    def resolve(self, ip_address: str) -> dict[str, Any] | None:
        return None


def parse_device(user_agent: str | None) -> dict[str, Any]:
    """
    Derive device type, browser and OS from a user agent.

    Args:
        user_agent: Raw User-Agent header

    Returns:
        Dict with type, browser, os and is_mobile
    """
    device = {
        "type": DeviceType.UNKNOWN.value,
        "browser": "Unknown",
        "os": "Unknown",
        "is_mobile": False,
    }
    if not user_agent:
        return device

    # iPad user agents also contain "Mobile"
    if "iPad" in user_agent or "Tablet" in user_agent:
        device["type"] = DeviceType.TABLET.value
    elif "Mobile" in user_agent or "Android" in user_agent or "iPhone" in user_agent:
        device["type"] = DeviceType.MOBILE.value
        device["is_mobile"] = True
    else:
        device["type"] = DeviceType.DESKTOP.value

    # Edge and Chrome both carry "Chrome", Chrome also carries "Safari"
    if "Edg" in user_agent:
        device["browser"] = "Edge"
    elif "Firefox" in user_agent:
        device["browser"] = "Firefox"
    elif "Chrome" in user_agent or "CriOS" in user_agent:
        device["browser"] = "Chrome"
    elif "Safari" in user_agent:
        device["browser"] = "Safari"

    if "Windows" in user_agent:
        device["os"] = "Windows"
    elif "Android" in user_agent:
        device["os"] = "Android"
    elif "iPhone" in user_agent or "iPad" in user_agent or "iOS" in user_agent:
        device["os"] = "iOS"
    elif "Mac" in user_agent:
        device["os"] = "macOS"
    elif "Linux" in user_agent:
        device["os"] = "Linux"

    return device


def determine_source(referer: str | None) -> ClickSource:
    """
    Classify traffic source from the Referer header.

    Args:
        referer: Referer header

    Returns:
        ClickSource
    """
    if not referer:
        return ClickSource.DIRECT

    lowered = referer.lower()
    if any(platform in lowered for platform in SOCIAL_PLATFORMS):
        return ClickSource.SOCIAL
    if "mail" in lowered or "email" in lowered:
        return ClickSource.EMAIL
    return ClickSource.OTHER
