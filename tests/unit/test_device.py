"""
Unit tests for click request helpers.
"""

import pytest

from referral_ledger.models.enums import ClickSource, DeviceType
from referral_ledger.services.tracking.device import (
    NullGeoResolver,
    determine_source,
    parse_device,
)

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 "
    "Safari/604.1"
)
SAFARI_IPAD = (
    "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
EDGE_WINDOWS = CHROME_WINDOWS + " Edg/120.0.0.0"


class TestParseDevice:
    """Test user agent parsing."""

    def test_desktop_chrome(self):
        """Windows Chrome is a desktop."""
        device = parse_device(CHROME_WINDOWS)

        assert device == {
            "type": DeviceType.DESKTOP.value,
            "browser": "Chrome",
            "os": "Windows",
            "is_mobile": False,
        }

    def test_iphone_is_mobile(self):
        """iPhone Safari is mobile iOS."""
        device = parse_device(SAFARI_IPHONE)

        assert device["type"] == DeviceType.MOBILE.value
        assert device["is_mobile"] is True
        assert device["browser"] == "Safari"
        assert device["os"] == "iOS"

    def test_ipad_is_tablet(self):
        """iPad wins over the Mobile token."""
        device = parse_device(SAFARI_IPAD)

        assert device["type"] == DeviceType.TABLET.value
        assert device["is_mobile"] is False

    def test_edge_detected_before_chrome(self):
        """Edge user agents also contain Chrome."""
        assert parse_device(EDGE_WINDOWS)["browser"] == "Edge"

    @pytest.mark.parametrize("user_agent", [None, ""])
    def test_missing_user_agent(self, user_agent):
        """Missing user agent gives an unknown device."""
        device = parse_device(user_agent)

        assert device["type"] == DeviceType.UNKNOWN.value
        assert device["browser"] == "Unknown"


class TestDetermineSource:
    """Test traffic source classification."""

    @pytest.mark.parametrize(
        "referer,expected",
        [
            (None, ClickSource.DIRECT),
            ("", ClickSource.DIRECT),
            ("https://www.facebook.com/post/1", ClickSource.SOCIAL),
            ("https://mail.google.com/", ClickSource.EMAIL),
            ("https://blog.example.org/post", ClickSource.OTHER),
        ],
    )
    def test_sources(self, referer, expected):
        """Referer header maps to a click source."""
        assert determine_source(referer) is expected


def test_null_geo_resolver():
    """Default resolver never returns a location."""
    assert NullGeoResolver().resolve("203.0.113.7") is None
