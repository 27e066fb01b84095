"""
Unit tests for referral link URL builders.
"""

from urllib.parse import parse_qs, urlsplit

from referral_ledger.services.tracking.link_service import (
    CampaignOptions,
    build_register_url,
    default_register_url,
    random_short_code,
    tracking_url,
)

FRONTEND = "https://app.example.com"


def _query(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query)


class TestRegisterUrls:
    """Test long register URLs."""

    def test_default_register_url(self):
        """Bare code clicks land on register with the code."""
        assert (
            default_register_url("INVITEJODO1234")
            == f"{FRONTEND}/register?ref=INVITEJODO1234"
        )

    def test_default_campaign_params(self):
        """Default UTM parameters describe the referral program."""
        url = build_register_url("INVITEJODO1234", CampaignOptions())
        query = _query(url)

        assert url.startswith(f"{FRONTEND}/register?")
        assert query["ref"] == ["INVITEJODO1234"]
        assert query["utm_source"] == ["referral"]
        assert query["utm_medium"] == ["direct"]
        assert query["utm_campaign"] == ["referral_program"]
        assert "utm_content" not in query
        assert "utm_term" not in query

    def test_optional_campaign_params(self):
        """Content and term are added when given."""
        campaign = CampaignOptions(
            campaign="spring", medium="email", content="banner", term="plumber"
        )
        query = _query(build_register_url("X", campaign))

        assert query["utm_campaign"] == ["spring"]
        assert query["utm_content"] == ["banner"]
        assert query["utm_term"] == ["plumber"]

    def test_custom_params_never_override_ref(self):
        """Custom parameters cannot replace the code or UTM values."""
        query = _query(
            build_register_url(
                "INVITEJODO1234",
                CampaignOptions(),
                {"ref": "OTHER", "landing": "kitchen"},
            )
        )

        assert query["ref"] == ["INVITEJODO1234"]
        assert query["landing"] == ["kitchen"]

    def test_values_are_encoded(self):
        """Spaces and ampersands are escaped."""
        url = build_register_url("X", CampaignOptions(campaign="a & b"))

        assert "a+%26+b" in url


class TestShortCodes:
    """Test tracking short codes."""

    def test_tracking_url(self):
        """Short URL goes through the redirect route."""
        assert tracking_url("ab12cd34") == f"{FRONTEND}/r/ab12cd34"

    def test_short_code_format(self):
        """Short codes are eight lower-case base-36 characters."""
        code = random_short_code()

        assert len(code) == 8
        assert code == code.lower()
        assert code.isalnum()
