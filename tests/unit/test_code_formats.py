"""
Unit tests for referral code formats.
"""

import re

import pytest

from referral_ledger.models.enums import ReferrerClass
from referral_ledger.models.user import User
from referral_ledger.services.referral.code_generator import (
    code_class_hint,
    make_agent_code,
    make_code,
    make_customer_code,
    name_prefix,
)

AGENT_CODE = re.compile(r"^AGENT[A-Z0-9]{4}\d{4}[A-Z0-9]{2}$")
CUSTOMER_CODE = re.compile(r"^INVITE[A-Z0-9]{4}[A-Z0-9]{4}$")


class TestNamePrefix:
    """Test the name part of codes."""

    def test_two_letters_of_each_name(self):
        """First two letters of first and last name, upper-cased."""
        assert name_prefix("john", "doe") == "JODO"

    def test_short_names_are_padded(self):
        """Missing letters are filled with X."""
        assert name_prefix("J", None) == "JXXX"

    def test_non_alphanumeric_skipped(self):
        """Punctuation and spaces never end up in a code."""
        assert name_prefix("O'Neil", "-Smith") == "ONSM"

    def test_empty_names(self):
        """Users without names still get a valid prefix."""
        assert name_prefix("", "") == "XXXX"


class TestCodeFormats:
    """Test code layout per referrer class."""

    def test_agent_code_layout(self):
        """AGENT + name + last 4 clock digits + 2 random."""
        code = make_agent_code("John", "Doe", now_ms=1700000048213)

        assert code.startswith("AGENTJODO8213")
        assert AGENT_CODE.match(code)

    def test_agent_code_pads_short_clock(self):
        """Clock digits are always four characters."""
        code = make_agent_code("John", "Doe", now_ms=42)

        assert code.startswith("AGENTJODO0042")

    def test_customer_code_layout(self):
        """INVITE + name + 4 random."""
        code = make_customer_code("Jane", "Roe")

        assert code.startswith("INVITEJARO")
        assert CUSTOMER_CODE.match(code)

    @pytest.mark.parametrize(
        "referrer_class,pattern",
        [
            (ReferrerClass.PROPERTY_AGENT, AGENT_CODE),
            (ReferrerClass.CUSTOMER, CUSTOMER_CODE),
        ],
    )
    def test_make_code_follows_class(self, referrer_class, pattern):
        """Code format is chosen by the user's referral user type."""
        user = User(
            email="a@example.com",
            first_name="Ann",
            last_name="Lee",
            referral_user_type=referrer_class.value,
        )

        assert pattern.match(make_code(user))


class TestCodeClassHint:
    """Test class guess from prefix."""

    def test_agent_prefix(self):
        """AGENT codes hint property agents."""
        assert code_class_hint("agentjodo1234ab") is ReferrerClass.PROPERTY_AGENT

    def test_customer_prefix(self):
        """INVITE codes hint customers."""
        assert code_class_hint("INVITEJODO1234") is ReferrerClass.CUSTOMER

    def test_unknown_prefix(self):
        """Legacy codes have no hint."""
        assert code_class_hint("LEGACY01") is None
