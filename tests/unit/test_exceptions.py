"""
Unit tests for exception categories.
"""

import pytest
from sqlalchemy.exc import OperationalError

from referral_ledger.utils.exceptions import (
    CodeGenerationExhausted,
    CommissionStateError,
    InsufficientPointsBalance,
    InvalidReferralCode,
    LedgerStorageError,
    NoRewardConfig,
    ReferralLedgerError,
    SelfReferralRejected,
    UserNotFound,
    is_retriable,
    is_validation,
)


class TestExceptionCategories:
    """Test how callers classify ledger errors."""

    @pytest.mark.parametrize(
        "exc",
        [
            LedgerStorageError("write failed"),
            OperationalError("SELECT 1", {}, Exception("connection lost")),
        ],
    )
    def test_retriable(self, exc):
        """Storage failures may be retried."""
        assert is_retriable(exc)
        assert not is_validation(exc)

    @pytest.mark.parametrize(
        "exc",
        [
            InvalidReferralCode("NOPE"),
            SelfReferralRejected(1, "INVITEJODO1234"),
            NoRewardConfig("customer", 3),
            InsufficientPointsBalance(1, 10, 20),
            CommissionStateError("paid commission"),
            UserNotFound(42),
        ],
    )
    def test_validation(self, exc):
        """Input and state errors are never retried."""
        assert is_validation(exc)
        assert not is_retriable(exc)

    def test_exhausted_codes_are_neither(self):
        """Exhausted code budget is surfaced as a plain ledger error."""
        exc = CodeGenerationExhausted(7, 10)

        assert isinstance(exc, ReferralLedgerError)
        assert not is_retriable(exc)
        assert not is_validation(exc)

    def test_unrelated_exception(self):
        """Foreign exceptions fall in no category."""
        assert not is_retriable(ValueError("x"))
        assert not is_validation(ValueError("x"))


class TestExceptionMessages:
    """Test exception attributes."""

    def test_insufficient_balance_attributes(self):
        """Balance error keeps the numbers for the caller."""
        exc = InsufficientPointsBalance(5, balance=30, requested=50)

        assert exc.balance == 30
        assert exc.requested == 50
        assert "balance 30, requested 50" in str(exc)

    def test_invalid_code_keeps_code(self):
        """Invalid code error carries the code."""
        assert InvalidReferralCode("ABC").code == "ABC"
