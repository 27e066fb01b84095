"""
Exception handling utilities.

Defines the ledger exception hierarchy and helpers that tell callers how to
react to a failure.
"""

from sqlalchemy.exc import OperationalError


class ReferralLedgerError(Exception):
    """Base class for all ledger errors."""
    pass


class ReferralValidationError(ReferralLedgerError):
    """Input or state makes the operation impossible; do not retry."""
    pass


class InvalidReferralCode(ReferralValidationError):
    """Referral code does not resolve to an active referrer."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Invalid referral code: {code}")


class SelfReferralRejected(ReferralValidationError):
    """User tried to sign up with their own referral code."""

    def __init__(self, user_id: int, code: str) -> None:
        self.user_id = user_id
        self.code = code
        super().__init__(f"User {user_id} cannot use own referral code {code}")


class NoRewardConfig(ReferralValidationError):
    """No reward is configured for a (referrer class, tier) pair."""

    def __init__(self, referrer_class: str, tier: int) -> None:
        self.referrer_class = referrer_class
        self.tier = tier
        super().__init__(
            f"No reward configured for {referrer_class} at tier {tier}"
        )


class InsufficientPointsBalance(ReferralValidationError):
    """Debit would take a points balance below zero."""

    def __init__(self, user_id: int, balance: int, requested: int) -> None:
        self.user_id = user_id
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient points for user {user_id}: "
            f"balance {balance}, requested {requested}"
        )


class CommissionStateError(ReferralValidationError):
    """Commission transition not allowed from its current status."""
    pass


class PayoutStateError(ReferralValidationError):
    """Payout transition not allowed from its current status."""
    pass


class UserNotFound(ReferralLedgerError):
    """Referenced user does not exist."""

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class CodeGenerationExhausted(ReferralLedgerError):
    """No unique referral code found within the attempt budget."""

    def __init__(self, user_id: int, attempts: int) -> None:
        self.user_id = user_id
        self.attempts = attempts
        super().__init__(
            f"Could not generate unique referral code for user {user_id} "
            f"after {attempts} attempts"
        )


class LedgerStorageError(ReferralLedgerError):
    """Storage failure; every mutation of the operation was rolled back."""
    pass


# Exception categories based on handling strategy

# Caller may retry the whole operation
RETRIABLE = (
    LedgerStorageError,
    OperationalError,
)

# Caller must surface the error, retrying will not help
VALIDATION = (
    ReferralValidationError,
    UserNotFound,
)


def is_retriable(exc: Exception) -> bool:
    """
    Check if operation can be retried after this exception.

    Args:
        exc: Exception to check

    Returns:
        True if retry is safe
    """
    return isinstance(exc, RETRIABLE)


def is_validation(exc: Exception) -> bool:
    """
    Check if exception is a validation failure.

    Args:
        exc: Exception to check

    Returns:
        True if exception is caused by input or state
    """
    return isinstance(exc, VALIDATION)
