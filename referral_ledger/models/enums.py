"""
Enumerations shared by ledger models and services.

Values are persisted as plain strings.
"""

from enum import StrEnum


class ReferrerClass(StrEnum):
    """Referral user class; decides reward type and code format."""

    CUSTOMER = "customer"
    PROPERTY_AGENT = "property_agent"


class RewardKind(StrEnum):
    """What a referrer class is paid in."""

    MONEY = "money"
    POINTS = "points"


class QualifyingEventKind(StrEnum):
    """Events that can trigger referral rewards."""

    ORDER = "order"
    SUBSCRIPTION = "subscription"


class QualifyingEventState(StrEnum):
    """Per-user, per-kind reward state."""

    UNPROCESSED = "unprocessed"
    REWARDED = "rewarded"


class ReferredUserStatus(StrEnum):
    """Status of a referred user on the referrer's profile."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class CommissionStatus(StrEnum):
    """Commission lifecycle."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PaymentMethod(StrEnum):
    """Payout payment methods."""

    BANK_TRANSFER = "BANK_TRANSFER"
    PAYPAL = "PAYPAL"
    STRIPE = "STRIPE"
    MANUAL = "MANUAL"


class PayoutStatus(StrEnum):
    """Payout lifecycle."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PointsTransactionType(StrEnum):
    """Points ledger entry types."""

    EARNED_REFERRAL = "EARNED_REFERRAL"
    EARNED_SIGNUP = "EARNED_SIGNUP"
    EARNED_ORDER = "EARNED_ORDER"
    EARNED_SUBSCRIPTION = "EARNED_SUBSCRIPTION"
    REDEEMED_DISCOUNT = "REDEEMED_DISCOUNT"
    REDEEMED_SERVICE = "REDEEMED_SERVICE"
    REDEEMED_CASH = "REDEEMED_CASH"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"
    BONUS = "BONUS"
    PENALTY = "PENALTY"


class PointsTransactionStatus(StrEnum):
    """Points ledger entry status."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class RelatedModel(StrEnum):
    """Entity a points transaction refers to."""

    ORDER = "Order"
    SUBSCRIPTION = "Subscription"
    REFERRAL = "Referral"
    USER = "User"


class ClickSource(StrEnum):
    """Traffic source of a referral click."""

    DIRECT = "DIRECT"
    SOCIAL = "SOCIAL"
    EMAIL = "EMAIL"
    SMS = "SMS"
    QR_CODE = "QR_CODE"
    OTHER = "OTHER"


class DeviceType(StrEnum):
    """Device class derived from the user agent."""

    DESKTOP = "DESKTOP"
    MOBILE = "MOBILE"
    TABLET = "TABLET"
    UNKNOWN = "UNKNOWN"


class ConversionType(StrEnum):
    """What a click converted into."""

    SIGNUP = "SIGNUP"
    FIRST_PURCHASE = "FIRST_PURCHASE"
    SUBSCRIPTION = "SUBSCRIPTION"


class FraudType(StrEnum):
    """Fraud detection categories."""

    MULTIPLE_SIGNUPS_SAME_IP = "MULTIPLE_SIGNUPS_SAME_IP"
    MULTIPLE_SIGNUPS_SAME_DEVICE = "MULTIPLE_SIGNUPS_SAME_DEVICE"
    SUSPICIOUS_CLICK_PATTERN = "SUSPICIOUS_CLICK_PATTERN"
    FAKE_EMAIL = "FAKE_EMAIL"
    DUPLICATE_PHONE = "DUPLICATE_PHONE"
    GEOGRAPHIC_ANOMALY = "GEOGRAPHIC_ANOMALY"
    VELOCITY_ABUSE = "VELOCITY_ABUSE"
    SELF_REFERRAL = "SELF_REFERRAL"
    REFERRAL_FARMING = "REFERRAL_FARMING"


class FraudSeverity(StrEnum):
    """Fraud severity levels."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class FraudStatus(StrEnum):
    """Manual resolution workflow states."""

    DETECTED = "DETECTED"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    FALSE_POSITIVE = "FALSE_POSITIVE"


class ClickFlag(StrEnum):
    """Individual fraud signals attached to a click."""

    MULTIPLE_CLICKS_SAME_IP = "MULTIPLE_CLICKS_SAME_IP"
    SUSPICIOUS_USER_AGENT = "SUSPICIOUS_USER_AGENT"
    BOT_DETECTION = "BOT_DETECTION"
    VELOCITY_ABUSE = "VELOCITY_ABUSE"
