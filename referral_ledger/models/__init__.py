"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from referral_ledger.models.base import Base

# Ledger
from referral_ledger.models.commission import Commission
from referral_ledger.models.enums import (
    ClickFlag,
    ClickSource,
    CommissionStatus,
    ConversionType,
    DeviceType,
    FraudSeverity,
    FraudStatus,
    FraudType,
    PaymentMethod,
    PayoutStatus,
    PointsTransactionStatus,
    PointsTransactionType,
    QualifyingEventKind,
    QualifyingEventState,
    ReferredUserStatus,
    ReferrerClass,
    RelatedModel,
    RewardKind,
)

# Fraud
from referral_ledger.models.fraud_detection import FraudDetection
from referral_ledger.models.payout import Payout
from referral_ledger.models.points_transaction import PointsTransaction

# Tracking
from referral_ledger.models.referral_analytics import ReferralAnalytics

# Referral graph
from referral_ledger.models.referral_chain import ReferralChainEdge
from referral_ledger.models.referral_link import ReferralClick, ReferralLink
from referral_ledger.models.referral_profile import ReferralProfile, ReferredUser
from referral_ledger.models.user import User

__all__ = [
    # Base
    "Base",
    # Enums
    "ClickFlag",
    "ClickSource",
    "CommissionStatus",
    "ConversionType",
    "DeviceType",
    "FraudSeverity",
    "FraudStatus",
    "FraudType",
    "PaymentMethod",
    "PayoutStatus",
    "PointsTransactionStatus",
    "PointsTransactionType",
    "QualifyingEventKind",
    "QualifyingEventState",
    "ReferredUserStatus",
    "ReferrerClass",
    "RelatedModel",
    "RewardKind",
    # Users and referral graph
    "User",
    "ReferralChainEdge",
    "ReferralProfile",
    "ReferredUser",
    # Ledger
    "Commission",
    "PointsTransaction",
    "Payout",
    # Tracking
    "ReferralLink",
    "ReferralClick",
    "ReferralAnalytics",
    # Fraud
    "FraudDetection",
]
