"""
Services.

Business logic layer of the referral ledger.
"""

# Base Service Infrastructure
from referral_ledger.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)

# Ledgers
from referral_ledger.services.commission_service import CommissionService
from referral_ledger.services.points_service import PointsService
from referral_ledger.services.reconciliation_service import (
    ReconciliationReport,
    ReconciliationService,
)

# Referral Services
from referral_ledger.services.referral import (
    PayoutBatcher,
    ReferralChainBuilder,
    ReferralCodeGenerator,
    ReferralRewardEngine,
    ReferralStatisticsService,
)

# Tracking Services
from referral_ledger.services.tracking import (
    AnalyticsService,
    ClickTracker,
    FraudService,
    LinkService,
)


__all__ = [
    "BaseService",
    "log_operation",
    "transaction",
    "CommissionService",
    "PointsService",
    "ReconciliationReport",
    "ReconciliationService",
    "PayoutBatcher",
    "ReferralChainBuilder",
    "ReferralCodeGenerator",
    "ReferralRewardEngine",
    "ReferralStatisticsService",
    "AnalyticsService",
    "ClickTracker",
    "FraudService",
    "LinkService",
]
