"""
Referral services package.

Contains modular services for referral processing:
- reward_config: Reward table per referrer class and tier
- code_generator: Referral code creation and lookup
- chain_builder: Tier 1 and tier 2 chain edges at signup
- reward_engine: First qualifying event rewards
- payout_batcher: Commission payouts
- statistics: Dashboard aggregations
"""

from referral_ledger.services.referral.chain_builder import (
    ChainLink,
    ChainResult,
    ReferralChainBuilder,
)
from referral_ledger.services.referral.code_generator import (
    CodeResult,
    ReferralCodeGenerator,
)
from referral_ledger.services.referral.payout_batcher import (
    PayoutBatcher,
    PayoutCycleResult,
)
from referral_ledger.services.referral.reward_config import (
    RewardConfig,
    build_reward_table,
    resolve_reward_config,
)
from referral_ledger.services.referral.reward_engine import (
    NOT_FIRST_EVENT,
    ReferralRewardEngine,
    RewardGrant,
    RewardResult,
)
from referral_ledger.services.referral.statistics import (
    ReferralStatisticsService,
)


__all__ = [
    # Configuration
    "RewardConfig",
    "build_reward_table",
    "resolve_reward_config",
    # Codes and chains
    "CodeResult",
    "ReferralCodeGenerator",
    "ChainLink",
    "ChainResult",
    "ReferralChainBuilder",
    # Reward processing
    "NOT_FIRST_EVENT",
    "ReferralRewardEngine",
    "RewardGrant",
    "RewardResult",
    # Payouts and statistics
    "PayoutBatcher",
    "PayoutCycleResult",
    "ReferralStatisticsService",
]
