"""
Referral statistics module.

Read-only dashboard aggregations for referrers and admins.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.config.referral_constants import LEGACY_COMMISSION_TIERS
from referral_ledger.models.enums import CommissionStatus, RewardKind
from referral_ledger.repositories.chain_repository import ChainRepository
from referral_ledger.repositories.commission_repository import (
    CommissionRepository,
)
from referral_ledger.repositories.fraud_detection_repository import (
    FraudDetectionRepository,
)
from referral_ledger.repositories.referral_link_repository import (
    ReferralClickRepository,
)
from referral_ledger.repositories.referral_profile_repository import (
    ReferralProfileRepository,
)
from referral_ledger.repositories.user_repository import UserRepository
from referral_ledger.utils.exceptions import UserNotFound

RECENT_COMMISSIONS_LIMIT = 10


class ReferralStatisticsService:
    """Referral statistics and analytics."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize statistics service."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.profile_repo = ReferralProfileRepository(session)
        self.chain_repo = ChainRepository(session)
        self.commission_repo = CommissionRepository(session)
        self.click_repo = ReferralClickRepository(session)
        self.fraud_repo = FraudDetectionRepository(session)

    async def get_user_referral_stats(self, user_id: int) -> dict[str, Any]:
        """
        Get dashboard statistics of a referrer.

        Args:
            user_id: Referrer user ID

        Returns:
            Dict with code, counters, earnings, tier, clicks and commissions

        Raises:
            UserNotFound: If user does not exist
        """
        user = await self.user_repo.get_by_id(user_id, fresh=True)
        if user is None:
            raise UserNotFound(user_id)

        profile = await self.profile_repo.get_by_referrer(user_id)
        clicks, conversions = await self.click_repo.click_totals(user_id)
        conversion_rate = (
            round(conversions / clicks * 100, 2) if clicks else 0.0
        )

        recent = await self.commission_repo.get_by_referrer(
            user_id, limit=RECENT_COMMISSIONS_LIMIT
        )

        return {
            "referral_code": profile.referral_code if profile else None,
            "total_referrals": profile.total_referrals if profile else 0,
            "active_referrals": profile.active_referrals if profile else 0,
            "tier2_referrals": await self.chain_repo.count_referrals(
                user_id, tier=2
            ),
            "tier": profile.referral_tier if profile else 1,
            "tier_name": (
                profile.tier_name if profile else LEGACY_COMMISSION_TIERS[1]["name"]
            ),
            "total_commission_earned": Decimal(user.total_commission_earned),
            "pending_commission": Decimal(user.pending_commission),
            "total_commission_paid": Decimal(user.total_commission_paid),
            "points_balance": user.points_balance,
            "total_clicks": clicks,
            "total_conversions": conversions,
            "conversion_rate": conversion_rate,
            "recent_commissions": [
                {
                    "id": c.id,
                    "referred_user_id": c.referred_user_id,
                    "order_id": c.order_id,
                    "amount": Decimal(c.commission_amount),
                    "tier": c.tier,
                    "status": c.status,
                    "created_at": c.created_at,
                }
                for c in recent
            ],
            "commission_breakdown": await self.commission_repo.sum_by_status(
                user_id
            ),
        }

    async def get_reward_summary(self, user_id: int) -> dict[str, Any]:
        """
        Get a user's reward summary.

        Balance and totals follow the user's reward type: points for
        customers, commission for property agents.

        Args:
            user_id: User ID

        Returns:
            Dict with class, reward type, balances and first-event flags
        """
        user = await self.user_repo.get_by_id(user_id, fresh=True)
        if user is None:
            raise UserNotFound(user_id)

        if user.reward_type is RewardKind.POINTS:
            balance: int | Decimal = user.points_balance
            earned: int | Decimal = user.total_points_earned
            redeemed: int | Decimal = user.total_points_redeemed
        else:
            balance = Decimal(user.pending_commission)
            earned = Decimal(user.total_commission_earned)
            redeemed = Decimal(user.total_commission_paid)

        chain = await self.chain_repo.get_chain(user_id)
        referrals = await self.user_repo.get_direct_referrals(user_id)

        return {
            "user_type": user.referral_user_type,
            "reward_type": user.reward_type.value,
            "current_balance": balance,
            "total_earned": earned,
            "total_redeemed": redeemed,
            "referral_chain_length": len(chain),
            "has_completed_first_order": user.has_completed_first_order,
            "has_completed_first_subscription": (
                user.has_completed_first_subscription
            ),
            "total_referrals": len(referrals),
        }

    async def get_admin_overview(self) -> dict[str, Any]:
        """
        Get program-wide statistics.

        Returns:
            Dict with referrer counts, earnings, tier breakdown and open
            fraud detections per severity
        """
        totals = await self.profile_repo.totals()
        tiers = await self.profile_repo.tier_breakdown()

        return {
            **totals,
            "users_by_type": await self.user_repo.count_by_type(),
            "tier_breakdown": {
                config["name"]: tiers.get(level, 0)
                for level, config in LEGACY_COMMISSION_TIERS.items()
            },
            "commissions_pending_approval": await self.commission_repo.count(
                status=CommissionStatus.PENDING.value
            ),
            "open_fraud_by_severity": (
                await self.fraud_repo.count_open_by_severity()
            ),
        }
