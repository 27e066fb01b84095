"""
Referral reward engine.

Grants rewards for a user's first qualifying event (first paid order or
first paid subscription):
- welcome bonus points to the user
- one flat reward per referrer in the user's chain, money for property
  agents and points for customers

The first-event flag, the welcome bonus and every chain reward are written
in one transaction. A concurrent or retried delivery for the same user and
kind finds the flag already set and changes nothing.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.config.settings import settings
from referral_ledger.models.enums import (
    PointsTransactionType,
    QualifyingEventKind,
    ReferredUserStatus,
    RelatedModel,
    RewardKind,
)
from referral_ledger.models.referral_chain import ReferralChainEdge
from referral_ledger.models.user import User
from referral_ledger.repositories.chain_repository import ChainRepository
from referral_ledger.repositories.referral_profile_repository import (
    ReferralProfileRepository,
)
from referral_ledger.repositories.user_repository import UserRepository
from referral_ledger.services.base_service import BaseService, transaction
from referral_ledger.services.commission_service import CommissionService
from referral_ledger.services.points_service import PointsService
from referral_ledger.services.referral.reward_config import (
    RewardConfig,
    build_reward_table,
    resolve_reward_config,
)
from referral_ledger.utils.datetime_utils import utc_now
from referral_ledger.utils.exceptions import NoRewardConfig, UserNotFound

NOT_FIRST_EVENT = "NotFirstEvent"
REFERRER_MISSING = "ReferrerMissing"
ZERO_REWARD = "ZeroReward"


@dataclass
class RewardGrant:
    """Reward applied to one referrer."""

    referrer_id: int
    tier: int
    referrer_class: str
    reward_kind: RewardKind
    amount: Decimal = Decimal("0")
    points: int = 0
    commission_id: int | None = None
    points_transaction_id: int | None = None


@dataclass
class SkippedEdge:
    """Chain edge that produced no reward."""

    referrer_id: int | None
    tier: int
    reason: str


@dataclass
class RewardResult:
    """Result of qualifying event processing."""

    processed: bool
    user_id: int
    event_id: str
    event_kind: QualifyingEventKind
    reason: str | None = None
    welcome_bonus: bool = False
    welcome_bonus_points: int = 0
    rewards: list[RewardGrant] = field(default_factory=list)
    skipped: list[SkippedEdge] = field(default_factory=list)

    @property
    def total_money(self) -> Decimal:
        """Sum of money rewards granted."""
        return sum(
            (r.amount for r in self.rewards if r.reward_kind is RewardKind.MONEY),
            Decimal("0"),
        )

    @property
    def total_points(self) -> int:
        """Sum of referral points granted (welcome bonus excluded)."""
        return sum(
            r.points for r in self.rewards if r.reward_kind is RewardKind.POINTS
        )


def _related_model(kind: QualifyingEventKind) -> RelatedModel:
    if kind is QualifyingEventKind.ORDER:
        return RelatedModel.ORDER
    return RelatedModel.SUBSCRIPTION


class ReferralRewardEngine(BaseService):
    """Applies first-event rewards exactly once per user and kind."""

    def __init__(
        self,
        session: AsyncSession,
        reward_table: dict | None = None,
        welcome_bonus_points: int | None = None,
    ) -> None:
        """
        Initialize reward engine.

        Args:
            session: Async database session
            reward_table: Reward table override (defaults to settings)
            welcome_bonus_points: Welcome bonus override (defaults to settings)
        """
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.chain_repo = ChainRepository(session)
        self.profile_repo = ReferralProfileRepository(session)
        self.points_service = PointsService(session)
        self.commission_service = CommissionService(session)
        self.reward_table = (
            reward_table if reward_table is not None else build_reward_table()
        )
        self.welcome_bonus_points = (
            welcome_bonus_points
            if welcome_bonus_points is not None
            else settings.welcome_bonus_points
        )

    @transaction
    async def process_qualifying_event(
        self,
        user_id: int,
        event_id: str,
        event_amount: Decimal,
        event_kind: QualifyingEventKind | str = QualifyingEventKind.ORDER,
    ) -> RewardResult:
        """
        Process a user's qualifying event.

        Args:
            user_id: User who completed the event
            event_id: Order or subscription ID
            event_amount: Paid amount (audit only, rewards are flat)
            event_kind: order or subscription

        Returns:
            RewardResult; processed is False with reason NotFirstEvent for
            any event after the first of its kind

        Raises:
            UserNotFound: If user does not exist
            LedgerStorageError: If storage failed; nothing was applied
        """
        kind = QualifyingEventKind(event_kind)
        event_amount = Decimal(str(event_amount))

        user = await self.user_repo.get_by_id(user_id, fresh=True)
        if user is None:
            raise UserNotFound(user_id)

        claimed = await self.user_repo.claim_first_event(
            user_id, kind, event_id, utc_now()
        )
        if not claimed:
            self.logger.info(
                "Qualifying event ignored, not first of its kind",
                extra={
                    "user_id": user_id,
                    "event_id": event_id,
                    "event_kind": kind.value,
                },
            )
            return RewardResult(
                processed=False,
                user_id=user_id,
                event_id=event_id,
                event_kind=kind,
                reason=NOT_FIRST_EVENT,
            )

        result = RewardResult(
            processed=True,
            user_id=user_id,
            event_id=event_id,
            event_kind=kind,
        )

        if self.welcome_bonus_points > 0:
            await self.points_service.record(
                user_id,
                self.welcome_bonus_points,
                PointsTransactionType.EARNED_SIGNUP,
                "Welcome bonus for first qualifying event",
                related_id=event_id,
                related_model=_related_model(kind),
                metadata={"event_kind": kind.value, "welcome_bonus": True},
            )
            result.welcome_bonus = True
            result.welcome_bonus_points = self.welcome_bonus_points

        edges = await self.chain_repo.get_chain(user_id)
        for edge in edges:
            await self._reward_edge(user, edge, event_id, event_amount, kind, result)

        await self._activate_direct_referral(user, event_amount)

        self.logger.info(
            "Qualifying event rewarded",
            extra={
                "user_id": user_id,
                "event_id": event_id,
                "event_kind": kind.value,
                "rewards_count": len(result.rewards),
                "skipped_count": len(result.skipped),
                "total_money": str(result.total_money),
                "total_points": result.total_points,
            },
        )
        return result

    async def _reward_edge(
        self,
        user: User,
        edge: ReferralChainEdge,
        event_id: str,
        event_amount: Decimal,
        kind: QualifyingEventKind,
        result: RewardResult,
    ) -> None:
        """Apply the reward of one chain edge, or record why it was skipped."""
        referrer = None
        if edge.referrer_id is not None:
            referrer = await self.user_repo.get_by_id(edge.referrer_id)
        if referrer is None:
            self.logger.warning(
                "Referrer not found for reward",
                extra={"user_id": user.id, "tier": edge.tier},
            )
            result.skipped.append(
                SkippedEdge(edge.referrer_id, edge.tier, REFERRER_MISSING)
            )
            return

        try:
            config = resolve_reward_config(
                referrer.referral_user_type, edge.tier, self.reward_table
            )
        except NoRewardConfig as e:
            self.logger.warning(
                "No reward config for chain edge",
                extra={
                    "referrer_id": referrer.id,
                    "referrer_class": referrer.referral_user_type,
                    "tier": edge.tier,
                },
            )
            result.skipped.append(SkippedEdge(referrer.id, edge.tier, str(e)))
            return

        if config.is_zero:
            result.skipped.append(SkippedEdge(referrer.id, edge.tier, ZERO_REWARD))
            return

        if config.reward_kind is RewardKind.MONEY:
            grant = await self._grant_money(
                referrer, user, config, event_id, event_amount, kind
            )
        else:
            grant = await self._grant_points(
                referrer, user, config, event_id, event_amount, kind
            )
        result.rewards.append(grant)

    async def _grant_money(
        self,
        referrer: User,
        user: User,
        config: RewardConfig,
        event_id: str,
        event_amount: Decimal,
        kind: QualifyingEventKind,
    ) -> RewardGrant:
        commission = await self.commission_service.record_commission(
            referrer_id=referrer.id,
            referred_user_id=user.id,
            event_id=event_id,
            event_kind=kind,
            event_amount=event_amount,
            amount=config.amount,
            tier=config.tier,
        )
        return RewardGrant(
            referrer_id=referrer.id,
            tier=config.tier,
            referrer_class=config.referrer_class.value,
            reward_kind=RewardKind.MONEY,
            amount=config.amount,
            commission_id=commission.id,
        )

    async def _grant_points(
        self,
        referrer: User,
        user: User,
        config: RewardConfig,
        event_id: str,
        event_amount: Decimal,
        kind: QualifyingEventKind,
    ) -> RewardGrant:
        entry = await self.points_service.record(
            referrer.id,
            config.points,
            PointsTransactionType.EARNED_REFERRAL,
            f"Tier {config.tier} referral reward",
            related_id=event_id,
            related_model=_related_model(kind),
            metadata={
                "referral_tier": config.tier,
                "referred_user_id": user.id,
                "event_amount": str(event_amount),
                "event_kind": kind.value,
            },
        )
        return RewardGrant(
            referrer_id=referrer.id,
            tier=config.tier,
            referrer_class=config.referrer_class.value,
            reward_kind=RewardKind.POINTS,
            points=config.points,
            points_transaction_id=entry.id,
        )

    async def _activate_direct_referral(
        self, user: User, event_amount: Decimal
    ) -> None:
        """Mark the user ACTIVE on the direct referrer's profile."""
        if user.referred_by_id is None:
            return

        profile = await self.profile_repo.get_by_referrer(user.referred_by_id)
        if profile is None:
            return

        referred = await self.profile_repo.get_referred_user(profile.id, user.id)
        if referred is None or referred.status == ReferredUserStatus.ACTIVE.value:
            return

        referred.status = ReferredUserStatus.ACTIVE.value
        referred.first_purchase_amount = event_amount
        referred.total_spent = event_amount
        await self.profile_repo.increment_active_referrals(profile.id)

        profile = await self.profile_repo.get_by_id(profile.id, fresh=True)
        profile.referral_tier = profile.calculate_tier()
        await self.session.flush()
