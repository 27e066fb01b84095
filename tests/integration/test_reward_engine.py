"""Integration tests for first-event reward processing."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from referral_ledger.models.commission import Commission
from referral_ledger.models.enums import (
    CommissionStatus,
    PointsTransactionType,
    QualifyingEventKind,
    ReferredUserStatus,
    ReferrerClass,
    RewardKind,
)
from referral_ledger.models.points_transaction import PointsTransaction
from referral_ledger.repositories.referral_profile_repository import (
    ReferralProfileRepository,
)
from referral_ledger.repositories.user_repository import UserRepository
from referral_ledger.services.commission_service import CommissionService
from referral_ledger.services.referral.reward_config import (
    RewardConfig,
    build_reward_table,
)
from referral_ledger.services.referral.reward_engine import (
    NOT_FIRST_EVENT,
    ZERO_REWARD,
    ReferralRewardEngine,
)
from referral_ledger.utils.exceptions import LedgerStorageError, UserNotFound


async def _user(session, user_id):
    return await UserRepository(session).get_by_id(user_id, fresh=True)


async def _count(session, model, **filters):
    stmt = select(func.count()).select_from(model).filter_by(**filters)
    return (await session.execute(stmt)).scalar_one()


class TestFirstOrderRewards:
    """Rewards for a user's first paid order."""

    @pytest.mark.asyncio
    async def test_agent_referrer_gets_commission(self, session, make_user, signup):
        """Direct agent earns one PENDING commission, user gets welcome bonus."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await signup(agent)

        result = await ReferralRewardEngine(session).process_qualifying_event(
            customer.id, "order-1", Decimal("110")
        )

        assert result.processed is True
        assert result.welcome_bonus_points == 20
        assert len(result.rewards) == 1
        grant = result.rewards[0]
        assert grant.reward_kind is RewardKind.MONEY
        assert grant.amount == Decimal("5")

        commissions = (
            await session.execute(
                select(Commission).where(Commission.referrer_id == agent.id)
            )
        ).scalars().all()
        assert len(commissions) == 1
        assert commissions[0].status == CommissionStatus.PENDING.value
        assert commissions[0].commission_amount == Decimal("5")
        assert commissions[0].order_id == "order-1"
        assert commissions[0].tier == 1

        updated_agent = await _user(session, agent.id)
        assert updated_agent.pending_commission == Decimal("5")
        assert updated_agent.total_commission_earned == Decimal("5")
        assert updated_agent.points_balance == 0

        updated_customer = await _user(session, customer.id)
        assert updated_customer.has_completed_first_order is True
        assert updated_customer.first_order_event_id == "order-1"
        assert updated_customer.points_balance == 20
        assert await _count(
            session,
            PointsTransaction,
            user_id=customer.id,
            type=PointsTransactionType.EARNED_SIGNUP.value,
        ) == 1

    @pytest.mark.asyncio
    async def test_customer_referrer_gets_points(self, session, make_user, signup):
        """Direct customer earns exactly 100 points and no commission."""
        referrer = await make_user(with_code=True)
        customer = await signup(referrer)

        result = await ReferralRewardEngine(session).process_qualifying_event(
            customer.id, "order-1", Decimal("110")
        )

        assert result.total_points == 100
        assert result.total_money == Decimal("0")
        updated = await _user(session, referrer.id)
        assert updated.points_balance == 100
        assert updated.total_points_earned == 100
        assert await _count(session, Commission) == 0

        entry = (
            await session.execute(
                select(PointsTransaction).where(
                    PointsTransaction.user_id == referrer.id
                )
            )
        ).scalar_one()
        assert entry.type == PointsTransactionType.EARNED_REFERRAL.value
        assert entry.previous_balance == 0
        assert entry.new_balance == 100
        assert entry.extra_data["referral_tier"] == 1

    @pytest.mark.asyncio
    async def test_second_order_changes_nothing(self, session, make_user, signup):
        """Any later order is ignored without new rows."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await signup(agent)
        engine = ReferralRewardEngine(session)
        await engine.process_qualifying_event(customer.id, "order-1", Decimal("110"))

        result = await engine.process_qualifying_event(
            customer.id, "order-2", Decimal("200")
        )

        assert result.processed is False
        assert result.reason == NOT_FIRST_EVENT
        assert result.rewards == []
        assert await _count(session, Commission) == 1
        assert await _count(session, PointsTransaction) == 1
        updated_agent = await _user(session, agent.id)
        assert updated_agent.pending_commission == Decimal("5")
        updated_customer = await _user(session, customer.id)
        assert updated_customer.first_order_event_id == "order-1"

    @pytest.mark.asyncio
    async def test_redelivered_event_is_ignored(self, session, make_user, signup):
        """The same event delivered twice rewards once."""
        referrer = await make_user(with_code=True)
        customer = await signup(referrer)
        engine = ReferralRewardEngine(session)

        await engine.process_qualifying_event(customer.id, "order-1", Decimal("50"))
        again = await engine.process_qualifying_event(
            customer.id, "order-1", Decimal("50")
        )

        assert again.processed is False
        assert (await _user(session, referrer.id)).points_balance == 100

    @pytest.mark.asyncio
    async def test_tier2_agent_rewarded(self, session, make_user, signup):
        """An agent two levels up earns the tier 2 amount."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer_b = await signup(agent, with_code=True)
        customer_c = await signup(customer_b)

        result = await ReferralRewardEngine(session).process_qualifying_event(
            customer_c.id, "order-9", Decimal("80")
        )

        by_tier = {grant.tier: grant for grant in result.rewards}
        assert by_tier[1].referrer_id == customer_b.id
        assert by_tier[1].points == 100
        assert by_tier[2].referrer_id == agent.id
        assert by_tier[2].amount == Decimal("2")
        commission = (
            await session.execute(select(Commission))
        ).scalar_one()
        assert commission.tier == 2
        assert commission.referred_user_id == customer_c.id

    @pytest.mark.asyncio
    async def test_unreferred_user_gets_welcome_bonus_only(self, session, make_user):
        """Users without a chain still get the welcome bonus."""
        customer = await make_user()

        result = await ReferralRewardEngine(session).process_qualifying_event(
            customer.id, "order-1", Decimal("10")
        )

        assert result.processed is True
        assert result.rewards == []
        assert (await _user(session, customer.id)).points_balance == 20

    @pytest.mark.asyncio
    async def test_zero_welcome_bonus_writes_no_entry(
        self, session, make_user, signup
    ):
        """A disabled welcome bonus leaves only the referral reward."""
        referrer = await make_user(with_code=True)
        customer = await signup(referrer)

        result = await ReferralRewardEngine(
            session, welcome_bonus_points=0
        ).process_qualifying_event(customer.id, "order-1", Decimal("10"))

        assert result.welcome_bonus is False
        assert await _count(session, PointsTransaction, user_id=customer.id) == 0

    @pytest.mark.asyncio
    async def test_referred_user_becomes_active(self, session, make_user, signup):
        """The first order activates the referral on the direct profile."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await signup(agent)

        await ReferralRewardEngine(session).process_qualifying_event(
            customer.id, "order-1", Decimal("110")
        )

        repo = ReferralProfileRepository(session)
        profile = await repo.get_by_referrer(agent.id)
        assert profile.active_referrals == 1
        assert profile.pending_commission == Decimal("5")
        referred = await repo.get_referred_user(profile.id, customer.id)
        await session.refresh(referred)
        assert referred.status == ReferredUserStatus.ACTIVE.value
        assert referred.total_spent == Decimal("110")

    @pytest.mark.asyncio
    async def test_unknown_user(self, session):
        """Events for unknown users raise."""
        with pytest.raises(UserNotFound):
            await ReferralRewardEngine(session).process_qualifying_event(
                404, "order-1", Decimal("10")
            )


class TestSubscriptionRewards:
    """First subscription is rewarded independently of first order."""

    @pytest.mark.asyncio
    async def test_subscription_after_order_rewards_again(
        self, session, make_user, signup
    ):
        """Order and subscription each reward once."""
        referrer = await make_user(with_code=True)
        customer = await signup(referrer)
        engine = ReferralRewardEngine(session)

        await engine.process_qualifying_event(customer.id, "order-1", Decimal("50"))
        sub = await engine.process_qualifying_event(
            customer.id, "sub-1", Decimal("30"), QualifyingEventKind.SUBSCRIPTION
        )
        sub_again = await engine.process_qualifying_event(
            customer.id, "sub-2", Decimal("30"), "subscription"
        )

        assert sub.processed is True
        assert sub_again.processed is False
        updated_customer = await _user(session, customer.id)
        assert updated_customer.has_completed_first_order is True
        assert updated_customer.has_completed_first_subscription is True
        assert updated_customer.first_subscription_event_id == "sub-1"
        assert (await _user(session, referrer.id)).points_balance == 200

    @pytest.mark.asyncio
    async def test_subscription_does_not_block_first_order(
        self, session, make_user, signup
    ):
        """A first subscription leaves the first order unprocessed."""
        referrer = await make_user(with_code=True)
        customer = await signup(referrer)
        engine = ReferralRewardEngine(session)

        await engine.process_qualifying_event(
            customer.id, "sub-1", Decimal("30"), QualifyingEventKind.SUBSCRIPTION
        )
        order = await engine.process_qualifying_event(
            customer.id, "order-1", Decimal("50")
        )

        assert order.processed is True


class TestRewardAtomicity:
    """A failed event leaves no partial reward behind."""

    @pytest.mark.asyncio
    async def test_storage_failure_rolls_back_and_retry_rewards_once(
        self, session, make_user, signup, monkeypatch
    ):
        """Flag, welcome bonus and commission are written together or not at all."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await signup(agent)
        agent_id, customer_id = agent.id, customer.id

        async def _fail(self, **kwargs):
            raise OperationalError("INSERT INTO commissions", {}, Exception("lost"))

        monkeypatch.setattr(CommissionService, "record_commission", _fail)
        engine = ReferralRewardEngine(session)

        with pytest.raises(LedgerStorageError):
            await engine.process_qualifying_event(
                customer_id, "order-1", Decimal("110")
            )

        failed = await _user(session, customer_id)
        assert failed.has_completed_first_order is False
        assert failed.first_order_event_id is None
        assert failed.points_balance == 0
        assert await _count(session, PointsTransaction, user_id=customer_id) == 0
        assert await _count(session, Commission) == 0

        monkeypatch.undo()
        retry = await engine.process_qualifying_event(
            customer_id, "order-1", Decimal("110")
        )
        again = await engine.process_qualifying_event(
            customer_id, "order-1", Decimal("110")
        )

        assert retry.processed is True
        assert again.processed is False
        assert await _count(session, PointsTransaction, user_id=customer_id) == 1
        assert await _count(session, Commission, referrer_id=agent_id) == 1
        assert (await _user(session, agent_id)).pending_commission == Decimal("5")


class TestSkippedEdges:
    """Chain edges without a usable reward are skipped, not fatal."""

    @pytest.mark.asyncio
    async def test_edge_without_config_is_skipped(
        self, session, make_user, signup
    ):
        """A missing tier 2 config still rewards tier 1."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer_b = await signup(agent, with_code=True)
        customer_c = await signup(customer_b)
        table = build_reward_table()
        del table[(ReferrerClass.PROPERTY_AGENT, 2)]

        result = await ReferralRewardEngine(
            session, reward_table=table
        ).process_qualifying_event(customer_c.id, "order-1", Decimal("80"))

        assert result.processed is True
        assert [(g.referrer_id, g.tier) for g in result.rewards] == [
            (customer_b.id, 1)
        ]
        assert result.rewards[0].points == 100
        assert len(result.skipped) == 1
        skipped = result.skipped[0]
        assert (skipped.referrer_id, skipped.tier) == (agent.id, 2)
        assert "No reward configured" in skipped.reason
        assert await _count(session, Commission) == 0

    @pytest.mark.asyncio
    async def test_zero_reward_edge_is_skipped(self, session, make_user, signup):
        """A zero tier 2 amount writes no commission and keeps tier 1."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer_b = await signup(agent, with_code=True)
        customer_c = await signup(customer_b)
        table = build_reward_table()
        table[(ReferrerClass.PROPERTY_AGENT, 2)] = RewardConfig(
            ReferrerClass.PROPERTY_AGENT, 2, RewardKind.MONEY, amount=Decimal("0")
        )

        result = await ReferralRewardEngine(
            session, reward_table=table
        ).process_qualifying_event(customer_c.id, "order-1", Decimal("80"))

        assert [(g.referrer_id, g.tier) for g in result.rewards] == [
            (customer_b.id, 1)
        ]
        assert [(s.referrer_id, s.tier, s.reason) for s in result.skipped] == [
            (agent.id, 2, ZERO_REWARD)
        ]
        assert await _count(session, Commission) == 0
        assert (await _user(session, customer_b.id)).points_balance == 100
