"""Integration tests for the points, commission and payout ledgers."""

from decimal import Decimal

import pytest
from sqlalchemy import select, update

from referral_ledger.models.commission import Commission
from referral_ledger.models.enums import (
    CommissionStatus,
    PayoutStatus,
    PointsTransactionType,
    QualifyingEventKind,
    ReferrerClass,
)
from referral_ledger.models.points_transaction import PointsTransaction
from referral_ledger.models.user import User
from referral_ledger.repositories.referral_profile_repository import (
    ReferralProfileRepository,
)
from referral_ledger.repositories.user_repository import UserRepository
from referral_ledger.services.commission_service import CommissionService
from referral_ledger.services.points_service import PointsService
from referral_ledger.services.referral.payout_batcher import PayoutBatcher
from referral_ledger.utils.exceptions import (
    CommissionStateError,
    InsufficientPointsBalance,
    PayoutStateError,
    ReferralValidationError,
    UserNotFound,
)


async def _user(session, user_id):
    return await UserRepository(session).get_by_id(user_id, fresh=True)


async def _commission(session, agent, customer, amount, event_id):
    """Record and commit one PENDING commission."""
    commission = await CommissionService(session).record_commission(
        referrer_id=agent.id,
        referred_user_id=customer.id,
        event_id=event_id,
        event_kind=QualifyingEventKind.ORDER,
        event_amount=Decimal("100"),
        amount=Decimal(amount),
        tier=1,
    )
    await session.commit()
    return commission


async def _statuses(session, agent_id):
    stmt = (
        select(Commission.status)
        .where(Commission.referrer_id == agent_id)
        .order_by(Commission.id)
    )
    return list((await session.execute(stmt)).scalars().all())


class TestPointsService:
    """Integration tests for PointsService."""

    @pytest.mark.asyncio
    async def test_entries_chain_balances(self, session, make_user):
        """Each entry starts where the previous one ended."""
        user = await make_user()
        service = PointsService(session)

        first = await service.credit_points(user.id, 100)
        second = await service.redeem_points(user.id, 30)
        third = await service.credit_points(
            user.id, 5, PointsTransactionType.EARNED_ORDER, "Order bonus"
        )

        assert (first.previous_balance, first.new_balance) == (0, 100)
        assert (second.previous_balance, second.new_balance) == (100, 70)
        assert second.points == -30
        assert (third.previous_balance, third.new_balance) == (70, 75)

        updated = await _user(session, user.id)
        assert updated.points_balance == 75
        assert updated.total_points_earned == 105
        assert updated.total_points_redeemed == 30

    @pytest.mark.asyncio
    async def test_redeem_more_than_balance(self, session, make_user):
        """Overdrafts are refused and nothing is written."""
        user = await make_user()
        service = PointsService(session)
        await service.credit_points(user.id, 40)

        with pytest.raises(InsufficientPointsBalance) as exc_info:
            await service.redeem_points(user.id, 50)

        assert exc_info.value.balance == 40
        assert user.points_balance == 40
        assert (await _user(session, user.id)).points_balance == 40
        entries = (
            await session.execute(
                select(PointsTransaction).where(
                    PointsTransaction.user_id == user.id
                )
            )
        ).scalars().all()
        assert len(entries) == 1

    @pytest.mark.asyncio
    async def test_redeem_requires_redemption_type(self, session, make_user):
        """Earning types cannot be used to debit."""
        user = await make_user()

        with pytest.raises(ReferralValidationError):
            await PointsService(session).redeem_points(
                user.id, 10, PointsTransactionType.BONUS
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("points", [0, -5])
    async def test_credit_requires_positive(self, session, make_user, points):
        """Credits must be positive."""
        user = await make_user()

        with pytest.raises(ReferralValidationError):
            await PointsService(session).credit_points(user.id, points)

    @pytest.mark.asyncio
    async def test_unknown_user(self, session):
        """Credits for unknown users raise UserNotFound."""
        with pytest.raises(UserNotFound):
            await PointsService(session).credit_points(404, 10)

    @pytest.mark.asyncio
    async def test_history_and_summary(self, session, make_user):
        """History pages newest first; summary breaks down by type."""
        user = await make_user()
        service = PointsService(session)
        await service.credit_points(user.id, 100)
        await service.redeem_points(user.id, 10)
        await service.adjust_points(user.id, -5, "Correction", admin_id=1)

        page = await service.get_history(user.id, limit=2)
        summary = await service.get_summary(user.id)

        assert page.total == 3
        assert len(page.transactions) == 2
        assert page.has_more is True
        assert summary.balance == 85
        assert summary.breakdown[PointsTransactionType.BONUS.value] == {
            "count": 1,
            "points": 100,
        }
        assert summary.last_transaction_at is not None


class TestCommissionService:
    """Integration tests for CommissionService transitions."""

    @pytest.mark.asyncio
    async def test_approve_pending(self, session, make_user):
        """PENDING commissions move to APPROVED."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        commission = await _commission(session, agent, customer, "5", "o-1")

        approved = await CommissionService(session).approve_commissions(
            [commission.id]
        )

        assert [c.id for c in approved] == [commission.id]
        assert approved[0].status == CommissionStatus.APPROVED.value
        assert approved[0].approved_at is not None

    @pytest.mark.asyncio
    async def test_approve_twice_is_noop(self, session, make_user):
        """Approving an APPROVED commission changes nothing."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        commission = await _commission(session, agent, customer, "5", "o-1")
        service = CommissionService(session)
        await service.approve_commissions([commission.id])

        again = await service.approve_commissions([commission.id])

        assert again == []

    @pytest.mark.asyncio
    async def test_cancel_releases_balances(self, session, make_user):
        """Cancelling removes the amount from pending and earned."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        await _commission(session, agent, customer, "5", "o-1")
        second = await _commission(session, agent, customer, "2", "o-2")

        cancelled = await CommissionService(session).cancel_commission(
            second.id, "Order refunded"
        )

        assert cancelled.status == CommissionStatus.CANCELLED.value
        assert cancelled.notes == "Order refunded"
        updated = await _user(session, agent.id)
        assert updated.pending_commission == Decimal("5")
        assert updated.total_commission_earned == Decimal("5")
        profile = await ReferralProfileRepository(session).get_by_referrer(
            agent.id
        )
        assert profile.pending_commission == Decimal("5")

    @pytest.mark.asyncio
    async def test_cancel_refused_when_balance_drifted(self, session, make_user):
        """A cancel the pending balance cannot cover changes nothing."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        commission = await _commission(session, agent, customer, "5", "o-1")
        await session.execute(
            update(User)
            .where(User.id == agent.id)
            .values(pending_commission=Decimal("1"))
        )
        await session.commit()

        with pytest.raises(CommissionStateError):
            await CommissionService(session).cancel_commission(
                commission.id, "Order refunded"
            )

        assert await _statuses(session, agent.id) == [
            CommissionStatus.PENDING.value
        ]
        updated = await _user(session, agent.id)
        assert updated.pending_commission == Decimal("1")
        assert updated.total_commission_earned == Decimal("5")
        profile = await ReferralProfileRepository(session).get_by_referrer(
            agent.id
        )
        assert profile.pending_commission == Decimal("5")

    @pytest.mark.asyncio
    async def test_paid_commission_is_immutable(self, session, make_user):
        """PAID commissions can be neither approved nor cancelled."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        commission = await _commission(session, agent, customer, "60", "o-1")
        service = CommissionService(session)
        await service.approve_commissions([commission.id])
        await PayoutBatcher(session).run_payout_cycle()

        with pytest.raises(CommissionStateError):
            await service.cancel_commission(commission.id, "too late")
        with pytest.raises(CommissionStateError):
            await service.approve_commissions([commission.id])

        assert await _statuses(session, agent.id) == [
            CommissionStatus.PAID.value
        ]

    @pytest.mark.asyncio
    async def test_approve_batch_is_all_or_nothing(self, session, make_user):
        """One refused commission leaves the rest of the batch PENDING."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        paid_id = (await _commission(session, agent, customer, "60", "o-1")).id
        service = CommissionService(session)
        await service.approve_commissions([paid_id])
        await PayoutBatcher(session).run_payout_cycle()
        pending_id = (
            await _commission(session, agent, customer, "5", "o-2")
        ).id

        with pytest.raises(CommissionStateError):
            await service.approve_commissions([pending_id, paid_id])

        assert await _statuses(session, agent.id) == [
            CommissionStatus.PAID.value,
            CommissionStatus.PENDING.value,
        ]

    @pytest.mark.asyncio
    async def test_approve_unknown(self, session):
        """Unknown commission IDs raise."""
        with pytest.raises(CommissionStateError):
            await CommissionService(session).approve_commissions([999])


class TestPayoutBatcher:
    """Integration tests for payout cycles."""

    @pytest.mark.asyncio
    async def test_minimum_payout_threshold(self, session, make_user):
        """$45 approved is held back; $55 is paid in one payout."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        service = CommissionService(session)
        ids = [
            (await _commission(session, agent, customer, "15", f"o-{n}")).id
            for n in range(3)
        ]
        await service.approve_commissions(ids)
        batcher = PayoutBatcher(session)

        first = await batcher.run_payout_cycle()

        assert first.payouts_created == 0
        assert first.below_minimum == [agent.id]
        assert await _statuses(session, agent.id) == [
            CommissionStatus.APPROVED.value
        ] * 3

        extra = await _commission(session, agent, customer, "10", "o-3")
        await service.approve_commissions([extra.id])

        second = await batcher.run_payout_cycle()

        assert second.payouts_created == 1
        assert second.total_amount == Decimal("55")
        assert await _statuses(session, agent.id) == [
            CommissionStatus.PAID.value
        ] * 4

        updated = await _user(session, agent.id)
        assert updated.pending_commission == Decimal("0")
        assert updated.total_commission_paid == Decimal("55")
        assert updated.total_commission_earned == Decimal("55")

    @pytest.mark.asyncio
    async def test_pending_commissions_not_paid(self, session, make_user):
        """Only APPROVED commissions are paid out."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        await _commission(session, agent, customer, "80", "o-1")

        result = await PayoutBatcher(session).run_payout_cycle()

        assert result.payouts_created == 0
        assert await _statuses(session, agent.id) == [
            CommissionStatus.PENDING.value
        ]

    @pytest.mark.asyncio
    async def test_payout_sum_matches_commissions(self, session, make_user):
        """A payout's total is the sum of the commissions it paid."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        ids = [
            (await _commission(session, agent, customer, amount, f"o-{n}")).id
            for n, amount in enumerate(["20.50", "30.25", "4.25"])
        ]
        await CommissionService(session).approve_commissions(ids)

        result = await PayoutBatcher(session).run_payout_cycle()

        payout_id = result.payout_ids[0]
        paid = (
            await session.execute(
                select(Commission)
                .where(Commission.payout_id == payout_id)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        assert len(paid) == 3
        assert sum(
            (Decimal(c.commission_amount) for c in paid), Decimal("0")
        ) == result.total_amount == Decimal("55")
        assert all(c.paid_at is not None for c in paid)

    @pytest.mark.asyncio
    async def test_payout_completed(self, session, make_user):
        """Completion stores the provider reference."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        commission = await _commission(session, agent, customer, "50", "o-1")
        await CommissionService(session).approve_commissions([commission.id])
        batcher = PayoutBatcher(session)
        payout_id = (await batcher.run_payout_cycle()).payout_ids[0]

        await batcher.mark_payout_processing(payout_id)
        payout = await batcher.mark_payout_completed(payout_id, "txn_123")

        assert payout.status == PayoutStatus.COMPLETED.value
        assert payout.transaction_id == "txn_123"
        assert payout.completed_at is not None
        with pytest.raises(PayoutStateError):
            await batcher.mark_payout_failed(payout_id, "late failure")

    @pytest.mark.asyncio
    async def test_payout_failed_keeps_commissions_paid(self, session, make_user):
        """A failed payout never rewrites its PAID commissions."""
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
        customer = await make_user()
        commission = await _commission(session, agent, customer, "60", "o-1")
        await CommissionService(session).approve_commissions([commission.id])
        batcher = PayoutBatcher(session)
        payout_id = (await batcher.run_payout_cycle()).payout_ids[0]

        payout = await batcher.mark_payout_failed(payout_id, "Account closed")

        assert payout.status == PayoutStatus.FAILED.value
        assert payout.failure_reason == "Account closed"
        paid = (
            await session.execute(
                select(Commission)
                .where(Commission.referrer_id == agent.id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert paid.status == CommissionStatus.PAID.value
        assert paid.payout_id == payout_id
        updated = await _user(session, agent.id)
        assert updated.pending_commission == Decimal("0")
        assert updated.total_commission_paid == Decimal("60")

        retry = await batcher.run_payout_cycle()
        assert retry.payouts_created == 0
        with pytest.raises(PayoutStateError):
            await batcher.mark_payout_completed(payout_id, "txn_late")

    @pytest.mark.asyncio
    async def test_unknown_payout(self, session):
        """Transitions on unknown payouts raise."""
        with pytest.raises(PayoutStateError):
            await PayoutBatcher(session).mark_payout_completed(1, "txn")
