"""
Commission service.

Commission ledger for property agents: creation inside reward processing and
the admin state transitions PENDING -> APPROVED and -> CANCELLED.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.commission import Commission
from referral_ledger.models.enums import CommissionStatus, QualifyingEventKind
from referral_ledger.repositories.commission_repository import (
    CommissionRepository,
)
from referral_ledger.repositories.referral_profile_repository import (
    ReferralProfileRepository,
)
from referral_ledger.repositories.user_repository import UserRepository
from referral_ledger.services.base_service import BaseService, transaction
from referral_ledger.utils.datetime_utils import utc_now
from referral_ledger.utils.exceptions import CommissionStateError, UserNotFound


class CommissionService(BaseService):
    """Commission ledger service."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission service."""
        super().__init__(session)
        self.commission_repo = CommissionRepository(session)
        self.profile_repo = ReferralProfileRepository(session)
        self.user_repo = UserRepository(session)

    async def record_commission(
        self,
        referrer_id: int,
        referred_user_id: int,
        event_id: str,
        event_kind: QualifyingEventKind,
        event_amount: Decimal,
        amount: Decimal,
        tier: int,
    ) -> Commission:
        """
        Create a PENDING commission and credit the pending balances.

        Does not commit: the reward engine composes this into the
        qualifying-event transaction.

        Args:
            referrer_id: Rewarded referrer
            referred_user_id: User whose event triggered the reward
            event_id: Triggering event ID
            event_kind: Qualifying event kind
            event_amount: Event amount, stored for audit
            amount: Flat commission amount
            tier: Chain tier of the referrer

        Returns:
            Created Commission

        Raises:
            UserNotFound: If referrer row is gone
        """
        profile = await self.profile_repo.get_by_referrer(referrer_id)

        commission = await self.commission_repo.create(
            referral_profile_id=profile.id if profile else None,
            referrer_id=referrer_id,
            referred_user_id=referred_user_id,
            order_id=event_id,
            event_kind=event_kind.value,
            order_amount=event_amount,
            commission_rate=Decimal("0"),
            commission_amount=amount,
            tier=tier,
            status=CommissionStatus.PENDING.value,
        )

        if not await self.user_repo.add_commission(referrer_id, amount):
            raise UserNotFound(referrer_id)
        if profile:
            await self.profile_repo.add_commission(profile.id, amount)

        self.logger.info(
            "Commission recorded",
            extra={
                "commission_id": commission.id,
                "referrer_id": referrer_id,
                "referred_user_id": referred_user_id,
                "amount": str(amount),
                "tier": tier,
            },
        )
        return commission

    @transaction
    async def approve_commissions(self, commission_ids: list[int]) -> list[Commission]:
        """
        Approve PENDING commissions for payout.

        Already APPROVED commissions are left as they are.

        Args:
            commission_ids: Commission IDs

        Returns:
            Commissions approved by this call

        Raises:
            CommissionStateError: If a commission is missing, PAID or CANCELLED
        """
        approved: list[Commission] = []
        now = utc_now()

        for commission_id in commission_ids:
            commission = await self.commission_repo.get_for_update(commission_id)
            if commission is None:
                raise CommissionStateError(
                    f"Commission {commission_id} not found"
                )
            if commission.status == CommissionStatus.APPROVED.value:
                continue
            if commission.status != CommissionStatus.PENDING.value:
                raise CommissionStateError(
                    f"Commission {commission_id} is {commission.status}, "
                    "only PENDING commissions can be approved"
                )

            commission.status = CommissionStatus.APPROVED.value
            commission.approved_at = now
            approved.append(commission)

        await self.session.flush()

        self.logger.info(
            "Commissions approved",
            extra={
                "requested": len(commission_ids),
                "approved": len(approved),
            },
        )
        return approved

    @transaction
    async def cancel_commission(self, commission_id: int, reason: str) -> Commission:
        """
        Cancel a PENDING or APPROVED commission.

        The amount leaves the referrer's pending and earned totals.

        Args:
            commission_id: Commission ID
            reason: Cancellation reason, stored in notes

        Returns:
            Cancelled Commission

        Raises:
            CommissionStateError: If commission is missing, PAID or CANCELLED,
                or the referrer's pending balances do not cover it
        """
        commission = await self.commission_repo.get_for_update(commission_id)
        if commission is None:
            raise CommissionStateError(f"Commission {commission_id} not found")
        if commission.status not in (
            CommissionStatus.PENDING.value,
            CommissionStatus.APPROVED.value,
        ):
            raise CommissionStateError(
                f"Commission {commission_id} is {commission.status} "
                "and cannot be cancelled"
            )

        amount = Decimal(commission.commission_amount)
        if not await self.user_repo.release_commission(
            commission.referrer_id, amount
        ):
            raise CommissionStateError(
                f"Pending commission of referrer {commission.referrer_id} "
                f"is below {amount}"
            )
        if commission.referral_profile_id and not (
            await self.profile_repo.release_commission(
                commission.referral_profile_id, amount
            )
        ):
            raise CommissionStateError(
                f"Pending commission of profile "
                f"{commission.referral_profile_id} is below {amount}"
            )

        commission.status = CommissionStatus.CANCELLED.value
        commission.cancelled_at = utc_now()
        commission.notes = reason
        await self.session.flush()

        self.logger.info(
            "Commission cancelled",
            extra={
                "commission_id": commission_id,
                "referrer_id": commission.referrer_id,
                "amount": str(amount),
                "reason": reason,
            },
        )
        return commission
