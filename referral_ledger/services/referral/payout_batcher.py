"""
Payout batcher.

Aggregates APPROVED commissions per referrer into payouts once their sum
reaches the minimum payout amount, and handles payout completion and failure
reported back by the payment collaborator.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.config.settings import settings
from referral_ledger.models.commission import Commission
from referral_ledger.models.enums import PaymentMethod, PayoutStatus
from referral_ledger.models.payout import Payout
from referral_ledger.repositories.commission_repository import (
    CommissionRepository,
)
from referral_ledger.repositories.payout_repository import PayoutRepository
from referral_ledger.repositories.referral_profile_repository import (
    ReferralProfileRepository,
)
from referral_ledger.repositories.user_repository import UserRepository
from referral_ledger.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)
from referral_ledger.utils.datetime_utils import utc_now
from referral_ledger.utils.exceptions import PayoutStateError, ReferralLedgerError

OPEN_PAYOUT_STATUSES = (PayoutStatus.PENDING.value, PayoutStatus.PROCESSING.value)


@dataclass
class PayoutCycleResult:
    """Result of one payout cycle."""

    payouts_created: int = 0
    total_amount: Decimal = Decimal("0")
    payout_ids: list[int] = field(default_factory=list)
    below_minimum: list[int] = field(default_factory=list)
    failed_referrers: list[int] = field(default_factory=list)


def _amounts_by_profile(commissions: list[Commission]) -> dict[int, Decimal]:
    """Sum commission amounts per referral profile."""
    totals: dict[int, Decimal] = defaultdict(lambda: Decimal("0"))
    for commission in commissions:
        if commission.referral_profile_id is not None:
            totals[commission.referral_profile_id] += Decimal(
                commission.commission_amount
            )
    return totals


class PayoutBatcher(BaseService):
    """Creates and settles referrer payouts."""

    def __init__(
        self,
        session: AsyncSession,
        minimum_payout: Decimal | None = None,
        payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
    ) -> None:
        """
        Initialize payout batcher.

        Args:
            session: Async database session
            minimum_payout: Threshold override (defaults to settings)
            payment_method: Payment method for new payouts
        """
        super().__init__(session)
        self.commission_repo = CommissionRepository(session)
        self.payout_repo = PayoutRepository(session)
        self.profile_repo = ReferralProfileRepository(session)
        self.user_repo = UserRepository(session)
        self.minimum_payout = (
            minimum_payout
            if minimum_payout is not None
            else settings.minimum_payout_amount
        )
        self.payment_method = payment_method

    @log_operation
    async def run_payout_cycle(self) -> PayoutCycleResult:
        """
        Create payouts for every referrer at or above the minimum.

        Each referrer is settled in its own transaction; a failure rolls
        back that referrer only.

        Returns:
            PayoutCycleResult
        """
        result = PayoutCycleResult()
        totals = await self.commission_repo.get_approved_totals_by_referrer()
        # End the read transaction before per-referrer work
        await self.commit()

        for referrer_id, total in totals:
            if total < self.minimum_payout:
                result.below_minimum.append(referrer_id)
                continue

            try:
                payout = await self.create_payout_for_referrer(referrer_id)
            except ReferralLedgerError as e:
                self.logger.error(
                    "Payout failed for referrer",
                    extra={"referrer_id": referrer_id, "error": str(e)},
                )
                result.failed_referrers.append(referrer_id)
                continue

            if payout is None:
                result.below_minimum.append(referrer_id)
                continue

            result.payouts_created += 1
            result.total_amount += Decimal(payout.total_amount)
            result.payout_ids.append(payout.id)

        self.logger.info(
            "Payout cycle finished",
            extra={
                "payouts_created": result.payouts_created,
                "total_amount": str(result.total_amount),
                "below_minimum": len(result.below_minimum),
                "failed": len(result.failed_referrers),
            },
        )
        return result

    @transaction
    async def create_payout_for_referrer(self, referrer_id: int) -> Payout | None:
        """
        Settle one referrer's APPROVED commissions into a payout.

        The sum is re-checked under row locks.

        Args:
            referrer_id: Referrer user ID

        Returns:
            Created Payout, or None if below the minimum

        Raises:
            PayoutStateError: If referrer balances do not cover the payout
        """
        commissions = await self.commission_repo.lock_approved_for_referrer(
            referrer_id
        )
        total = sum(
            (Decimal(c.commission_amount) for c in commissions), Decimal("0")
        )
        if not commissions or total < self.minimum_payout:
            return None

        payout = await self.payout_repo.create(
            referrer_id=referrer_id,
            total_amount=total,
            payment_method=self.payment_method.value,
            status=PayoutStatus.PENDING.value,
            notes=f"{len(commissions)} commissions",
        )

        paid = await self.commission_repo.mark_paid(
            [c.id for c in commissions], payout.id, utc_now()
        )
        if paid != len(commissions):
            raise PayoutStateError(
                f"Only {paid} of {len(commissions)} commissions could be paid"
            )

        if not await self.user_repo.settle_commission(referrer_id, total):
            raise PayoutStateError(
                f"Pending commission of referrer {referrer_id} is below {total}"
            )
        for profile_id, amount in _amounts_by_profile(commissions).items():
            await self.profile_repo.settle_commission(profile_id, amount)

        self.logger.info(
            "Payout created",
            extra={
                "payout_id": payout.id,
                "referrer_id": referrer_id,
                "total_amount": str(total),
                "commissions": len(commissions),
            },
        )
        return payout

    async def _get_open_payout(self, payout_id: int) -> Payout:
        payout = await self.payout_repo.get_for_update(payout_id)
        if payout is None:
            raise PayoutStateError(f"Payout {payout_id} not found")
        if payout.status not in OPEN_PAYOUT_STATUSES:
            raise PayoutStateError(
                f"Payout {payout_id} is already {payout.status}"
            )
        return payout

    @transaction
    async def mark_payout_processing(self, payout_id: int) -> Payout:
        """
        Mark a payout as handed to the payment collaborator.

        Args:
            payout_id: Payout ID

        Returns:
            Updated Payout
        """
        payout = await self._get_open_payout(payout_id)
        payout.status = PayoutStatus.PROCESSING.value
        payout.processed_at = utc_now()
        await self.session.flush()
        return payout

    @transaction
    async def mark_payout_completed(
        self, payout_id: int, transaction_id: str
    ) -> Payout:
        """
        Record a successful disbursement.

        Args:
            payout_id: Payout ID
            transaction_id: Payment provider reference

        Returns:
            Completed Payout

        Raises:
            PayoutStateError: If payout is missing or not open
        """
        payout = await self._get_open_payout(payout_id)
        now = utc_now()
        payout.status = PayoutStatus.COMPLETED.value
        payout.transaction_id = transaction_id
        payout.completed_at = now
        if payout.processed_at is None:
            payout.processed_at = now
        await self.session.flush()

        self.logger.info(
            "Payout completed",
            extra={"payout_id": payout_id, "transaction_id": transaction_id},
        )
        return payout

    @transaction
    async def mark_payout_failed(self, payout_id: int, reason: str) -> Payout:
        """
        Record a failed disbursement.

        PAID commissions are immutable: they stay linked to the failed payout
        and the referrer's balances are left as they are. Resolving the money
        is a manual admin task.

        Args:
            payout_id: Payout ID
            reason: Failure reason from the payment collaborator

        Returns:
            Failed Payout

        Raises:
            PayoutStateError: If payout is missing or not open
        """
        payout = await self._get_open_payout(payout_id)
        payout.status = PayoutStatus.FAILED.value
        payout.failure_reason = reason
        await self.session.flush()

        self.logger.warning(
            "Payout failed, commissions left PAID for manual resolution",
            extra={
                "payout_id": payout_id,
                "referrer_id": payout.referrer_id,
                "amount": str(payout.total_amount),
                "reason": reason,
            },
        )
        return payout
