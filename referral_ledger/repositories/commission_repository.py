"""
Commission repository.

Data access layer for Commission model.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.commission import Commission
from referral_ledger.models.enums import CommissionStatus
from referral_ledger.repositories.base import BaseRepository


def _to_decimal(value: object) -> Decimal:
    """Normalize SUM results (SQLite returns floats)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class CommissionRepository(BaseRepository[Commission]):
    """Commission repository with payout and reporting queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission repository."""
        super().__init__(Commission, session)

    async def get_by_referrer(
        self,
        referrer_id: int,
        status: CommissionStatus | None = None,
        limit: int | None = None,
    ) -> list[Commission]:
        """
        Get commissions of a referrer, newest first.

        Args:
            referrer_id: Referrer user ID
            status: Optional status filter
            limit: Max number of results

        Returns:
            List of commissions
        """
        stmt = select(Commission).where(Commission.referrer_id == referrer_id)
        if status is not None:
            stmt = stmt.where(Commission.status == status.value)
        stmt = stmt.order_by(Commission.created_at.desc(), Commission.id.desc())
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_event(
        self, referred_user_id: int, order_id: str
    ) -> list[Commission]:
        """Get commissions created for one qualifying event."""
        return await self.find_by(
            referred_user_id=referred_user_id, order_id=order_id
        )

    async def get_approved_totals_by_referrer(self) -> list[tuple[int, Decimal]]:
        """
        Sum APPROVED, unpaid commissions per referrer.

        Returns:
            List of (referrer_id, total) ordered by referrer
        """
        stmt = (
            select(
                Commission.referrer_id,
                func.sum(Commission.commission_amount),
            )
            .where(
                Commission.status == CommissionStatus.APPROVED.value,
                Commission.payout_id.is_(None),
            )
            .group_by(Commission.referrer_id)
            .order_by(Commission.referrer_id)
        )
        result = await self.session.execute(stmt)
        return [(row[0], _to_decimal(row[1])) for row in result.all()]

    async def lock_approved_for_referrer(
        self, referrer_id: int
    ) -> list[Commission]:
        """
        Lock APPROVED, unpaid commissions of one referrer.

        Args:
            referrer_id: Referrer user ID

        Returns:
            Locked commissions
        """
        stmt = (
            select(Commission)
            .where(
                Commission.referrer_id == referrer_id,
                Commission.status == CommissionStatus.APPROVED.value,
                Commission.payout_id.is_(None),
            )
            .order_by(Commission.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_paid(
        self, commission_ids: list[int], payout_id: int, paid_at: datetime
    ) -> int:
        """
        Mark commissions as PAID and link them to a payout.

        Args:
            commission_ids: Commission IDs
            payout_id: Payout ID
            paid_at: Payment time

        Returns:
            Number of commissions updated
        """
        if not commission_ids:
            return 0
        stmt = (
            update(Commission)
            .where(
                Commission.id.in_(commission_ids),
                Commission.status == CommissionStatus.APPROVED.value,
            )
            .values(
                status=CommissionStatus.PAID.value,
                payout_id=payout_id,
                paid_at=paid_at,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def sum_by_status(self, referrer_id: int) -> dict[str, Decimal]:
        """
        Sum commission amounts per status for a referrer.

        Args:
            referrer_id: Referrer user ID

        Returns:
            Mapping status -> total; every status is present
        """
        stmt = (
            select(Commission.status, func.sum(Commission.commission_amount))
            .where(Commission.referrer_id == referrer_id)
            .group_by(Commission.status)
        )
        result = await self.session.execute(stmt)
        totals = {status.value: Decimal("0") for status in CommissionStatus}
        for status, total in result.all():
            totals[status] = _to_decimal(total)
        return totals

    async def count_by_status(self, referrer_id: int) -> dict[str, int]:
        """Count commissions per status for a referrer."""
        stmt = (
            select(Commission.status, func.count(Commission.id))
            .where(Commission.referrer_id == referrer_id)
            .group_by(Commission.status)
        )
        result = await self.session.execute(stmt)
        counts = {status.value: 0 for status in CommissionStatus}
        for status, count in result.all():
            counts[status] = count
        return counts

    async def sum_by_status_for_profile(
        self, profile_id: int
    ) -> dict[str, Decimal]:
        """Sum commission amounts per status for a referral profile."""
        stmt = (
            select(Commission.status, func.sum(Commission.commission_amount))
            .where(Commission.referral_profile_id == profile_id)
            .group_by(Commission.status)
        )
        result = await self.session.execute(stmt)
        totals = {status.value: Decimal("0") for status in CommissionStatus}
        for status, total in result.all():
            totals[status] = _to_decimal(total)
        return totals
