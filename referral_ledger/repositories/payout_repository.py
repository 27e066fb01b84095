"""
Payout repository.

Data access layer for Payout model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.enums import PayoutStatus
from referral_ledger.models.payout import Payout
from referral_ledger.repositories.base import BaseRepository


class PayoutRepository(BaseRepository[Payout]):
    """Payout repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payout repository."""
        super().__init__(Payout, session)

    async def get_by_referrer(
        self, referrer_id: int, status: PayoutStatus | None = None
    ) -> list[Payout]:
        """
        Get payouts of a referrer, newest first.

        Args:
            referrer_id: Referrer user ID
            status: Optional status filter

        Returns:
            List of payouts
        """
        stmt = select(Payout).where(Payout.referrer_id == referrer_id)
        if status is not None:
            stmt = stmt.where(Payout.status == status.value)
        stmt = stmt.order_by(Payout.id.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
