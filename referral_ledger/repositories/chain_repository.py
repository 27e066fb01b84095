"""
Referral chain repository.

Data access layer for ReferralChainEdge model.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.referral_chain import ReferralChainEdge
from referral_ledger.repositories.base import BaseRepository


class ChainRepository(BaseRepository[ReferralChainEdge]):
    """Referral chain repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize chain repository."""
        super().__init__(ReferralChainEdge, session)

    async def get_chain(self, user_id: int) -> list[ReferralChainEdge]:
        """
        Get a user's chain edges.

        Args:
            user_id: Referred user ID

        Returns:
            Edges ordered by ascending tier
        """
        stmt = (
            select(ReferralChainEdge)
            .where(ReferralChainEdge.user_id == user_id)
            .order_by(ReferralChainEdge.tier)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_edge(
        self, user_id: int, tier: int
    ) -> ReferralChainEdge | None:
        """Get the edge of a user at a tier."""
        return await self.get_by(user_id=user_id, tier=tier)

    async def count_referrals(
        self, referrer_id: int, tier: int | None = None
    ) -> int:
        """
        Count users for which a referrer sits in the chain.

        Args:
            referrer_id: Referrer user ID
            tier: Optional tier filter

        Returns:
            Number of edges
        """
        stmt = select(func.count(ReferralChainEdge.id)).where(
            ReferralChainEdge.referrer_id == referrer_id
        )
        if tier is not None:
            stmt = stmt.where(ReferralChainEdge.tier == tier)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
