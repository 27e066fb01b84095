"""
Referral analytics repository.

Data access layer for ReferralAnalytics model.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.referral_analytics import ReferralAnalytics
from referral_ledger.repositories.base import BaseRepository


class ReferralAnalyticsRepository(BaseRepository[ReferralAnalytics]):
    """Referral analytics repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral analytics repository."""
        super().__init__(ReferralAnalytics, session)

    async def get_or_create_day(
        self, referrer_id: int, period_date: date
    ) -> ReferralAnalytics:
        """
        Get a referrer's row for a day, creating it if missing.

        Args:
            referrer_id: Referrer user ID
            period_date: Day

        Returns:
            Locked ReferralAnalytics row
        """
        stmt = (
            select(ReferralAnalytics)
            .where(
                ReferralAnalytics.referrer_id == referrer_id,
                ReferralAnalytics.period_date == period_date,
            )
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return row

        row = ReferralAnalytics(referrer_id=referrer_id, period_date=period_date)
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_range(
        self, referrer_id: int, start: date, end: date
    ) -> list[ReferralAnalytics]:
        """
        Get a referrer's daily rows within a date range.

        Args:
            referrer_id: Referrer user ID
            start: First day (inclusive)
            end: Last day (inclusive)

        Returns:
            Rows ordered by day
        """
        stmt = (
            select(ReferralAnalytics)
            .where(
                ReferralAnalytics.referrer_id == referrer_id,
                ReferralAnalytics.period_date >= start,
                ReferralAnalytics.period_date <= end,
            )
            .order_by(ReferralAnalytics.period_date)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
