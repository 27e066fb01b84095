"""
Referral link and click repositories.

Data access layer for ReferralLink and ReferralClick models.
"""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.referral_link import ReferralClick, ReferralLink
from referral_ledger.repositories.base import BaseRepository


class ReferralLinkRepository(BaseRepository[ReferralLink]):
    """Referral link repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral link repository."""
        super().__init__(ReferralLink, session)

    async def get_by_short_code(self, short_code: str) -> ReferralLink | None:
        """
        Get active link by short code.

        Args:
            short_code: Short code from the tracking URL

        Returns:
            ReferralLink or None
        """
        stmt = select(ReferralLink).where(
            ReferralLink.short_code == short_code,
            ReferralLink.is_active == True,  # noqa: E712
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def short_code_exists(self, short_code: str) -> bool:
        """Check if a short code is taken."""
        return await self.exists(short_code=short_code)

    async def get_by_referrer(self, referrer_id: int) -> list[ReferralLink]:
        """Get all links of a referrer."""
        return await self.find_by(referrer_id=referrer_id)

    async def register_click(self, link_id: int, clicked_at: datetime) -> None:
        """Increment click counter and stamp the last click."""
        stmt = (
            update(ReferralLink)
            .where(ReferralLink.id == link_id)
            .values(
                total_clicks=ReferralLink.total_clicks + 1,
                last_clicked_at=clicked_at,
            )
        )
        await self.session.execute(stmt)

    async def register_conversion(self, link_id: int) -> None:
        """Increment conversion counter."""
        stmt = (
            update(ReferralLink)
            .where(ReferralLink.id == link_id)
            .values(conversions=ReferralLink.conversions + 1)
        )
        await self.session.execute(stmt)


class ReferralClickRepository(BaseRepository[ReferralClick]):
    """Referral click repository with fraud-history counts."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral click repository."""
        super().__init__(ReferralClick, session)

    async def get_by_session(self, session_id: str) -> ReferralClick | None:
        """Get click by its session ID."""
        return await self.get_by(session_id=session_id)

    async def get_latest_unconverted(
        self, referral_code: str, since: datetime
    ) -> ReferralClick | None:
        """
        Get the most recent unconverted click for a code.

        Args:
            referral_code: Referral code
            since: Lower bound on click time

        Returns:
            ReferralClick or None
        """
        stmt = (
            select(ReferralClick)
            .where(
                ReferralClick.referral_code == referral_code,
                ReferralClick.converted == False,  # noqa: E712
                ReferralClick.clicked_at >= since,
            )
            .order_by(ReferralClick.clicked_at.desc(), ReferralClick.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_by_ip_since(self, ip_address: str, since: datetime) -> int:
        """Count clicks from one IP address since a point in time."""
        stmt = select(func.count(ReferralClick.id)).where(
            ReferralClick.ip_address == ip_address,
            ReferralClick.clicked_at >= since,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_by_referrer_since(
        self, referrer_id: int, since: datetime
    ) -> int:
        """Count clicks on a referrer's codes since a point in time."""
        stmt = select(func.count(ReferralClick.id)).where(
            ReferralClick.referrer_id == referrer_id,
            ReferralClick.clicked_at >= since,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def click_totals(self, referrer_id: int) -> tuple[int, int]:
        """
        Count clicks and converted clicks for a referrer.

        Args:
            referrer_id: Referrer user ID

        Returns:
            Tuple of (clicks, conversions)
        """
        stmt = select(
            func.count(ReferralClick.id),
            func.count(ReferralClick.id).filter(
                ReferralClick.converted == True  # noqa: E712
            ),
        ).where(ReferralClick.referrer_id == referrer_id)
        row = (await self.session.execute(stmt)).one()
        return row[0] or 0, row[1] or 0
