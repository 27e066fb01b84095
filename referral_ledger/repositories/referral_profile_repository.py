"""
Referral profile repository.

Data access layer for ReferralProfile and ReferredUser models.
"""

from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.referral_profile import ReferralProfile, ReferredUser
from referral_ledger.repositories.base import BaseRepository


class ReferralProfileRepository(BaseRepository[ReferralProfile]):
    """Referral profile repository with counter updates."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral profile repository."""
        super().__init__(ReferralProfile, session)

    async def get_by_referrer(self, referrer_id: int) -> ReferralProfile | None:
        """
        Get profile owned by a referrer.

        Counters are moved by UPDATE statements, so the row is always
        reloaded.

        Args:
            referrer_id: Referrer user ID

        Returns:
            ReferralProfile or None
        """
        stmt = (
            select(ReferralProfile)
            .where(ReferralProfile.referrer_id == referrer_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_code(
        self, code: str, active_only: bool = True
    ) -> ReferralProfile | None:
        """
        Get profile by referral code, case-insensitive.

        Args:
            code: Referral code
            active_only: Ignore deactivated profiles

        Returns:
            ReferralProfile or None
        """
        stmt = select(ReferralProfile).where(
            ReferralProfile.referral_code == code.strip().upper()
        )
        if active_only:
            stmt = stmt.where(ReferralProfile.is_active == True)  # noqa: E712
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def code_exists(self, code: str) -> bool:
        """Check if any profile already owns the code."""
        return await self.exists(referral_code=code)

    async def increment_referrals(self, profile_id: int) -> None:
        """Count one more signup on the profile."""
        stmt = (
            update(ReferralProfile)
            .where(ReferralProfile.id == profile_id)
            .values(total_referrals=ReferralProfile.total_referrals + 1)
        )
        await self.session.execute(stmt)

    async def increment_active_referrals(self, profile_id: int) -> None:
        """Count one more referral that completed a qualifying event."""
        stmt = (
            update(ReferralProfile)
            .where(ReferralProfile.id == profile_id)
            .values(active_referrals=ReferralProfile.active_referrals + 1)
        )
        await self.session.execute(stmt)

    async def add_commission(self, profile_id: int, amount: Decimal) -> None:
        """Credit a new pending commission to the profile aggregates."""
        stmt = (
            update(ReferralProfile)
            .where(ReferralProfile.id == profile_id)
            .values(
                pending_commission=ReferralProfile.pending_commission + amount,
                total_commission_earned=(
                    ReferralProfile.total_commission_earned + amount
                ),
            )
        )
        await self.session.execute(stmt)

    async def settle_commission(self, profile_id: int, amount: Decimal) -> None:
        """Move amount from pending to paid on the profile."""
        stmt = (
            update(ReferralProfile)
            .where(ReferralProfile.id == profile_id)
            .values(
                pending_commission=ReferralProfile.pending_commission - amount,
                total_commission_paid=(
                    ReferralProfile.total_commission_paid + amount
                ),
            )
        )
        await self.session.execute(stmt)

    async def release_commission(self, profile_id: int, amount: Decimal) -> bool:
        """
        Remove a cancelled commission from the profile aggregates.

        Returns:
            False if the profile's pending commission does not cover amount
        """
        stmt = (
            update(ReferralProfile)
            .where(
                ReferralProfile.id == profile_id,
                ReferralProfile.pending_commission >= amount,
            )
            .values(
                pending_commission=ReferralProfile.pending_commission - amount,
                total_commission_earned=(
                    ReferralProfile.total_commission_earned - amount
                ),
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def get_referred_user(
        self, profile_id: int, user_id: int
    ) -> ReferredUser | None:
        """
        Get the referred-user row of a user on a profile.

        Args:
            profile_id: Profile ID
            user_id: Referred user ID

        Returns:
            ReferredUser or None
        """
        stmt = select(ReferredUser).where(
            ReferredUser.profile_id == profile_id,
            ReferredUser.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_referred_user(
        self, profile_id: int, user_id: int, tier: int
    ) -> ReferredUser:
        """
        Record a user on a profile.

        Args:
            profile_id: Profile ID
            user_id: Referred user ID
            tier: Chain tier of the profile owner

        Returns:
            Created ReferredUser
        """
        referred = ReferredUser(profile_id=profile_id, user_id=user_id, tier=tier)
        self.session.add(referred)
        await self.session.flush()
        return referred

    async def tier_breakdown(self) -> dict[int, int]:
        """Count profiles per legacy tier."""
        stmt = select(
            ReferralProfile.referral_tier, func.count(ReferralProfile.id)
        ).group_by(ReferralProfile.referral_tier)
        result = await self.session.execute(stmt)
        return {row[0]: row[1] for row in result.all()}

    async def totals(self) -> dict[str, Decimal | int]:
        """Program-wide referral and commission totals."""
        stmt = select(
            func.count(ReferralProfile.id),
            func.coalesce(func.sum(ReferralProfile.total_referrals), 0),
            func.coalesce(func.sum(ReferralProfile.active_referrals), 0),
            func.coalesce(func.sum(ReferralProfile.total_commission_earned), 0),
            func.coalesce(func.sum(ReferralProfile.pending_commission), 0),
            func.coalesce(func.sum(ReferralProfile.total_commission_paid), 0),
        )
        row = (await self.session.execute(stmt)).one()
        return {
            "total_referrers": row[0],
            "total_referrals": int(row[1]),
            "active_referrals": int(row[2]),
            "total_commission_earned": Decimal(str(row[3])),
            "pending_commission": Decimal(str(row[4])),
            "total_commission_paid": Decimal(str(row[5])),
        }
