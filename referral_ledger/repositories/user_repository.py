"""
User repository.

Data access layer for User model. Balance columns are only ever changed by
atomic UPDATE statements, never by read-modify-write.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.commission import Commission
from referral_ledger.models.enums import QualifyingEventKind
from referral_ledger.models.points_transaction import PointsTransaction
from referral_ledger.models.user import User
from referral_ledger.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User repository with balance and first-event operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> User | None:
        """
        Get user by email.

        Args:
            email: Email address

        Returns:
            User or None
        """
        return await self.get_by(email=email)

    async def get_by_referral_code(self, code: str) -> User | None:
        """
        Get user by the referral code mirrored on the user row.

        Args:
            code: Referral code, any case

        Returns:
            User or None
        """
        stmt = select(User).where(User.referral_code == code.strip().upper())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def referral_code_taken(self, code: str) -> bool:
        """Check if a code is already mirrored on any user."""
        return await self.exists(referral_code=code)

    async def claim_first_event(
        self,
        user_id: int,
        kind: QualifyingEventKind,
        event_id: str,
        completed_at: datetime,
    ) -> bool:
        """
        Set the first-event flag if it is still unset.

        The conditional UPDATE row-locks the user, so of two concurrent
        deliveries exactly one sees rowcount 1.

        Args:
            user_id: User ID
            kind: Qualifying event kind
            event_id: Triggering event ID
            completed_at: Event time

        Returns:
            True if this call claimed the event
        """
        if kind is QualifyingEventKind.ORDER:
            stmt = (
                update(User)
                .where(
                    User.id == user_id,
                    User.has_completed_first_order == False,  # noqa: E712
                )
                .values(
                    has_completed_first_order=True,
                    first_order_completed_at=completed_at,
                    first_order_event_id=event_id,
                )
            )
        else:
            stmt = (
                update(User)
                .where(
                    User.id == user_id,
                    User.has_completed_first_subscription == False,  # noqa: E712
                )
                .values(
                    has_completed_first_subscription=True,
                    first_subscription_completed_at=completed_at,
                    first_subscription_event_id=event_id,
                )
            )

        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def apply_points_delta(self, user_id: int, points: int) -> int | None:
        """
        Atomically move a points balance.

        The WHERE clause refuses any change that would go below zero.

        Args:
            user_id: User ID
            points: Signed points delta

        Returns:
            New balance, or None if user is missing or balance is too low
        """
        values = {"points_balance": User.points_balance + points}
        if points > 0:
            values["total_points_earned"] = User.total_points_earned + points
        elif points < 0:
            values["total_points_redeemed"] = (
                User.total_points_redeemed + abs(points)
            )

        stmt = (
            update(User)
            .where(User.id == user_id, User.points_balance + points >= 0)
            .values(**values)
            .returning(User.points_balance)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_commission(self, user_id: int, amount: Decimal) -> bool:
        """
        Credit a new pending commission to the user's balances.

        Args:
            user_id: Referrer ID
            amount: Commission amount

        Returns:
            True if user row was updated
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                pending_commission=User.pending_commission + amount,
                total_commission_earned=User.total_commission_earned + amount,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def settle_commission(self, user_id: int, amount: Decimal) -> bool:
        """Move amount from pending to paid."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.pending_commission >= amount)
            .values(
                pending_commission=User.pending_commission - amount,
                total_commission_paid=User.total_commission_paid + amount,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def release_commission(self, user_id: int, amount: Decimal) -> bool:
        """Remove a cancelled commission from pending and earned totals."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.pending_commission >= amount)
            .values(
                pending_commission=User.pending_commission - amount,
                total_commission_earned=User.total_commission_earned - amount,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def get_direct_referrals(self, referrer_id: int) -> list[User]:
        """
        Get users directly referred by a user.

        Args:
            referrer_id: Referrer ID

        Returns:
            Referred users ordered by signup
        """
        stmt = (
            select(User)
            .where(User.referred_by_id == referrer_id)
            .order_by(User.created_at, User.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_ids_with_ledger_activity(self) -> list[int]:
        """IDs of users with any points or commission activity."""
        stmt = (
            select(User.id)
            .where(
                or_(
                    User.total_points_earned > 0,
                    User.total_points_redeemed > 0,
                    User.total_commission_earned > 0,
                    User.points_balance != 0,
                    User.pending_commission != 0,
                    User.total_commission_paid != 0,
                    User.id.in_(select(PointsTransaction.user_id)),
                    User.id.in_(select(Commission.referrer_id)),
                )
            )
            .order_by(User.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_type(self) -> dict[str, int]:
        """Count users per referral user type."""
        stmt = select(
            User.referral_user_type, func.count(User.id)
        ).group_by(User.referral_user_type)
        result = await self.session.execute(stmt)
        return {row[0]: row[1] for row in result.all()}
