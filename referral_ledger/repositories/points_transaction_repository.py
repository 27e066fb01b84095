"""
Points transaction repository.

Data access layer for PointsTransaction model.
"""

from datetime import datetime

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.enums import PointsTransactionStatus
from referral_ledger.models.points_transaction import PointsTransaction
from referral_ledger.repositories.base import BaseRepository


class PointsTransactionRepository(BaseRepository[PointsTransaction]):
    """Points transaction repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize points transaction repository."""
        super().__init__(PointsTransaction, session)

    async def get_latest(self, user_id: int) -> PointsTransaction | None:
        """
        Get the most recent completed entry of a user.

        Args:
            user_id: User ID

        Returns:
            Latest PointsTransaction or None
        """
        stmt = (
            select(PointsTransaction)
            .where(
                PointsTransaction.user_id == user_id,
                PointsTransaction.status
                == PointsTransactionStatus.COMPLETED.value,
            )
            .order_by(PointsTransaction.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_history(
        self,
        user_id: int,
        limit: int = 50,
        offset: int = 0,
        transaction_type: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> tuple[list[PointsTransaction], int]:
        """
        Get a page of a user's points history, newest first.

        Args:
            user_id: User ID
            limit: Page size
            offset: Rows to skip
            transaction_type: Optional type filter
            start_date: Optional lower bound on created_at
            end_date: Optional upper bound on created_at

        Returns:
            Tuple of (transactions, total matching count)
        """
        conditions = [PointsTransaction.user_id == user_id]
        if transaction_type:
            conditions.append(PointsTransaction.type == transaction_type)
        if start_date:
            conditions.append(PointsTransaction.created_at >= start_date)
        if end_date:
            conditions.append(PointsTransaction.created_at <= end_date)

        count_stmt = select(func.count(PointsTransaction.id)).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        stmt = (
            select(PointsTransaction)
            .where(*conditions)
            .order_by(PointsTransaction.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def breakdown_by_type(self, user_id: int) -> dict[str, dict[str, int]]:
        """
        Aggregate completed entries per type.

        Args:
            user_id: User ID

        Returns:
            Mapping type -> {"count": n, "points": sum}
        """
        stmt = (
            select(
                PointsTransaction.type,
                func.count(PointsTransaction.id),
                func.coalesce(func.sum(PointsTransaction.points), 0),
            )
            .where(
                PointsTransaction.user_id == user_id,
                PointsTransaction.status
                == PointsTransactionStatus.COMPLETED.value,
            )
            .group_by(PointsTransaction.type)
        )
        result = await self.session.execute(stmt)
        return {
            row[0]: {"count": row[1], "points": int(row[2])}
            for row in result.all()
        }

    async def ledger_totals(self, user_id: int) -> tuple[int, int]:
        """
        Sum credits and debits of completed entries.

        Args:
            user_id: User ID

        Returns:
            Tuple of (points earned, points redeemed as positive number)
        """
        stmt = select(
            func.coalesce(
                func.sum(
                    case(
                        (PointsTransaction.points > 0, PointsTransaction.points),
                        else_=0,
                    )
                ),
                0,
            ),
            func.coalesce(
                func.sum(
                    case(
                        (PointsTransaction.points < 0, -PointsTransaction.points),
                        else_=0,
                    )
                ),
                0,
            ),
        ).where(
            PointsTransaction.user_id == user_id,
            PointsTransaction.status == PointsTransactionStatus.COMPLETED.value,
        )
        row = (await self.session.execute(stmt)).one()
        return int(row[0]), int(row[1])
