"""
Points service.

Points ledger: every balance change writes one PointsTransaction row in the
same transaction as the atomic balance UPDATE that produced it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.enums import PointsTransactionType, RelatedModel
from referral_ledger.models.points_transaction import PointsTransaction
from referral_ledger.repositories.points_transaction_repository import (
    PointsTransactionRepository,
)
from referral_ledger.repositories.user_repository import UserRepository
from referral_ledger.services.base_service import BaseService, transaction
from referral_ledger.utils.exceptions import (
    InsufficientPointsBalance,
    ReferralValidationError,
    UserNotFound,
)

REDEMPTION_TYPES = frozenset({
    PointsTransactionType.REDEEMED_DISCOUNT,
    PointsTransactionType.REDEEMED_SERVICE,
    PointsTransactionType.REDEEMED_CASH,
    PointsTransactionType.PENALTY,
})


@dataclass
class PointsHistoryPage:
    """One page of points history."""

    transactions: list[PointsTransaction]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        """Check if more rows follow this page."""
        return self.offset + len(self.transactions) < self.total


@dataclass
class PointsSummary:
    """Points balance with ledger breakdown."""

    user_id: int
    balance: int
    total_earned: int
    total_redeemed: int
    breakdown: dict[str, dict[str, int]] = field(default_factory=dict)
    last_transaction_at: datetime | None = None


class PointsService(BaseService):
    """Points ledger service."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize points service."""
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.points_repo = PointsTransactionRepository(session)

    async def record(
        self,
        user_id: int,
        points: int,
        transaction_type: PointsTransactionType,
        description: str,
        related_id: str | None = None,
        related_model: RelatedModel | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PointsTransaction:
        """
        Move a balance and append the matching ledger row.

        Does not commit: callers compose this into their own transaction.

        Args:
            user_id: User ID
            points: Signed points delta
            transaction_type: Ledger entry type
            description: Human readable description
            related_id: ID of the related entity
            related_model: Kind of the related entity
            metadata: Extra JSON data

        Returns:
            Created PointsTransaction

        Raises:
            ReferralValidationError: If points is zero
            UserNotFound: If user does not exist
            InsufficientPointsBalance: If a debit exceeds the balance
        """
        if points == 0:
            raise ReferralValidationError("Points delta must not be zero")

        new_balance = await self.user_repo.apply_points_delta(user_id, points)
        if new_balance is None:
            user = await self.user_repo.get_by_id(user_id, fresh=True)
            if user is None:
                raise UserNotFound(user_id)
            raise InsufficientPointsBalance(
                user_id, user.points_balance, abs(points)
            )

        entry = await self.points_repo.create(
            user_id=user_id,
            type=transaction_type.value,
            points=points,
            previous_balance=new_balance - points,
            new_balance=new_balance,
            description=description,
            related_id=related_id,
            related_model=related_model.value if related_model else None,
            extra_data=metadata,
        )

        self.logger.info(
            "Points transaction recorded",
            extra={
                "user_id": user_id,
                "type": transaction_type.value,
                "points": points,
                "new_balance": new_balance,
            },
        )
        return entry

    @transaction
    async def credit_points(
        self,
        user_id: int,
        points: int,
        transaction_type: PointsTransactionType = PointsTransactionType.BONUS,
        description: str = "Points credited",
        related_id: str | None = None,
        related_model: RelatedModel | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PointsTransaction:
        """
        Credit points to a user.

        Args:
            user_id: User ID
            points: Positive amount
            transaction_type: Earning type
            description: Human readable description
            related_id: ID of the related entity
            related_model: Kind of the related entity
            metadata: Extra JSON data

        Returns:
            Created PointsTransaction
        """
        if points <= 0:
            raise ReferralValidationError("Credited points must be positive")
        return await self.record(
            user_id,
            points,
            transaction_type,
            description,
            related_id=related_id,
            related_model=related_model,
            metadata=metadata,
        )

    @transaction
    async def redeem_points(
        self,
        user_id: int,
        points: int,
        transaction_type: PointsTransactionType = (
            PointsTransactionType.REDEEMED_DISCOUNT
        ),
        description: str = "Points redeemed",
        related_id: str | None = None,
        related_model: RelatedModel | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PointsTransaction:
        """
        Redeem points from a user's balance.

        Args:
            user_id: User ID
            points: Positive amount to take
            transaction_type: Redemption type
            description: Human readable description
            related_id: ID of the related entity
            related_model: Kind of the related entity
            metadata: Extra JSON data

        Returns:
            Created PointsTransaction with negative points

        Raises:
            InsufficientPointsBalance: If balance is lower than points
        """
        if points <= 0:
            raise ReferralValidationError("Redeemed points must be positive")
        if transaction_type not in REDEMPTION_TYPES:
            raise ReferralValidationError(
                f"{transaction_type.value} is not a redemption type"
            )
        return await self.record(
            user_id,
            -points,
            transaction_type,
            description,
            related_id=related_id,
            related_model=related_model,
            metadata=metadata,
        )

    @transaction
    async def adjust_points(
        self, user_id: int, points: int, reason: str, admin_id: int | None = None
    ) -> PointsTransaction:
        """Signed admin correction of a points balance."""
        return await self.record(
            user_id,
            points,
            PointsTransactionType.ADMIN_ADJUSTMENT,
            reason,
            related_id=str(user_id),
            related_model=RelatedModel.USER,
            metadata={"admin_id": admin_id} if admin_id else None,
        )

    async def get_history(
        self,
        user_id: int,
        limit: int = 50,
        offset: int = 0,
        transaction_type: PointsTransactionType | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> PointsHistoryPage:
        """
        Get a page of points history.

        Args:
            user_id: User ID
            limit: Page size
            offset: Rows to skip
            transaction_type: Optional type filter
            start_date: Optional lower bound
            end_date: Optional upper bound

        Returns:
            PointsHistoryPage
        """
        transactions, total = await self.points_repo.get_history(
            user_id,
            limit=limit,
            offset=offset,
            transaction_type=transaction_type.value if transaction_type else None,
            start_date=start_date,
            end_date=end_date,
        )
        return PointsHistoryPage(
            transactions=transactions, total=total, limit=limit, offset=offset
        )

    async def get_summary(self, user_id: int) -> PointsSummary:
        """
        Get balance, totals and per-type breakdown.

        Args:
            user_id: User ID

        Returns:
            PointsSummary

        Raises:
            UserNotFound: If user does not exist
        """
        user = await self.user_repo.get_by_id(user_id, fresh=True)
        if user is None:
            raise UserNotFound(user_id)

        latest = await self.points_repo.get_latest(user_id)
        return PointsSummary(
            user_id=user_id,
            balance=user.points_balance,
            total_earned=user.total_points_earned,
            total_redeemed=user.total_points_redeemed,
            breakdown=await self.points_repo.breakdown_by_type(user_id),
            last_transaction_at=latest.created_at if latest else None,
        )
