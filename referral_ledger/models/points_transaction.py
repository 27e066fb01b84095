"""
PointsTransaction model.

Append-only points log. Every row carries the balance before and after it,
so the owning user's points_balance can always be checked against the log.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from referral_ledger.models.base import Base
from referral_ledger.models.enums import PointsTransactionStatus
from referral_ledger.models.types import JSONType


class PointsTransaction(Base):
    """Points ledger entry."""

    __tablename__ = "points_transactions"
    __table_args__ = (
        CheckConstraint(
            'new_balance = previous_balance + points',
            name='check_points_balance_arithmetic'
        ),
        CheckConstraint('new_balance >= 0', name='check_points_new_balance_non_negative'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_balance: Mapped[int] = mapped_column(Integer, nullable=False)
    new_balance: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    related_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    related_model: Mapped[str | None] = mapped_column(String(32), nullable=True)
    # "metadata" is reserved on declarative classes
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=PointsTransactionStatus.COMPLETED.value,
        nullable=False,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    @property
    def is_credit(self) -> bool:
        """Check if entry adds points."""
        return self.points > 0

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PointsTransaction(id={self.id}, user_id={self.user_id}, "
            f"type={self.type}, points={self.points}, "
            f"balance={self.previous_balance}->{self.new_balance})>"
        )
