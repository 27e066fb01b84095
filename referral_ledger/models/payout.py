"""
Payout model.

One payout settles a batch of APPROVED commissions for a single referrer.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from referral_ledger.models.base import Base
from referral_ledger.models.enums import PaymentMethod, PayoutStatus
from referral_ledger.models.types import MoneyType

if TYPE_CHECKING:
    from referral_ledger.models.commission import Commission


class Payout(Base):
    """Payout batch for one referrer."""

    __tablename__ = "payouts"
    __table_args__ = (
        CheckConstraint('total_amount > 0', name='check_payout_amount_positive'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    referrer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    payment_method: Mapped[str] = mapped_column(
        String(20), default=PaymentMethod.BANK_TRANSFER.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=PayoutStatus.PENDING.value,
        nullable=False,
        index=True,
    )

    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    transaction_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    commissions: Mapped[list["Commission"]] = relationship(
        "Commission",
        back_populates="payout",
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Payout(id={self.id}, referrer_id={self.referrer_id}, "
            f"total={self.total_amount}, status={self.status})>"
        )
