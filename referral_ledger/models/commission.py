"""
Commission model.

Money reward owed to a property agent for a referred user's qualifying event.
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
from referral_ledger.models.enums import CommissionStatus, PaymentMethod
from referral_ledger.models.types import MoneyType

if TYPE_CHECKING:
    from referral_ledger.models.payout import Payout
    from referral_ledger.models.referral_profile import ReferralProfile


class Commission(Base):
    """
    Commission entity.

    Attributes:
        referral_profile_id: Profile of the rewarded referrer
        referrer_id: Rewarded referrer
        referred_user_id: User whose event triggered the reward
        order_id: Triggering event id
        event_kind: order or subscription
        order_amount: Event amount (audit only, rewards are flat)
        commission_rate: Always 0 for fixed rewards
        commission_amount: Flat reward amount
        tier: Chain tier of the referrer
        status: PENDING -> APPROVED -> PAID, or CANCELLED
        payout_id: Payout that settled this commission
    """

    __tablename__ = "commissions"
    __table_args__ = (
        CheckConstraint(
            'commission_amount >= 0', name='check_commission_amount_non_negative'
        ),
        CheckConstraint('tier >= 1 AND tier <= 2', name='check_commission_tier_range'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    referral_profile_id: Mapped[int | None] = mapped_column(
        ForeignKey("referral_profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    referrer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    referred_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    event_kind: Mapped[str] = mapped_column(String(20), nullable=False)

    order_amount: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    commission_rate: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    commission_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    tier: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=CommissionStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    payment_method: Mapped[str] = mapped_column(
        String(20), default=PaymentMethod.BANK_TRANSFER.value, nullable=False
    )

    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    payout_id: Mapped[int | None] = mapped_column(
        ForeignKey("payouts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    profile: Mapped["ReferralProfile | None"] = relationship("ReferralProfile")
    payout: Mapped["Payout | None"] = relationship(
        "Payout", back_populates="commissions"
    )

    @property
    def is_paid(self) -> bool:
        """Paid commissions are immutable."""
        return self.status == CommissionStatus.PAID.value

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Commission(id={self.id}, referrer_id={self.referrer_id}, "
            f"amount={self.commission_amount}, status={self.status})>"
        )
