"""
ReferralProfile and ReferredUser models.

A profile owns a referrer's unique code and the aggregates shown on the
referral dashboard.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from referral_ledger.config.referral_constants import LEGACY_COMMISSION_TIERS
from referral_ledger.models.base import Base
from referral_ledger.models.enums import ReferredUserStatus
from referral_ledger.models.types import MoneyType

if TYPE_CHECKING:
    from referral_ledger.models.user import User


class ReferralProfile(Base):
    """
    ReferralProfile entity.

    Attributes:
        referral_code: Globally unique, upper-case code
        referrer_id: Owner (one profile per referrer)
        total_referrals: Direct referrals that signed up with the code
        active_referrals: Direct referrals that completed a qualifying event
        referral_tier: Legacy Bronze/Silver/Gold tier from active referrals
        total_commission_earned: Money rewards ever credited
        pending_commission: Money rewards not yet paid out
        total_commission_paid: Money rewards included in payouts
    """

    __tablename__ = "referral_profiles"
    __table_args__ = (
        CheckConstraint(
            'referral_tier >= 1 AND referral_tier <= 3',
            name='check_profile_tier_range'
        ),
        CheckConstraint(
            'pending_commission >= 0',
            name='check_profile_pending_non_negative'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    referral_code: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )
    referrer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    total_referrals: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    active_referrals: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    referral_tier: Mapped[int] = mapped_column(
        Integer, default=1, nullable=False
    )

    total_commission_earned: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    pending_commission: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_commission_paid: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    referrer: Mapped["User"] = relationship(
        "User",
        back_populates="referral_profile",
    )
    referred_users: Mapped[list["ReferredUser"]] = relationship(
        "ReferredUser",
        back_populates="profile",
        cascade="all, delete-orphan",
        order_by="ReferredUser.joined_at",
    )

    def calculate_tier(self) -> int:
        """Legacy tier for the current number of active referrals."""
        tier = 1
        for level, config in LEGACY_COMMISSION_TIERS.items():
            if self.active_referrals >= config["min_referrals"]:
                tier = level
        return tier

    @property
    def tier_name(self) -> str:
        """Display name of the legacy tier."""
        return LEGACY_COMMISSION_TIERS[self.referral_tier]["name"]

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralProfile(id={self.id}, code={self.referral_code}, "
            f"referrer_id={self.referrer_id})>"
        )


class ReferredUser(Base):
    """A user who joined through a profile's code (directly or at tier 2)."""

    __tablename__ = "referred_users"
    __table_args__ = (
        UniqueConstraint('profile_id', 'user_id', name='uq_referred_user_profile'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    profile_id: Mapped[int] = mapped_column(
        ForeignKey("referral_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tier: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    first_purchase_amount: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_spent: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=ReferredUserStatus.PENDING.value, nullable=False
    )

    profile: Mapped["ReferralProfile"] = relationship(
        "ReferralProfile",
        back_populates="referred_users",
    )
