"""
User model.

Reward-relevant view of a marketplace user. Identity, authentication and
profile data live with the registration collaborator.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from referral_ledger.models.base import Base
from referral_ledger.models.enums import (
    QualifyingEventKind,
    QualifyingEventState,
    ReferrerClass,
    RewardKind,
)
from referral_ledger.models.types import MoneyType

if TYPE_CHECKING:
    from referral_ledger.models.referral_chain import ReferralChainEdge
    from referral_ledger.models.referral_profile import ReferralProfile


class User(Base):
    """User model - balances, first-event flags and referral links."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            'points_balance >= 0', name='check_user_points_non_negative'
        ),
        CheckConstraint(
            'pending_commission >= 0',
            name='check_user_pending_commission_non_negative'
        ),
        CheckConstraint(
            'total_commission_paid >= 0',
            name='check_user_commission_paid_non_negative'
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity (owned by registration, mirrored here for code generation)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    first_name: Mapped[str] = mapped_column(
        String(100), nullable=False, default=""
    )
    last_name: Mapped[str] = mapped_column(
        String(100), nullable=False, default=""
    )

    # Referral class and code
    referral_user_type: Mapped[str] = mapped_column(
        String(20),
        default=ReferrerClass.CUSTOMER.value,
        nullable=False,
        index=True,
    )
    referral_code: Mapped[str | None] = mapped_column(
        String(32), nullable=True, unique=True, index=True
    )
    referred_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Points balances
    points_balance: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    total_points_earned: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    total_points_redeemed: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    # Commission balances
    pending_commission: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_commission_earned: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_commission_paid: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # First qualifying events: flag is the idempotency guard
    has_completed_first_order: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    first_order_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    first_order_event_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    has_completed_first_subscription: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    first_subscription_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    first_subscription_event_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    # Relationships
    referred_by: Mapped[Optional["User"]] = relationship(
        "User",
        remote_side=[id],
        foreign_keys=[referred_by_id],
    )
    chain_edges: Mapped[list["ReferralChainEdge"]] = relationship(
        "ReferralChainEdge",
        back_populates="user",
        foreign_keys="ReferralChainEdge.user_id",
        order_by="ReferralChainEdge.tier",
        cascade="all, delete-orphan",
    )
    referral_profile: Mapped["ReferralProfile | None"] = relationship(
        "ReferralProfile",
        back_populates="referrer",
        uselist=False,
    )

    @property
    def referrer_class(self) -> ReferrerClass:
        """Explicit referrer class used for reward lookup."""
        return ReferrerClass(self.referral_user_type)

    @property
    def reward_type(self) -> RewardKind:
        """Agents are paid in money, customers in points."""
        if self.referrer_class is ReferrerClass.PROPERTY_AGENT:
            return RewardKind.MONEY
        return RewardKind.POINTS

    def has_completed_first(self, kind: QualifyingEventKind) -> bool:
        """Check the first-event flag for a qualifying event kind."""
        if kind is QualifyingEventKind.ORDER:
            return self.has_completed_first_order
        return self.has_completed_first_subscription

    def first_event_state(
        self, kind: QualifyingEventKind
    ) -> QualifyingEventState:
        """
        Get the reward state for a qualifying event kind.

        Flag and rewards are written in one transaction, so a set flag
        always means the rewards were applied.
        """
        if self.has_completed_first(kind):
            return QualifyingEventState.REWARDED
        return QualifyingEventState.UNPROCESSED

    @property
    def display_name(self) -> str:
        """Full name, falling back to email."""
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, email={self.email}, "
            f"type={self.referral_user_type})>"
        )
