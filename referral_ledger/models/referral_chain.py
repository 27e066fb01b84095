"""
ReferralChainEdge model.

One row per (referred user, tier); tier 1 is the direct referrer, tier 2 the
referrer's own referrer.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from referral_ledger.models.base import Base

if TYPE_CHECKING:
    from referral_ledger.models.user import User


class ReferralChainEdge(Base):
    """Referral chain edge - user is rewarded-for, referrer is rewarded."""

    __tablename__ = "referral_chain_edges"
    __table_args__ = (
        UniqueConstraint('user_id', 'tier', name='uq_chain_edge_user_tier'),
        CheckConstraint('tier >= 1 AND tier <= 2', name='check_chain_tier_range'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Nullable: referrer accounts may be removed by other subsystems
    referrer_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    tier: Mapped[int] = mapped_column(Integer, nullable=False)
    referrer_class: Mapped[str] = mapped_column(String(20), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="chain_edges",
        foreign_keys=[user_id],
    )
    referrer: Mapped["User | None"] = relationship(
        "User",
        foreign_keys=[referrer_id],
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralChainEdge(user_id={self.user_id}, "
            f"referrer_id={self.referrer_id}, tier={self.tier})>"
        )
