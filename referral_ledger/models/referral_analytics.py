"""
ReferralAnalytics model.

Daily funnel counters per referrer.
"""

from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from referral_ledger.models.base import Base
from referral_ledger.models.types import MoneyType


class ReferralAnalytics(Base):
    """Daily referral analytics row."""

    __tablename__ = "referral_analytics"
    __table_args__ = (
        UniqueConstraint(
            'referrer_id', 'period_date', name='uq_analytics_referrer_day'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    referrer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    total_clicks: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    signups: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    conversions: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    revenue: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    conversion_rate: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    avg_order_value: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    def recalculate_rates(self) -> None:
        """Refresh conversion rate and average order value."""
        if self.total_clicks > 0:
            self.conversion_rate = (
                Decimal(self.conversions) / Decimal(self.total_clicks) * 100
            ).quantize(Decimal("0.01"))
        else:
            self.conversion_rate = Decimal("0")
        if self.conversions > 0:
            self.avg_order_value = (
                Decimal(self.revenue) / Decimal(self.conversions)
            ).quantize(Decimal("0.01"))
        else:
            self.avg_order_value = Decimal("0")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralAnalytics(referrer_id={self.referrer_id}, "
            f"date={self.period_date}, clicks={self.total_clicks})>"
        )
