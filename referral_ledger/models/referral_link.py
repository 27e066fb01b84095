"""
ReferralLink and ReferralClick models.

Links carry campaign parameters for a referral code; clicks record every
visit through a link or a bare code.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from referral_ledger.models.base import Base
from referral_ledger.models.enums import ClickSource
from referral_ledger.models.types import JSONType


class ReferralLink(Base):
    """Trackable referral link with campaign parameters."""

    __tablename__ = "referral_links"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    referrer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    referral_code: Mapped[str] = mapped_column(
        String(32), nullable=False, index=True
    )
    link_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False
    )
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    short_code: Mapped[str] = mapped_column(
        String(16), unique=True, nullable=False, index=True
    )

    campaign_name: Mapped[str] = mapped_column(String(100), nullable=False)
    campaign_medium: Mapped[str] = mapped_column(String(100), nullable=False)
    campaign_source: Mapped[str] = mapped_column(String(100), nullable=False)
    campaign_content: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    campaign_term: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    custom_parameters: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    total_clicks: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    conversions: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    last_clicked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if link has expired."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.expires_at
        # SQLite drops tzinfo on read
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return expires_at <= now

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralLink(id={self.id}, short_code={self.short_code}, "
            f"code={self.referral_code})>"
        )


class ReferralClick(Base):
    """Single visit through a referral link or code."""

    __tablename__ = "referral_clicks"
    __table_args__ = (
        CheckConstraint(
            'risk_score >= 0 AND risk_score <= 100',
            name='check_click_risk_score_range'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    referral_code: Mapped[str] = mapped_column(
        String(32), nullable=False, index=True
    )
    referrer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    link_id: Mapped[int | None] = mapped_column(
        ForeignKey("referral_links.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    session_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )

    ip_address: Mapped[str | None] = mapped_column(
        String(45), nullable=True, index=True
    )
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    referer: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(
        String(20), default=ClickSource.DIRECT.value, nullable=False
    )
    device: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True
    )
    location: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True
    )

    clicked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    converted: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    converted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    converted_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    conversion_type: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )

    fraud_flags: Mapped[list[str]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    risk_score: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralClick(id={self.id}, code={self.referral_code}, "
            f"risk={self.risk_score}, converted={self.converted})>"
        )
