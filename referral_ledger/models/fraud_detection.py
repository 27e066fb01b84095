"""
FraudDetection model.

Advisory fraud records for manual review. Nothing in the ledger is blocked
by an open detection.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from referral_ledger.models.base import Base
from referral_ledger.models.enums import FraudStatus
from referral_ledger.models.types import JSONType


class FraudDetection(Base):
    """Fraud detection record."""

    __tablename__ = "fraud_detections"
    __table_args__ = (
        CheckConstraint(
            'risk_score >= 0 AND risk_score <= 100',
            name='check_fraud_risk_score_range'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True
    )
    # [{"user_id": 1, "role": "REFERRER"}, ...]
    affected_users: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    referral_code: Mapped[str | None] = mapped_column(
        String(32), nullable=True, index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    evidence: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True
    )
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=FraudStatus.DETECTED.value,
        nullable=False,
        index=True,
    )
    resolution: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True
    )

    admin_notification_required: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    admin_notified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<FraudDetection(id={self.id}, type={self.type}, "
            f"severity={self.severity}, risk={self.risk_score})>"
        )
