"""
Fraud detection repository.

Data access layer for FraudDetection model.
"""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.enums import FraudStatus
from referral_ledger.models.fraud_detection import FraudDetection
from referral_ledger.repositories.base import BaseRepository


class FraudDetectionRepository(BaseRepository[FraudDetection]):
    """Fraud detection repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize fraud detection repository."""
        super().__init__(FraudDetection, session)

    async def get_pending_notifications(
        self, limit: int = 100
    ) -> list[FraudDetection]:
        """
        Get detections waiting for admin notification.

        Args:
            limit: Max number of results

        Returns:
            Detections, oldest first
        """
        stmt = (
            select(FraudDetection)
            .where(
                FraudDetection.admin_notification_required == True,  # noqa: E712
                FraudDetection.admin_notified_at.is_(None),
            )
            .order_by(FraudDetection.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_notified(
        self, detection_ids: list[int], notified_at: datetime
    ) -> int:
        """Stamp detections as notified."""
        if not detection_ids:
            return 0
        stmt = (
            update(FraudDetection)
            .where(FraudDetection.id.in_(detection_ids))
            .values(admin_notified_at=notified_at)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def get_by_code(self, referral_code: str) -> list[FraudDetection]:
        """Get detections raised for a referral code."""
        return await self.find_by(referral_code=referral_code)

    async def count_open_by_severity(self) -> dict[str, int]:
        """Count unresolved detections per severity."""
        stmt = (
            select(FraudDetection.severity, func.count(FraudDetection.id))
            .where(
                FraudDetection.status.in_(
                    [FraudStatus.DETECTED.value, FraudStatus.INVESTIGATING.value]
                )
            )
            .group_by(FraudDetection.severity)
        )
        result = await self.session.execute(stmt)
        return {row[0]: row[1] for row in result.all()}
