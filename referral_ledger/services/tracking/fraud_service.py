"""
Fraud record service.

Persists fraud detections and tracks which of them still need an admin
notification.
"""

from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.config.referral_constants import SELF_REFERRAL_RISK_SCORE
from referral_ledger.models.enums import FraudSeverity, FraudStatus, FraudType
from referral_ledger.models.fraud_detection import FraudDetection
from referral_ledger.models.referral_link import ReferralClick
from referral_ledger.repositories.fraud_detection_repository import (
    FraudDetectionRepository,
)
from referral_ledger.services.base_service import BaseService, transaction
from referral_ledger.services.tracking.fraud_scorer import FraudAssessment
from referral_ledger.utils.datetime_utils import utc_now
from referral_ledger.utils.exceptions import ReferralValidationError

NOTIFY_SEVERITIES = frozenset({FraudSeverity.HIGH, FraudSeverity.CRITICAL})


class FraudService(BaseService):
    """Fraud detection records and admin alert bookkeeping."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize fraud service."""
        super().__init__(session)
        self.fraud_repo = FraudDetectionRepository(session)

    async def flag_fraud(
        self,
        fraud_type: FraudType,
        severity: FraudSeverity,
        description: str,
        risk_score: int,
        affected_users: list[dict[str, Any]] | None = None,
        referral_code: str | None = None,
        evidence: dict[str, Any] | None = None,
    ) -> FraudDetection:
        """
        Add a fraud detection to the current transaction.

        HIGH and CRITICAL detections are queued for admin notification.

        Args:
            fraud_type: Detection category
            severity: Severity level
            description: Human readable description
            risk_score: Risk score 0-100
            affected_users: [{"user_id": ..., "role": ...}]
            referral_code: Code involved, if any
            evidence: Supporting data

        Returns:
            Flushed FraudDetection
        """
        detection = await self.fraud_repo.create(
            type=fraud_type.value,
            severity=severity.value,
            description=description,
            risk_score=risk_score,
            affected_users=affected_users or [],
            referral_code=referral_code,
            evidence=evidence,
            status=FraudStatus.DETECTED.value,
            admin_notification_required=severity in NOTIFY_SEVERITIES,
        )

        self.logger.warning(
            "Fraud detected",
            extra={
                "detection_id": detection.id,
                "type": fraud_type.value,
                "severity": severity.value,
                "risk_score": risk_score,
                "referral_code": referral_code,
            },
        )
        return detection

    @transaction
    async def flag_self_referral(self, user_id: int, code: str) -> FraudDetection:
        """
        Record a self-referral attempt.

        Args:
            user_id: User who used their own code
            code: The code used

        Returns:
            Committed FraudDetection
        """
        return await self.flag_fraud(
            FraudType.SELF_REFERRAL,
            FraudSeverity.HIGH,
            f"User {user_id} attempted to use own referral code",
            SELF_REFERRAL_RISK_SCORE,
            affected_users=[{"user_id": user_id, "role": "BOTH"}],
            referral_code=code,
            evidence={"user_id": user_id, "referral_code": code},
        )

    async def flag_suspicious_click(
        self, click: ReferralClick, assessment: FraudAssessment
    ) -> FraudDetection | None:
        """
        Record a high-risk click, best-effort.

        Runs after the click is committed; a storage failure is logged and
        leaves the click untouched.

        Args:
            click: Stored click
            assessment: Its fraud assessment

        Returns:
            FraudDetection, or None if below threshold or not stored
        """
        if not assessment.requires_record():
            return None

        try:
            detection = await self.flag_fraud(
                FraudType.SUSPICIOUS_CLICK_PATTERN,
                assessment.severity(),
                "High risk click pattern detected. "
                f"Risk Score: {assessment.risk_score}",
                assessment.risk_score,
                affected_users=[{"user_id": click.referrer_id, "role": "REFERRER"}],
                referral_code=click.referral_code,
                evidence={
                    "session_id": click.session_id,
                    "ip_address": click.ip_address,
                    "flags": [flag.to_dict() for flag in assessment.flags],
                },
            )
            await self.commit()
        except SQLAlchemyError as e:
            await self.rollback()
            self.logger.warning(
                "Could not store click fraud record",
                extra={
                    "session_id": click.session_id,
                    "risk_score": assessment.risk_score,
                    "error": str(e),
                },
            )
            return None

        return detection

    async def get_pending_notifications(
        self, limit: int = 100
    ) -> list[FraudDetection]:
        """Detections still waiting for an admin alert."""
        return await self.fraud_repo.get_pending_notifications(limit=limit)

    @transaction
    async def mark_notified(self, detection_ids: list[int]) -> int:
        """
        Stamp detections as notified.

        Args:
            detection_ids: Detection IDs

        Returns:
            Number of detections updated
        """
        return await self.fraud_repo.mark_notified(detection_ids, utc_now())

    @transaction
    async def resolve_detection(
        self,
        detection_id: int,
        status: FraudStatus,
        notes: str,
        admin_id: int | None = None,
    ) -> FraudDetection:
        """
        Move a detection through manual review.

        Args:
            detection_id: Detection ID
            status: INVESTIGATING, RESOLVED or FALSE_POSITIVE
            notes: Reviewer notes
            admin_id: Reviewing admin

        Returns:
            Updated FraudDetection
        """
        if status is FraudStatus.DETECTED:
            raise ReferralValidationError("Detections cannot return to DETECTED")

        detection = await self.fraud_repo.get_by_id(detection_id)
        if detection is None:
            raise ReferralValidationError(
                f"Fraud detection {detection_id} not found"
            )

        detection.status = status.value
        detection.resolution = {
            "notes": notes,
            "admin_id": admin_id,
            "resolved_at": utc_now().isoformat(),
        }
        await self.session.flush()
        return detection
