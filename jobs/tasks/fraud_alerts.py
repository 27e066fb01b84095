"""
Fraud alert task.

Sends HIGH and CRITICAL fraud detections to the admin alert log and stamps
them as notified.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import create_local_session, run_async
from referral_ledger.config.referral_constants import (
    DRAMATIQ_TIME_LIMIT_STANDARD,
    FRAUD_ALERT_BATCH_SIZE,
)
from referral_ledger.models.fraud_detection import FraudDetection
from referral_ledger.services.tracking.fraud_service import FraudService


def format_alert(detection: FraudDetection) -> str:
    """Render a detection as an admin alert line."""
    return (
        f"[{detection.severity}] {detection.type} "
        f"(risk {detection.risk_score}, code {detection.referral_code or '-'}): "
        f"{detection.description}"
    )


@dramatiq.actor(max_retries=3, time_limit=DRAMATIQ_TIME_LIMIT_STANDARD)
def dispatch_fraud_alerts() -> None:
    """Dispatch pending fraud alerts."""
    try:
        sent = run_async(_dispatch_fraud_alerts_async())
    except Exception as e:
        logger.exception(f"Fraud alert dispatch failed: {e}")
        raise

    if sent:
        logger.info(f"Fraud alerts dispatched: {sent}")


async def _dispatch_fraud_alerts_async() -> int:
    """Async implementation of fraud alert dispatch."""
    async with create_local_session() as session:
        return await send_pending_alerts(FraudService(session))


async def send_pending_alerts(
    fraud_service: FraudService, limit: int = FRAUD_ALERT_BATCH_SIZE
) -> int:
    """
    Log pending detections as admin alerts and mark them notified.

    Args:
        fraud_service: Fraud service bound to a session
        limit: Max detections per run

    Returns:
        Number of detections marked notified
    """
    detections = await fraud_service.get_pending_notifications(limit=limit)
    if not detections:
        return 0

    for detection in detections:
        # No format kwargs: descriptions may contain braces
        logger.bind(
            alert="fraud",
            detection_id=detection.id,
            affected_users=detection.affected_users,
        ).error(format_alert(detection))

    return await fraud_service.mark_notified([d.id for d in detections])
