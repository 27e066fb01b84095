"""
Ledger reconciliation task.

Recomputes user and profile balance columns from the ledger logs and
reports drift. Repair is opt-in per run.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import create_local_session, run_async
from referral_ledger.config.referral_constants import DRAMATIQ_TIME_LIMIT_LONG
from referral_ledger.services.reconciliation_service import (
    ReconciliationService,
    ReconciliationSummary,
)


@dramatiq.actor(max_retries=3, time_limit=DRAMATIQ_TIME_LIMIT_LONG)
def reconcile_ledger(repair: bool = False) -> None:
    """
    Reconcile every user with ledger activity.

    Args:
        repair: Overwrite drifted columns with the recomputed values
    """
    logger.info(f"Starting ledger reconciliation (repair={repair})...")

    try:
        summary = run_async(_reconcile_ledger_async(repair))
    except Exception as e:
        logger.exception(f"Ledger reconciliation failed: {e}")
        raise

    if summary.users_with_drift:
        logger.warning(
            f"Ledger drift found for {len(summary.users_with_drift)} users",
            extra={
                "user_ids": summary.users_with_drift,
                "repaired": summary.users_repaired,
            },
        )
    logger.info(
        f"Ledger reconciliation complete: {summary.users_checked} users checked"
    )


async def _reconcile_ledger_async(repair: bool) -> ReconciliationSummary:
    """Async implementation of ledger reconciliation."""
    async with create_local_session() as session:
        return await ReconciliationService(session).reconcile_all(repair=repair)
