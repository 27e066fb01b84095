"""
Payout cycle task.

Aggregates APPROVED commissions into payouts for every referrer at or above
the minimum payout amount. Runs once per day.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import create_local_session, run_async
from referral_ledger.config.referral_constants import DRAMATIQ_TIME_LIMIT_LONG
from referral_ledger.services.referral.payout_batcher import (
    PayoutBatcher,
    PayoutCycleResult,
)


@dramatiq.actor(max_retries=3, time_limit=DRAMATIQ_TIME_LIMIT_LONG)
def run_payout_cycle() -> None:
    """Run one payout cycle."""
    logger.info("Starting payout cycle...")

    try:
        result = run_async(_run_payout_cycle_async())
    except Exception as e:
        logger.exception(f"Payout cycle failed: {e}")
        raise

    logger.info(
        f"Payout cycle complete: {result.payouts_created} payouts, "
        f"total: {result.total_amount}, "
        f"{len(result.failed_referrers)} failed"
    )


async def _run_payout_cycle_async() -> PayoutCycleResult:
    """Async implementation of the payout cycle."""
    async with create_local_session() as session:
        return await PayoutBatcher(session).run_payout_cycle()
