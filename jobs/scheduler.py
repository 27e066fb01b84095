"""
Job scheduler.

Enqueues the ledger jobs on the Dramatiq broker:
- payout cycle, daily at PAYOUT_CYCLE_HOUR (UTC)
- ledger reconciliation, daily one hour after the payout cycle
- fraud alert dispatch, every few minutes
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

import jobs.broker  # noqa: F401  (sets the Dramatiq broker)
from jobs.health import set_scheduler, start_health_server, stop_health_server
from jobs.tasks.fraud_alerts import dispatch_fraud_alerts
from jobs.tasks.ledger_reconciliation import reconcile_ledger
from jobs.tasks.payout_cycle import run_payout_cycle
from referral_ledger.config.settings import settings
from referral_ledger.utils.logging_setup import setup_logging

FRAUD_ALERT_INTERVAL_MINUTES = 5


def create_scheduler(payout_hour: int | None = None) -> AsyncIOScheduler:
    """
    Create the scheduler with every ledger job registered.

    Args:
        payout_hour: UTC hour of the payout cycle (defaults to settings)

    Returns:
        Configured, not yet started AsyncIOScheduler
    """
    if payout_hour is None:
        payout_hour = settings.payout_cycle_hour

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_payout_cycle.send,
        CronTrigger(hour=payout_hour, minute=0, timezone="UTC"),
        id="payout_cycle",
        name="Payout cycle",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        reconcile_ledger.send,
        CronTrigger(hour=(payout_hour + 1) % 24, minute=0, timezone="UTC"),
        id="ledger_reconciliation",
        name="Ledger reconciliation",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        dispatch_fraud_alerts.send,
        IntervalTrigger(minutes=FRAUD_ALERT_INTERVAL_MINUTES),
        id="fraud_alerts",
        name="Fraud alert dispatch",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    return scheduler


async def main() -> None:
    """Run the scheduler until SIGINT or SIGTERM."""
    setup_logging()

    scheduler = create_scheduler()
    scheduler.start()
    set_scheduler(scheduler)
    runner, _ = await start_health_server()
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
    finally:
        logger.info("Stopping scheduler...")
        scheduler.shutdown(wait=False)
        await stop_health_server(runner)


if __name__ == "__main__":
    asyncio.run(main())
