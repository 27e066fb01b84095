"""
Health check server for the job scheduler.

Exposes /health (scheduled jobs), /readiness (scheduler and database) and
/liveness for the container orchestrator.
"""

import asyncio
from typing import Any

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from referral_ledger.config.database import async_engine
from referral_ledger.config.settings import settings

# Global scheduler reference for health checks
_scheduler: AsyncIOScheduler | None = None


def set_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    """
    Register the scheduler to report on.

    Args:
        scheduler: Scheduler instance, or None to unregister
    """
    global _scheduler
    _scheduler = scheduler
    if scheduler is not None:
        logger.info("Scheduler registered for health checks")


def _job_info(scheduler: AsyncIOScheduler) -> list[dict[str, Any]]:
    jobs = []
    for job in scheduler.get_jobs():
        # Jobs added before start have no next_run_time yet
        next_run = getattr(job, "next_run_time", None)
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": next_run.isoformat() if next_run else None,
            }
        )
    return jobs


async def _database_ok() -> bool:
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")
        return False
    return True


async def health_handler(request: web.Request) -> web.Response:
    """Scheduler status and the next run of every job."""
    if _scheduler is None:
        return web.json_response(
            {"status": "unhealthy", "error": "Scheduler not initialized"},
            status=503,
        )

    jobs = _job_info(_scheduler)
    return web.json_response(
        {
            "status": "healthy" if _scheduler.running else "stopped",
            "scheduler_running": _scheduler.running,
            "jobs_count": len(jobs),
            "jobs": jobs,
        }
    )


async def readiness_handler(request: web.Request) -> web.Response:
    """Ready when the scheduler runs and the ledger database answers."""
    scheduler_ready = _scheduler is not None and _scheduler.running
    database_ready = await _database_ok() if scheduler_ready else False
    ready = scheduler_ready and database_ready

    return web.json_response(
        {
            "status": "ready" if ready else "not_ready",
            "ready": ready,
            "scheduler": scheduler_ready,
            "database": database_ready,
        },
        status=200 if ready else 503,
    )


async def liveness_handler(request: web.Request) -> web.Response:
    """Process is alive."""
    return web.json_response({"status": "alive", "alive": True})


def create_health_app() -> web.Application:
    """Build the health check application."""
    app = web.Application()
    app.router.add_get("/health", health_handler)
    app.router.add_get("/readiness", readiness_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(
    host: str | None = None,
    port: int | None = None,
) -> tuple[web.AppRunner, web.TCPSite]:
    """
    Start the health check server.

    Args:
        host: Host to bind to (defaults to settings)
        port: Port to bind to (defaults to settings)

    Returns:
        Tuple of (AppRunner, TCPSite) for cleanup
    """
    host = host or settings.health_host
    port = port or settings.health_port

    runner = web.AppRunner(create_health_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Health check server started on {host}:{port}")
    return runner, site


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """
    Stop the health check server.

    Args:
        runner: AppRunner to clean up
        timeout: Seconds to wait for cleanup
    """
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("Health check server stopped")
    except TimeoutError:
        logger.warning(f"Health check server cleanup timed out after {timeout}s")
