"""
Unit tests for the job scheduler, retry policy and health endpoints.
"""

import json

import pytest
from sqlalchemy.exc import OperationalError

from jobs import health
from jobs.broker import JOB_MAX_RETRIES, _should_retry
from jobs.scheduler import create_scheduler
from referral_ledger.utils.exceptions import (
    InvalidReferralCode,
    LedgerStorageError,
)


def _fields(trigger) -> dict[str, str]:
    return {field.name: str(field) for field in trigger.fields}


class TestCreateScheduler:
    """Test job registration."""

    def test_jobs_registered(self):
        """Payout, reconciliation and fraud alert jobs are scheduled."""
        scheduler = create_scheduler(payout_hour=2)

        assert {job.id for job in scheduler.get_jobs()} == {
            "payout_cycle",
            "ledger_reconciliation",
            "fraud_alerts",
        }

    def test_reconciliation_runs_after_payouts(self):
        """Reconciliation runs one hour after the payout cycle."""
        scheduler = create_scheduler(payout_hour=2)

        payout = _fields(scheduler.get_job("payout_cycle").trigger)
        reconciliation = _fields(
            scheduler.get_job("ledger_reconciliation").trigger
        )

        assert payout["hour"] == "2"
        assert reconciliation["hour"] == "3"

    def test_reconciliation_wraps_midnight(self):
        """A payout at 23:00 reconciles at 00:00."""
        scheduler = create_scheduler(payout_hour=23)

        trigger = scheduler.get_job("ledger_reconciliation").trigger

        assert _fields(trigger)["hour"] == "0"


class TestRetryPolicy:
    """Test which failures are retried by workers."""

    def test_storage_errors_retried(self):
        """Storage failures are retried until the budget is spent."""
        assert _should_retry(0, LedgerStorageError("write failed"))
        assert _should_retry(
            1, OperationalError("SELECT 1", {}, Exception("gone"))
        )
        assert not _should_retry(JOB_MAX_RETRIES, LedgerStorageError("x"))

    def test_validation_errors_not_retried(self):
        """Validation failures would fail again."""
        assert not _should_retry(0, InvalidReferralCode("NOPE"))
        assert not _should_retry(0, ValueError("bug"))


class TestHealthHandlers:
    """Test health endpoints without a running server."""

    @pytest.fixture(autouse=True)
    def reset_scheduler(self):
        """Unregister the scheduler around each test."""
        health.set_scheduler(None)
        yield
        health.set_scheduler(None)

    @pytest.mark.asyncio
    async def test_health_without_scheduler(self):
        """Missing scheduler is unhealthy."""
        response = await health.health_handler(None)

        assert response.status == 503
        assert json.loads(response.text)["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_health_lists_jobs(self):
        """Registered scheduler reports its jobs."""
        health.set_scheduler(create_scheduler(payout_hour=2))

        response = await health.health_handler(None)
        body = json.loads(response.text)

        assert response.status == 200
        assert body["scheduler_running"] is False
        assert body["jobs_count"] == 3

    @pytest.mark.asyncio
    async def test_readiness_requires_running_scheduler(self):
        """Readiness fails before the scheduler starts."""
        health.set_scheduler(create_scheduler(payout_hour=2))

        response = await health.readiness_handler(None)
        body = json.loads(response.text)

        assert response.status == 503
        assert body["ready"] is False
        assert body["database"] is False

    @pytest.mark.asyncio
    async def test_liveness(self):
        """Liveness always answers."""
        response = await health.liveness_handler(None)

        assert response.status == 200
        assert json.loads(response.text)["alive"] is True

    def test_app_routes(self):
        """Health app exposes the three probes."""
        app = health.create_health_app()
        paths = {route.resource.canonical for route in app.router.routes()}

        assert {"/health", "/readiness", "/liveness"} <= paths
