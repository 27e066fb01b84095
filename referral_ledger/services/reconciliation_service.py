"""
Ledger reconciliation service.

Recomputes the denormalized balance columns of users and referral profiles
from the points transaction log and the commission table, reports drift
and optionally repairs the columns.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.enums import CommissionStatus
from referral_ledger.models.referral_profile import ReferralProfile
from referral_ledger.models.user import User
from referral_ledger.repositories.commission_repository import (
    CommissionRepository,
)
from referral_ledger.repositories.points_transaction_repository import (
    PointsTransactionRepository,
)
from referral_ledger.repositories.referral_profile_repository import (
    ReferralProfileRepository,
)
from referral_ledger.repositories.user_repository import UserRepository
from referral_ledger.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)
from referral_ledger.utils.exceptions import ReferralLedgerError, UserNotFound


@dataclass
class BalanceDrift:
    """One column whose stored value differs from the log."""

    entity: str
    column: str
    stored: int | Decimal
    expected: int | Decimal


@dataclass
class ReconciliationReport:
    """Result of reconciling one user."""

    user_id: int
    drifts: list[BalanceDrift] = field(default_factory=list)
    log_balance_mismatch: bool = False
    repaired: bool = False

    @property
    def is_consistent(self) -> bool:
        """True if no column drifted and the log chain is intact."""
        return not self.drifts and not self.log_balance_mismatch


@dataclass
class ReconciliationSummary:
    """Result of reconciling every active user."""

    users_checked: int = 0
    users_with_drift: list[int] = field(default_factory=list)
    users_repaired: list[int] = field(default_factory=list)
    failed_users: list[int] = field(default_factory=list)


def commission_expectations(sums: dict[str, Decimal]) -> dict[str, Decimal]:
    """
    Derive commission columns from per-status sums.

    Args:
        sums: Mapping status -> total

    Returns:
        Expected total_commission_earned, pending_commission and
        total_commission_paid
    """
    pending = (
        sums[CommissionStatus.PENDING.value]
        + sums[CommissionStatus.APPROVED.value]
    )
    paid = sums[CommissionStatus.PAID.value]
    return {
        "total_commission_earned": pending + paid,
        "pending_commission": pending,
        "total_commission_paid": paid,
    }


def _compare(
    entity: str,
    obj: User | ReferralProfile,
    expected: dict[str, Any],
) -> list[BalanceDrift]:
    drifts = []
    for column, value in expected.items():
        stored = getattr(obj, column)
        if isinstance(value, Decimal):
            stored = Decimal(str(stored))
        if stored != value:
            drifts.append(BalanceDrift(entity, column, stored, value))
    return drifts


class ReconciliationService(BaseService):
    """Checks balance columns against the ledger logs."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize reconciliation service."""
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.profile_repo = ReferralProfileRepository(session)
        self.points_repo = PointsTransactionRepository(session)
        self.commission_repo = CommissionRepository(session)

    @transaction
    async def reconcile_user(
        self, user_id: int, repair: bool = False
    ) -> ReconciliationReport:
        """
        Reconcile one user's balances.

        Points columns are recomputed from completed points transactions;
        commission columns of the user and their profile from the commission
        table (cancelled commissions excluded).

        Args:
            user_id: User ID
            repair: Overwrite drifted columns with the expected values

        Returns:
            ReconciliationReport

        Raises:
            UserNotFound: If user does not exist
        """
        user = await self.user_repo.get_for_update(user_id)
        if user is None:
            raise UserNotFound(user_id)

        report = ReconciliationReport(user_id=user_id)

        earned, redeemed = await self.points_repo.ledger_totals(user_id)
        points_expected = {
            "points_balance": earned - redeemed,
            "total_points_earned": earned,
            "total_points_redeemed": redeemed,
        }
        latest = await self.points_repo.get_latest(user_id)
        if latest is not None and latest.new_balance != earned - redeemed:
            report.log_balance_mismatch = True

        user_expected = {
            **points_expected,
            **commission_expectations(
                await self.commission_repo.sum_by_status(user_id)
            ),
        }
        report.drifts.extend(_compare("user", user, user_expected))

        profile = await self.profile_repo.get_by_referrer(user_id)
        profile_expected: dict[str, Decimal] = {}
        if profile is not None:
            profile_expected = commission_expectations(
                await self.commission_repo.sum_by_status_for_profile(profile.id)
            )
            report.drifts.extend(_compare("profile", profile, profile_expected))

        if report.is_consistent:
            return report

        self.logger.warning(
            "Ledger drift detected",
            extra={
                "user_id": user_id,
                "drifts": [
                    f"{d.entity}.{d.column}: {d.stored} != {d.expected}"
                    for d in report.drifts
                ],
                "log_balance_mismatch": report.log_balance_mismatch,
            },
        )

        if repair and report.drifts:
            await self.user_repo.update(user_id, **user_expected)
            if profile is not None:
                await self.profile_repo.update(profile.id, **profile_expected)
            report.repaired = True
            self.logger.info(
                "Ledger drift repaired",
                extra={"user_id": user_id, "columns": len(report.drifts)},
            )

        return report

    @log_operation
    async def reconcile_all(self, repair: bool = False) -> ReconciliationSummary:
        """
        Reconcile every user with ledger activity.

        Each user runs in its own transaction; one failure does not stop the
        run.

        Args:
            repair: Overwrite drifted columns

        Returns:
            ReconciliationSummary
        """
        summary = ReconciliationSummary()
        user_ids = await self.user_repo.get_ids_with_ledger_activity()
        await self.commit()

        for user_id in user_ids:
            try:
                report = await self.reconcile_user(user_id, repair=repair)
            except ReferralLedgerError as e:
                self.logger.error(
                    "Reconciliation failed for user",
                    extra={"user_id": user_id, "error": str(e)},
                )
                summary.failed_users.append(user_id)
                continue

            summary.users_checked += 1
            if not report.is_consistent:
                summary.users_with_drift.append(user_id)
            if report.repaired:
                summary.users_repaired.append(user_id)

        self.logger.info(
            "Ledger reconciliation finished",
            extra={
                "users_checked": summary.users_checked,
                "users_with_drift": len(summary.users_with_drift),
                "users_repaired": len(summary.users_repaired),
                "failed": len(summary.failed_users),
            },
        )
        return summary
