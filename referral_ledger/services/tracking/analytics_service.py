"""
Referral analytics service.

Maintains the daily funnel rows (clicks, signups, conversions, revenue) of
each referrer. Recording methods join the caller's transaction.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.models.enums import ConversionType
from referral_ledger.models.referral_analytics import ReferralAnalytics
from referral_ledger.repositories.referral_analytics_repository import (
    ReferralAnalyticsRepository,
)
from referral_ledger.services.base_service import BaseService
from referral_ledger.utils.datetime_utils import ensure_utc, utc_now


class AnalyticsService(BaseService):
    """Daily referral funnel counters."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize analytics service."""
        super().__init__(session)
        self.analytics_repo = ReferralAnalyticsRepository(session)

    async def _day_row(
        self, referrer_id: int, at: datetime | None
    ) -> ReferralAnalytics:
        day = ensure_utc(at or utc_now()).date()
        return await self.analytics_repo.get_or_create_day(referrer_id, day)

    async def record_click(
        self, referrer_id: int, at: datetime | None = None
    ) -> ReferralAnalytics:
        """
        Count a click on the referrer's daily row.

        Args:
            referrer_id: Referrer user ID
            at: Click time (defaults to now)

        Returns:
            Updated row (not committed)
        """
        row = await self._day_row(referrer_id, at)
        row.total_clicks += 1
        row.recalculate_rates()
        await self.session.flush()
        return row

    async def record_conversion(
        self,
        referrer_id: int,
        conversion_type: ConversionType,
        revenue: Decimal | None = None,
        at: datetime | None = None,
    ) -> ReferralAnalytics:
        """
        Count a conversion on the referrer's daily row.

        Signups are counted separately as well as in conversions.

        Args:
            referrer_id: Referrer user ID
            conversion_type: What the click converted into
            revenue: Revenue attributed to the conversion
            at: Conversion time (defaults to now)

        Returns:
            Updated row (not committed)
        """
        row = await self._day_row(referrer_id, at)
        row.conversions += 1
        if conversion_type is ConversionType.SIGNUP:
            row.signups += 1
        if revenue:
            row.revenue = Decimal(row.revenue) + Decimal(str(revenue))
        row.recalculate_rates()
        await self.session.flush()
        return row

    async def get_daily_stats(
        self,
        referrer_id: int,
        days: int = 30,
        end: date | None = None,
    ) -> dict[str, Any]:
        """
        Get a referrer's funnel for the last N days.

        Args:
            referrer_id: Referrer user ID
            days: Window length in days
            end: Last day of the window (defaults to today, UTC)

        Returns:
            Dict with totals and one entry per recorded day
        """
        end = end or utc_now().date()
        start = end - timedelta(days=days - 1)
        rows = await self.analytics_repo.get_range(referrer_id, start, end)

        clicks = sum(r.total_clicks for r in rows)
        conversions = sum(r.conversions for r in rows)
        revenue = sum((Decimal(r.revenue) for r in rows), Decimal("0"))

        return {
            "start": start,
            "end": end,
            "total_clicks": clicks,
            "total_signups": sum(r.signups for r in rows),
            "total_conversions": conversions,
            "total_revenue": revenue,
            "conversion_rate": (
                round(conversions / clicks * 100, 2) if clicks else 0.0
            ),
            "daily": [
                {
                    "date": r.period_date,
                    "clicks": r.total_clicks,
                    "signups": r.signups,
                    "conversions": r.conversions,
                    "revenue": Decimal(r.revenue),
                    "conversion_rate": Decimal(r.conversion_rate),
                }
                for r in rows
            ],
        }
