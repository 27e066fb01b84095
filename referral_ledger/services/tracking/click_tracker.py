"""
Click and attribution tracker.

Records visits through referral links or bare codes, scores them for fraud
and attributes later signups or purchases back to the click.

Fraud scoring is advisory: the click is always stored and redirected, and a
fraud record is written after the click commit without affecting it.
"""

import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.config.referral_constants import (
    CONVERSION_LOOKBACK_DAYS,
    SAME_IP_WINDOW_HOURS,
    VELOCITY_WINDOW_HOURS,
)
from referral_ledger.models.enums import ConversionType
from referral_ledger.models.referral_link import ReferralClick
from referral_ledger.repositories.referral_link_repository import (
    ReferralClickRepository,
    ReferralLinkRepository,
)
from referral_ledger.services.base_service import BaseService, transaction
from referral_ledger.services.referral.code_generator import (
    ReferralCodeGenerator,
)
from referral_ledger.services.tracking.analytics_service import (
    AnalyticsService,
)
from referral_ledger.services.tracking.device import (
    GeoResolver,
    NullGeoResolver,
    RequestContext,
    determine_source,
    parse_device,
)
from referral_ledger.services.tracking.fraud_scorer import (
    ClickSignals,
    FraudAssessment,
    score_click,
)
from referral_ledger.services.tracking.fraud_service import FraudService
from referral_ledger.services.tracking.link_service import default_register_url
from referral_ledger.utils.datetime_utils import hours_ago, utc_now
from referral_ledger.utils.exceptions import InvalidReferralCode


@dataclass
class ClickResult:
    """Outcome of a tracked click."""

    session_id: str
    redirect_url: str
    risk_score: int
    referral_code: str
    flags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _ClickTarget:
    """Resolved destination of a click."""

    referral_code: str
    referrer_id: int
    redirect_url: str
    link_pk: int | None = None


class ClickTracker(BaseService):
    """Tracks referral clicks and conversions."""

    def __init__(
        self,
        session: AsyncSession,
        geo_resolver: GeoResolver | None = None,
    ) -> None:
        """
        Initialize click tracker.

        Args:
            session: Async database session
            geo_resolver: IP to location resolver (defaults to no lookup)
        """
        super().__init__(session)
        self.link_repo = ReferralLinkRepository(session)
        self.click_repo = ReferralClickRepository(session)
        self.code_generator = ReferralCodeGenerator(session)
        self.analytics_service = AnalyticsService(session)
        self.fraud_service = FraudService(session)
        self.geo_resolver = geo_resolver or NullGeoResolver()

    async def _resolve_target(self, code: str) -> _ClickTarget:
        """
        Resolve a short code or a referral code.

        Raises:
            InvalidReferralCode: If neither resolves, or the link expired
        """
        code = (code or "").strip()
        link = await self.link_repo.get_by_short_code(code) if code else None
        if link is not None:
            if link.is_expired():
                raise InvalidReferralCode(code)
            return _ClickTarget(
                referral_code=link.referral_code,
                referrer_id=link.referrer_id,
                redirect_url=link.original_url,
                link_pk=link.id,
            )

        referrer = await self.code_generator.resolve_code(code)
        referral_code = code.upper()
        return _ClickTarget(
            referral_code=referral_code,
            referrer_id=referrer.id,
            redirect_url=default_register_url(referral_code),
        )

    async def _click_history(
        self, target: _ClickTarget, ip_address: str | None
    ) -> tuple[int, int]:
        """
        Count recent clicks for fraud scoring.

        Failing counts degrade to zero.

        Returns:
            Tuple of (same IP clicks in window, same referrer clicks in window)
        """
        try:
            same_ip = 0
            if ip_address:
                same_ip = await self.click_repo.count_by_ip_since(
                    ip_address, hours_ago(SAME_IP_WINDOW_HOURS)
                )
            same_referrer = await self.click_repo.count_by_referrer_since(
                target.referrer_id, hours_ago(VELOCITY_WINDOW_HOURS)
            )
        except SQLAlchemyError as e:
            await self.rollback()
            self.logger.warning(
                "Click history unavailable, scoring without it",
                extra={"referrer_id": target.referrer_id, "error": str(e)},
            )
            return 0, 0
        return same_ip, same_referrer

    @transaction
    async def _store_click(
        self,
        target: _ClickTarget,
        context: RequestContext,
        assessment: FraudAssessment,
    ) -> ReferralClick:
        """Persist the click with link and analytics counters."""
        now = utc_now()
        click = ReferralClick(
            referral_code=target.referral_code,
            referrer_id=target.referrer_id,
            link_id=target.link_pk,
            session_id=secrets.token_hex(16),
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            referer=context.referer,
            source=(context.source or determine_source(context.referer)).value,
            device=parse_device(context.user_agent),
            location=(
                self.geo_resolver.resolve(context.ip_address)
                if context.ip_address
                else None
            ),
            clicked_at=now,
            fraud_flags=assessment.flag_names,
            risk_score=assessment.risk_score,
        )
        self.session.add(click)
        await self.session.flush()

        if target.link_pk is not None:
            await self.link_repo.register_click(target.link_pk, now)
        await self.analytics_service.record_click(target.referrer_id, now)
        return click

    async def track_click(
        self, code: str, context: RequestContext | None = None
    ) -> ClickResult:
        """
        Record a visit through a referral link or code.

        Args:
            code: Link short code or referral code
            context: Request data (IP, user agent, referer)

        Returns:
            ClickResult with the session ID to carry to signup

        Raises:
            InvalidReferralCode: If the code does not resolve
            LedgerStorageError: If the click could not be stored
        """
        context = context or RequestContext()
        target = await self._resolve_target(code)

        same_ip, same_referrer = await self._click_history(
            target, context.ip_address
        )
        # Counts exclude the click being recorded
        assessment = score_click(
            ClickSignals(
                user_agent=context.user_agent,
                same_ip_clicks_24h=same_ip,
                same_referrer_clicks_1h=same_referrer,
            )
        )

        click = await self._store_click(target, context, assessment)
        self.logger.info(
            "Referral click tracked",
            extra={
                "referral_code": target.referral_code,
                "referrer_id": target.referrer_id,
                "session_id": click.session_id,
                "risk_score": assessment.risk_score,
            },
        )

        await self.fraud_service.flag_suspicious_click(click, assessment)

        return ClickResult(
            session_id=click.session_id,
            redirect_url=target.redirect_url,
            risk_score=assessment.risk_score,
            referral_code=target.referral_code,
            flags=assessment.flag_names,
        )

    @transaction
    async def track_conversion(
        self,
        new_user_id: int,
        conversion_type: ConversionType = ConversionType.SIGNUP,
        session_id: str | None = None,
        referral_code: str | None = None,
        revenue: Decimal | None = None,
    ) -> bool:
        """
        Attribute a conversion to its click.

        The click is found by session ID, else as the latest unconverted
        click for the code within the attribution window. A click converts
        once.

        Args:
            new_user_id: User who converted
            conversion_type: SIGNUP, FIRST_PURCHASE or SUBSCRIPTION
            session_id: Session ID returned by track_click
            referral_code: Code used, when no session is known
            revenue: Revenue attributed to the conversion

        Returns:
            True if a click was marked converted
        """
        conversion_type = ConversionType(conversion_type)
        click = None
        if session_id:
            click = await self.click_repo.get_by_session(session_id)
        if click is None and referral_code:
            since = utc_now() - timedelta(days=CONVERSION_LOOKBACK_DAYS)
            click = await self.click_repo.get_latest_unconverted(
                referral_code.strip().upper(), since
            )

        if click is None or click.converted:
            self.logger.debug(
                "No click to attribute",
                extra={
                    "user_id": new_user_id,
                    "session_id": session_id,
                    "referral_code": referral_code,
                },
            )
            return False

        now = utc_now()
        click.converted = True
        click.converted_at = now
        click.converted_user_id = new_user_id
        click.conversion_type = conversion_type.value
        await self.session.flush()

        if click.link_id is not None:
            await self.link_repo.register_conversion(click.link_id)
        await self.analytics_service.record_conversion(
            click.referrer_id, conversion_type, revenue=revenue, at=now
        )

        self.logger.info(
            "Referral conversion tracked",
            extra={
                "user_id": new_user_id,
                "referral_code": click.referral_code,
                "conversion_type": conversion_type.value,
            },
        )
        return True
