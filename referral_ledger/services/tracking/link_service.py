"""
Referral link service.

Builds campaign links for a referrer's code: a long register URL carrying
the code and UTM parameters, and a short tracking URL that goes through
click tracking.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.config.referral_constants import (
    CODE_ALPHABET,
    DEFAULT_CAMPAIGN_MEDIUM,
    DEFAULT_CAMPAIGN_NAME,
    DEFAULT_CAMPAIGN_SOURCE,
    SHORT_CODE_LENGTH,
)
from referral_ledger.config.settings import settings
from referral_ledger.models.referral_link import ReferralLink
from referral_ledger.repositories.referral_link_repository import (
    ReferralLinkRepository,
)
from referral_ledger.services.base_service import BaseService, transaction
from referral_ledger.services.referral.code_generator import (
    ReferralCodeGenerator,
)
from referral_ledger.utils.exceptions import LedgerStorageError


@dataclass(frozen=True)
class CampaignOptions:
    """UTM campaign parameters of a link."""

    campaign: str = DEFAULT_CAMPAIGN_NAME
    medium: str = DEFAULT_CAMPAIGN_MEDIUM
    source: str = DEFAULT_CAMPAIGN_SOURCE
    content: str | None = None
    term: str | None = None


@dataclass
class ReferralLinkResult:
    """Generated referral link."""

    link_id: str
    referral_code: str
    original_url: str
    tracking_url: str
    short_code: str
    campaign: dict[str, str | None] = field(default_factory=dict)


def default_register_url(referral_code: str) -> str:
    """Register URL used for clicks on a bare code."""
    return f"{settings.frontend_url}/register?{urlencode({'ref': referral_code})}"


def build_register_url(
    referral_code: str,
    campaign: CampaignOptions,
    custom_params: dict[str, Any] | None = None,
) -> str:
    """
    Build the long register URL of a link.

    Args:
        referral_code: Referrer's code
        campaign: UTM parameters
        custom_params: Extra query parameters, appended last

    Returns:
        Absolute URL on the frontend
    """
    params: dict[str, Any] = {
        "ref": referral_code,
        "utm_source": campaign.source,
        "utm_medium": campaign.medium,
        "utm_campaign": campaign.campaign,
    }
    if campaign.content:
        params["utm_content"] = campaign.content
    if campaign.term:
        params["utm_term"] = campaign.term
    for key, value in (custom_params or {}).items():
        params.setdefault(key, value)

    return f"{settings.frontend_url}/register?{urlencode(params)}"


def tracking_url(short_code: str) -> str:
    """Short URL that records a click before redirecting."""
    return f"{settings.frontend_url}/r/{short_code}"


def random_short_code(length: int = SHORT_CODE_LENGTH) -> str:
    """Random lower-case base-36 short code."""
    alphabet = CODE_ALPHABET.lower()
    return "".join(secrets.choice(alphabet) for _ in range(length))


class LinkService(BaseService):
    """Creates campaign links for referrers."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize link service."""
        super().__init__(session)
        self.link_repo = ReferralLinkRepository(session)
        self.code_generator = ReferralCodeGenerator(session)

    async def _unique_short_code(self) -> str:
        for _ in range(settings.referral_code_max_attempts):
            candidate = random_short_code()
            if not await self.link_repo.short_code_exists(candidate):
                return candidate
        raise LedgerStorageError("Could not allocate a unique short code")

    @transaction
    async def generate_referral_link(
        self,
        user_id: int,
        campaign: CampaignOptions | None = None,
        custom_params: dict[str, Any] | None = None,
        expires_at: datetime | None = None,
    ) -> ReferralLinkResult:
        """
        Generate a trackable referral link.

        The referrer's code is created first if the user has none.

        Args:
            user_id: Referrer user ID
            campaign: UTM parameters (defaults to the referral program)
            custom_params: Extra query parameters of the register URL
            expires_at: Link expiry, None for no expiry

        Returns:
            ReferralLinkResult

        Raises:
            UserNotFound: If user does not exist
        """
        campaign = campaign or CampaignOptions()
        code_result = await self.code_generator.generate_code(user_id)
        code = code_result.referral_code

        short_code = await self._unique_short_code()
        original_url = build_register_url(code, campaign, custom_params)

        link = ReferralLink(
            referrer_id=user_id,
            referral_code=code,
            link_id=secrets.token_hex(16),
            original_url=original_url,
            short_code=short_code,
            campaign_name=campaign.campaign,
            campaign_medium=campaign.medium,
            campaign_source=campaign.source,
            campaign_content=campaign.content,
            campaign_term=campaign.term,
            custom_parameters=custom_params,
            expires_at=expires_at,
            is_active=True,
        )
        self.session.add(link)
        await self.session.flush()

        self.logger.info(
            "Referral link generated",
            extra={
                "user_id": user_id,
                "short_code": short_code,
                "campaign": campaign.campaign,
            },
        )
        return ReferralLinkResult(
            link_id=link.link_id,
            referral_code=code,
            original_url=original_url,
            tracking_url=tracking_url(short_code),
            short_code=short_code,
            campaign={
                "campaign": campaign.campaign,
                "medium": campaign.medium,
                "source": campaign.source,
                "content": campaign.content,
                "term": campaign.term,
            },
        )
