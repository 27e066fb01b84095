"""
Referral chain builder.

Links a newly registered user to the referrer owning the code they signed up
with, and to that referrer's own referrer when the latter is a property
agent. Chains never go deeper than two tiers.
"""

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.config.referral_constants import MAX_CHAIN_DEPTH
from referral_ledger.models.enums import ReferrerClass
from referral_ledger.models.referral_chain import ReferralChainEdge
from referral_ledger.models.user import User
from referral_ledger.repositories.chain_repository import ChainRepository
from referral_ledger.repositories.referral_profile_repository import (
    ReferralProfileRepository,
)
from referral_ledger.repositories.user_repository import UserRepository
from referral_ledger.services.base_service import BaseService, transaction
from referral_ledger.services.referral.code_generator import ReferralCodeGenerator
from referral_ledger.services.tracking.fraud_service import FraudService
from referral_ledger.utils.exceptions import (
    SelfReferralRejected,
    UserNotFound,
)


@dataclass
class ChainLink:
    """One referrer in a user's chain."""

    referrer_id: int | None
    tier: int
    referrer_class: str


@dataclass
class ChainResult:
    """Result of chain building."""

    user_id: int
    created: bool
    links: list[ChainLink] = field(default_factory=list)

    @property
    def direct_referrer_id(self) -> int | None:
        """Tier 1 referrer."""
        for link in self.links:
            if link.tier == 1:
                return link.referrer_id
        return None

    @property
    def depth(self) -> int:
        """Number of tiers in the chain."""
        return len(self.links)


def _links_from_edges(edges: list[ReferralChainEdge]) -> list[ChainLink]:
    return [
        ChainLink(
            referrer_id=edge.referrer_id,
            tier=edge.tier,
            referrer_class=edge.referrer_class,
        )
        for edge in edges
    ]


class ReferralChainBuilder(BaseService):
    """Builds tier 1 and tier 2 chain edges at signup."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize chain builder."""
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.profile_repo = ReferralProfileRepository(session)
        self.chain_repo = ChainRepository(session)
        self.fraud_service = FraudService(session)
        self.code_generator = ReferralCodeGenerator(session)

    async def build_chain(self, new_user_id: int, code: str) -> ChainResult:
        """
        Attach a new user to the referral chain of a code.

        Idempotent: a user that already has a direct referrer keeps the
        existing chain. A rejected self-referral writes nothing but a
        fraud record.

        Args:
            new_user_id: Newly registered user ID
            code: Referral code used at signup

        Returns:
            ChainResult; created is False if the chain already existed

        Raises:
            UserNotFound: If new user does not exist
            InvalidReferralCode: If code does not resolve
            SelfReferralRejected: If code belongs to the new user
        """
        try:
            return await self._attach(new_user_id, code)
        except SelfReferralRejected as e:
            await self.fraud_service.flag_self_referral(e.user_id, e.code)
            raise

    @transaction
    async def _attach(self, new_user_id: int, code: str) -> ChainResult:
        """Create the chain edges and profile entries of a new user."""
        new_user = await self.user_repo.get_by_id(new_user_id, fresh=True)
        if new_user is None:
            raise UserNotFound(new_user_id)

        if new_user.referred_by_id is not None:
            edges = await self.chain_repo.get_chain(new_user_id)
            self.logger.debug(
                "Referral chain already exists",
                extra={"user_id": new_user_id, "depth": len(edges)},
            )
            return ChainResult(
                user_id=new_user_id,
                created=False,
                links=_links_from_edges(edges),
            )

        direct = await self.code_generator.resolve_code(code)
        normalized = code.strip().upper()

        if direct.id == new_user_id:
            raise SelfReferralRejected(new_user_id, normalized)

        links = [
            ChainLink(
                referrer_id=direct.id,
                tier=1,
                referrer_class=direct.referral_user_type,
            )
        ]

        indirect = await self._tier2_referrer(new_user_id, direct)
        if indirect is not None:
            links.append(
                ChainLink(
                    referrer_id=indirect.id,
                    tier=2,
                    referrer_class=indirect.referral_user_type,
                )
            )

        for link in links[:MAX_CHAIN_DEPTH]:
            self.session.add(
                ReferralChainEdge(
                    user_id=new_user_id,
                    referrer_id=link.referrer_id,
                    tier=link.tier,
                    referrer_class=link.referrer_class,
                )
            )
        new_user.referred_by_id = direct.id
        await self.session.flush()

        await self._record_referred_users(new_user_id, links)

        self.logger.info(
            "Referral chain created",
            extra={
                "new_user_id": new_user_id,
                "direct_referrer_id": direct.id,
                "tier2_referrer_id": indirect.id if indirect else None,
                "code": normalized,
            },
        )
        return ChainResult(user_id=new_user_id, created=True, links=links)

    async def _tier2_referrer(
        self, new_user_id: int, direct: User
    ) -> User | None:
        """
        Find the tier 2 referrer.

        Only property agents earn at tier 2; the chain stops there.
        """
        if direct.referred_by_id is None:
            return None

        if direct.referred_by_id == new_user_id:
            self.logger.warning(
                "Circular referral, tier 2 skipped",
                extra={"new_user_id": new_user_id, "direct_referrer_id": direct.id},
            )
            return None

        indirect = await self.user_repo.get_by_id(direct.referred_by_id)
        if indirect is None:
            return None
        if indirect.referrer_class is not ReferrerClass.PROPERTY_AGENT:
            return None
        return indirect

    async def _record_referred_users(
        self, new_user_id: int, links: list[ChainLink]
    ) -> None:
        """Add the user to each referrer's profile; count direct signups."""
        for link in links:
            profile = await self.profile_repo.get_by_referrer(link.referrer_id)
            if profile is None:
                continue
            await self.profile_repo.add_referred_user(
                profile.id, new_user_id, tier=link.tier
            )
            if link.tier == 1:
                await self.profile_repo.increment_referrals(profile.id)

    async def get_chain(self, user_id: int) -> list[ChainLink]:
        """
        Get a user's chain.

        Args:
            user_id: User ID

        Returns:
            Chain links in ascending tier
        """
        return _links_from_edges(await self.chain_repo.get_chain(user_id))
