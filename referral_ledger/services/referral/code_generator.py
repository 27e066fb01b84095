"""
Referral code generation.

One code per referrer, formatted by referrer class:
- property agents: AGENT + name prefix + 4 clock digits + 2 random chars
- customers: INVITE + name prefix + 4 random chars
"""

import secrets
import time
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.config.referral_constants import (
    AGENT_CODE_PREFIX,
    CODE_ALPHABET,
    CUSTOMER_CODE_PREFIX,
    NAME_PREFIX_FILLER,
)
from referral_ledger.config.settings import settings
from referral_ledger.models.enums import ReferrerClass
from referral_ledger.models.referral_profile import ReferralProfile
from referral_ledger.models.user import User
from referral_ledger.repositories.referral_profile_repository import (
    ReferralProfileRepository,
)
from referral_ledger.repositories.user_repository import UserRepository
from referral_ledger.services.base_service import BaseService, transaction
from referral_ledger.utils.exceptions import (
    CodeGenerationExhausted,
    InvalidReferralCode,
    LedgerStorageError,
    UserNotFound,
)


@dataclass
class CodeResult:
    """Result of a code request."""

    referral_code: str
    is_new: bool


def _name_part(value: str | None) -> str:
    """First two alphanumeric characters, padded."""
    cleaned = "".join(ch for ch in (value or "") if ch.isalnum())
    return cleaned[:2].upper().ljust(2, NAME_PREFIX_FILLER)


def name_prefix(first_name: str | None, last_name: str | None) -> str:
    """
    Build the 4-character name prefix of a code.

    Args:
        first_name: First name
        last_name: Last name

    Returns:
        Upper-case prefix, e.g. "JODO" for John Doe
    """
    return _name_part(first_name) + _name_part(last_name)


def random_suffix(length: int) -> str:
    """Random base-36 upper-case characters."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def make_agent_code(
    first_name: str | None,
    last_name: str | None,
    now_ms: int | None = None,
) -> str:
    """
    Build a property agent code.

    Args:
        first_name: First name
        last_name: Last name
        now_ms: Clock in milliseconds (defaults to current time)

    Returns:
        Code like AGENTJODO48213K
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    clock_digits = str(now_ms)[-4:].rjust(4, "0")
    return (
        f"{AGENT_CODE_PREFIX}{name_prefix(first_name, last_name)}"
        f"{clock_digits}{random_suffix(2)}"
    )


def make_customer_code(first_name: str | None, last_name: str | None) -> str:
    """
    Build a customer invite code.

    Args:
        first_name: First name
        last_name: Last name

    Returns:
        Code like INVITEJODO7Q2M
    """
    return (
        f"{CUSTOMER_CODE_PREFIX}{name_prefix(first_name, last_name)}"
        f"{random_suffix(4)}"
    )


def make_code(user: User) -> str:
    """Build a candidate code for a user's referrer class."""
    if user.referrer_class is ReferrerClass.PROPERTY_AGENT:
        return make_agent_code(user.first_name, user.last_name)
    return make_customer_code(user.first_name, user.last_name)


def code_class_hint(code: str) -> ReferrerClass | None:
    """
    Guess the referrer class from a code prefix.

    Display convenience only; reward lookup reads the class from the user.

    Args:
        code: Referral code

    Returns:
        ReferrerClass or None for codes without a known prefix
    """
    normalized = code.strip().upper()
    if normalized.startswith(AGENT_CODE_PREFIX):
        return ReferrerClass.PROPERTY_AGENT
    if normalized.startswith(CUSTOMER_CODE_PREFIX):
        return ReferrerClass.CUSTOMER
    return None


class ReferralCodeGenerator(BaseService):
    """Creates and returns referral profiles with unique codes."""

    def __init__(
        self, session: AsyncSession, max_attempts: int | None = None
    ) -> None:
        """
        Initialize code generator.

        Args:
            session: Async database session
            max_attempts: Candidate budget (defaults to settings)
        """
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.profile_repo = ReferralProfileRepository(session)
        self.max_attempts = max_attempts or settings.referral_code_max_attempts

    async def resolve_code(self, code: str) -> User:
        """
        Resolve a referral code to its owner.

        Active profile codes win; the code mirrored on the user row is the
        fallback for referrers without a profile.

        Args:
            code: Referral code, any case

        Returns:
            Referrer User

        Raises:
            InvalidReferralCode: If no active referrer owns the code
        """
        normalized = (code or "").strip().upper()
        if not normalized:
            raise InvalidReferralCode(code)

        profile = await self.profile_repo.get_by_code(
            normalized, active_only=False
        )
        if profile and not profile.is_active:
            raise InvalidReferralCode(normalized)
        if profile:
            referrer = await self.user_repo.get_by_id(profile.referrer_id)
        else:
            referrer = await self.user_repo.get_by_referral_code(normalized)

        if referrer is None:
            raise InvalidReferralCode(normalized)
        return referrer

    async def _is_free(self, code: str, user: User) -> bool:
        """Check a candidate against profiles and mirrored user codes."""
        if await self.profile_repo.code_exists(code):
            return False
        owner = await self.user_repo.get_by_referral_code(code)
        return owner is None or owner.id == user.id

    async def _pick_code(self, user: User) -> str:
        """
        Pick an unused code for a user.

        A code already mirrored on the user row is kept when no profile
        owns it.

        Raises:
            CodeGenerationExhausted: If no candidate is free
        """
        if user.referral_code and await self._is_free(user.referral_code, user):
            return user.referral_code

        for attempt in range(1, self.max_attempts + 1):
            candidate = make_code(user)
            if await self._is_free(candidate, user):
                return candidate
            self.logger.debug(
                "Referral code collision",
                extra={"user_id": user.id, "attempt": attempt},
            )

        raise CodeGenerationExhausted(user.id, self.max_attempts)

    @transaction
    async def generate_code(self, user_id: int) -> CodeResult:
        """
        Return the user's referral code, creating the profile if needed.

        Args:
            user_id: Referrer user ID

        Returns:
            CodeResult; is_new is False when the profile already existed

        Raises:
            UserNotFound: If user does not exist
            CodeGenerationExhausted: If no unique code was found
            LedgerStorageError: If the profile could not be stored
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFound(user_id)

        existing = await self.profile_repo.get_by_referrer(user_id)
        if existing:
            return CodeResult(referral_code=existing.referral_code, is_new=False)

        code = await self._pick_code(user)

        try:
            async with self.session.begin_nested():
                self.session.add(
                    ReferralProfile(
                        referral_code=code,
                        referrer_id=user_id,
                        referral_tier=1,
                        is_active=True,
                    )
                )
                user.referral_code = code
        except IntegrityError:
            # Concurrent request for the same user won the insert
            winner = await self.profile_repo.get_by_referrer(user_id)
            if winner:
                return CodeResult(referral_code=winner.referral_code, is_new=False)
            self.logger.error(
                "Referral code taken during insert",
                extra={"user_id": user_id, "code": code},
            )
            raise LedgerStorageError(
                f"Referral code {code} collided for user {user_id}"
            ) from None

        self.logger.info(
            "Referral code generated",
            extra={
                "user_id": user_id,
                "code": code,
                "referrer_class": user.referral_user_type,
            },
        )
        return CodeResult(referral_code=code, is_new=True)
