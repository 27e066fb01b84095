"""Pytest configuration and shared fixtures for all tests."""

import itertools
import os
import sys
from pathlib import Path

# Minimal environment for settings, set before any project import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("FRONTEND_URL", "https://app.example.com")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import dramatiq
import pytest
import pytest_asyncio
from dramatiq.brokers.stub import StubBroker
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# Actors must never reach Redis in tests
dramatiq.set_broker(StubBroker())

from referral_ledger.config.database import enable_sqlite_savepoints
from referral_ledger.models import Base, User
from referral_ledger.models.enums import ReferrerClass
from referral_ledger.services.referral.chain_builder import ReferralChainBuilder
from referral_ledger.services.referral.code_generator import (
    ReferralCodeGenerator,
)


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with all ledger tables."""
    engine = enable_sqlite_savepoints(
        create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    """Session factory configured like the application's."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_maker):
    """Database session for one test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_user(session):
    """
    Factory creating committed users.

    Usage:
        agent = await make_user(ReferrerClass.PROPERTY_AGENT, with_code=True)
    """
    counter = itertools.count(1)

    async def _make(
        referrer_class: ReferrerClass = ReferrerClass.CUSTOMER,
        first_name: str = "Test",
        last_name: str = "User",
        with_code: bool = False,
    ) -> User:
        n = next(counter)
        user = User(
            email=f"user{n}@example.com",
            first_name=first_name,
            last_name=last_name,
            referral_user_type=referrer_class.value,
        )
        session.add(user)
        await session.commit()
        if with_code:
            result = await ReferralCodeGenerator(session).generate_code(user.id)
            assert result.is_new
        return user

    return _make


@pytest.fixture
def signup(session, make_user):
    """
    Factory creating a user referred by an existing referrer's code.

    Usage:
        customer = await signup(agent)
    """

    async def _signup(
        referrer: User,
        referrer_class: ReferrerClass = ReferrerClass.CUSTOMER,
        with_code: bool = False,
    ) -> User:
        user = await make_user(referrer_class, with_code=with_code)
        code = await referral_code_of(session, referrer)
        await ReferralChainBuilder(session).build_chain(user.id, code)
        return user

    return _signup


async def referral_code_of(session: AsyncSession, user: User) -> str:
    """Referral code of a user, creating it if needed."""
    result = await ReferralCodeGenerator(session).generate_code(user.id)
    return result.referral_code


@pytest.fixture
def code_of(session):
    """
    Factory returning a user's referral code.

    Usage:
        code = await code_of(agent)
    """

    async def _code_of(user: User) -> str:
        return await referral_code_of(session, user)

    return _code_of
