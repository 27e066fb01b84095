#!/usr/bin/env python3
"""
Create referral profiles for users that have none.

Users registered before the referral program have no profile and no code.
Each user gets a code in the format of their referral user type.

Usage:
    python scripts/backfill_referral_codes.py --dry-run
    python scripts/backfill_referral_codes.py --apply
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from referral_ledger.config.database import enable_sqlite_savepoints
from referral_ledger.config.settings import settings
from referral_ledger.models import ReferralProfile, User
from referral_ledger.services.referral.code_generator import ReferralCodeGenerator
from referral_ledger.utils.exceptions import ReferralLedgerError

logger.remove()
logger.add(sys.stderr, level="INFO")


async def users_without_profile(session: AsyncSession) -> list[int]:
    """IDs of users that own no referral profile."""
    result = await session.execute(
        select(User.id)
        .outerjoin(ReferralProfile, ReferralProfile.referrer_id == User.id)
        .where(ReferralProfile.id.is_(None))
        .order_by(User.id)
    )
    return list(result.scalars().all())


async def backfill_referral_codes(dry_run: bool = True) -> None:
    """Generate missing referral codes."""
    engine = enable_sqlite_savepoints(
        create_async_engine(settings.database_url, poolclass=NullPool)
    )
    session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with session_maker() as session:
        user_ids = await users_without_profile(session)
        logger.info(f"Users without referral profile: {len(user_ids)}")

        if dry_run:
            logger.info("Dry run - no changes made")
        else:
            generator = ReferralCodeGenerator(session)
            created = 0
            for user_id in user_ids:
                try:
                    result = await generator.generate_code(user_id)
                except ReferralLedgerError as e:
                    logger.error(f"User {user_id}: {e}")
                    continue
                if result.is_new:
                    created += 1
            logger.success(f"Created {created} referral profiles")

    await engine.dispose()


def main():
    parser = argparse.ArgumentParser(
        description="Create referral codes for users without a profile"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview changes without applying them"
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply changes (required to make actual changes)"
    )

    args = parser.parse_args()

    if not args.dry_run and not args.apply:
        print("Please specify --dry-run to preview or --apply to make changes")
        print("Example: python scripts/backfill_referral_codes.py --dry-run")
        sys.exit(1)

    asyncio.run(backfill_referral_codes(dry_run=not args.apply))


if __name__ == "__main__":
    main()
