#!/usr/bin/env python3
"""Initialize referral ledger tables without Alembic (local development)."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from sqlalchemy.ext.asyncio import create_async_engine

from referral_ledger.config.settings import settings
from referral_ledger.models import Base

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database() -> None:
    """Create all ledger tables."""
    logger.info("Connecting to database...")
    engine = create_async_engine(settings.database_url, echo=False)

    async with engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    await engine.dispose()
    logger.success(f"Created {len(Base.metadata.tables)} ledger tables")


if __name__ == "__main__":
    asyncio.run(init_database())
