"""
Database configuration.

Async SQLAlchemy engine and session factory shared by the application.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from referral_ledger.config.settings import settings


def enable_sqlite_savepoints(engine: AsyncEngine) -> AsyncEngine:
    """
    Make SAVEPOINTs work on a SQLite engine.

    The sqlite3 driver starts transactions lazily on the first write, so a
    SAVEPOINT issued before it would not sit inside the session's
    transaction. The driver's own BEGIN is disabled and emitted by
    SQLAlchemy instead. Other backends are returned unchanged.

    Args:
        engine: Async engine

    Returns:
        The same engine
    """
    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


async_engine = enable_sqlite_savepoints(
    create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )
)

async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Provide a session that is rolled back if the caller leaves it dirty.

    Yields:
        AsyncSession bound to the application engine
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
