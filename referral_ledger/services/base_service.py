"""
Base service class.

Provides common functionality for ledger services including session
management, bound logging and the transaction decorators.
"""

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_ledger.utils.exceptions import LedgerStorageError


# Type variable for generic decorator return types
T = TypeVar("T")


class BaseService:
    """
    Base service class.

    Provides common functionality for all ledger services:
    - Session management
    - Logging with bound service context
    - Transaction helpers
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
        """
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def rollback(self) -> None:
        """Rollback current transaction."""
        await self.session.rollback()


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to run a service method as one transaction.

    The method body runs inside a SAVEPOINT. On success the session is
    committed. A domain error (validation, state, not found) rolls back the
    savepoint only, so the caller's session and loaded objects stay usable.
    Storage errors roll back the whole session and are re-raised as
    LedgerStorageError so callers can tell them apart from validation
    failures.

    A decorated method called from another decorated method joins the
    enclosing transaction: it gets its own savepoint and leaves the commit
    to the outermost call.

    Usage:
        @transaction
        async def grant(self, ...):
            ...

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        if self.session.in_nested_transaction():
            async with self.session.begin_nested():
                return await func(self, *args, **kwargs)

        try:
            async with self.session.begin_nested():
                result = await func(self, *args, **kwargs)
            await self.commit()
            return result
        except (SQLAlchemyError, LedgerStorageError) as e:
            await self.rollback()
            self.logger.error(
                f"Storage failure in {func.__name__}, rolled back",
                extra={
                    "error": str(e),
                    "function": func.__name__,
                },
            )
            if isinstance(e, LedgerStorageError):
                raise
            raise LedgerStorageError(
                f"{func.__name__} failed: {type(e).__name__}"
            ) from e
        except Exception as e:
            self.logger.warning(
                f"Transaction aborted in {func.__name__}",
                extra={
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "function": func.__name__,
                },
            )
            raise

    return wrapper


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to log method entry/exit with timing.

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        start_time = time.time()

        self.logger.debug(
            f"Starting {func.__name__}",
            extra={
                "function": func.__name__,
                "args_count": len(args),
                "kwargs_keys": list(kwargs.keys()),
            },
        )

        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.error(
                f"Failed {func.__name__}",
                extra={
                    "function": func.__name__,
                    "duration_seconds": round(time.time() - start_time, 3),
                    "error": str(e),
                    "success": False,
                },
            )
            raise

        self.logger.info(
            f"Completed {func.__name__}",
            extra={
                "function": func.__name__,
                "duration_seconds": round(time.time() - start_time, 3),
                "success": True,
            },
        )
        return result

    return wrapper
