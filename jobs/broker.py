"""
Dramatiq broker configuration.

Redis-based message broker for ledger jobs.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger

from referral_ledger.config.settings import settings
from referral_ledger.utils.exceptions import is_retriable

JOB_MAX_RETRIES = 3

redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password if settings.redis_password else None,
    db=settings.redis_db,
)


def _should_retry(retries_so_far: int, exception: BaseException) -> bool:
    """Retry storage failures only; validation errors will fail again."""
    return retries_so_far < JOB_MAX_RETRIES and is_retriable(exception)


# ShutdownNotifications: Allows workers to gracefully shutdown
# CurrentMessage: Provides access to current message in actors
# Retries: Exponential backoff for failed tasks
redis_broker.add_middleware(ShutdownNotifications())
redis_broker.add_middleware(CurrentMessage())
redis_broker.add_middleware(
    Retries(
        max_retries=JOB_MAX_RETRIES,
        min_backoff=1000,  # 1 second
        max_backoff=60000,  # 1 minute
        retry_when=_should_retry,
    )
)

dramatiq.set_broker(redis_broker)

broker = redis_broker

logger.info(
    "Dramatiq broker initialized",
    extra={
        "redis": f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
    },
)
