"""
Logging setup.

Configures loguru sinks for workers and scripts.
Sets up log rotation and retention policies.
"""

import sys

from loguru import logger

from referral_ledger.config.settings import settings


def setup_logging(log_file: str | None = None, level: str | None = None) -> None:
    """
    Configure logger with stderr and a rotating file sink.

    Args:
        log_file: File sink path (defaults to settings.log_file)
        level: Minimum level (defaults to settings.log_level)
    """
    level = level or settings.log_level
    log_file = log_file or settings.log_file

    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            encoding="utf-8",
        )

    logger.info(
        "Logging configured",
        extra={"environment": settings.environment, "level": level},
    )
