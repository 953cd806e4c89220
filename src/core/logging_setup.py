"""Loguru sink configuration for processes embedding the engine."""

from __future__ import annotations

import sys

from loguru import logger

from config import Settings, get_settings

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(settings: Settings | None = None) -> None:
    """Replace loguru's default sink with the configured ones."""
    settings = settings or get_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, format=LOG_FORMAT)
    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )
    logger.debug(f"Logging configured at {settings.log_level}")
