"""Logging setup for DocIndex."""

import sys

from loguru import logger

from docindex.config import settings


def configure_logging(level: str | None = None) -> None:
    """Configure loguru for structured logging."""
    logger.remove()  # Avoid duplicate logs
    logger.add(
        sink=sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "{extra} | "
            "<level>{message}</level>"
        ),
        level=(level or settings.log_level).upper(),
        serialize=False,
    )
