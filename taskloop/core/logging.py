"""Loguru sink configuration for the taskloop CLI."""

import sys
from pathlib import Path

from loguru import logger

from taskloop.core.config import Settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(settings: Settings) -> None:
    """Configure loguru based on settings.

    Replaces the default handler with a daily rotated file sink and a
    colourised stderr sink.

    Args:
        settings: Settings providing level, debug flag and log directory.
    """
    logger.remove()

    logs_dir = Path(settings.taskloop_log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        str(logs_dir / "taskloop_{time:YYYY-MM-DD}.log"),
        rotation="1 day",
        retention="7 days",
        level=settings.taskloop_log_level,
        format=LOG_FORMAT,
    )

    logger.add(
        sys.stderr,
        level="DEBUG" if settings.taskloop_debug else settings.taskloop_log_level,
        format=LOG_FORMAT,
        colorize=True,
    )
