"""Centralized logging configuration for breakout."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def configure_logging(
    level: str = "WARNING",
    log_file: Optional[Path] = None,
    verbose: bool = False,
) -> None:
    """
    Configure global logging sinks.

    Args:
        level: Minimum level for console output (default: WARNING)
        log_file: Optional path for the persistent log file. No file sink
            is installed when omitted.
        verbose: If True, set console level to DEBUG
    """
    logger.remove()

    console_level = "DEBUG" if verbose else level

    logger.add(
        sys.stderr,
        level=console_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        backtrace=True,
        diagnose=False,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            enqueue=True,
        )

    logger.debug(f"Logging initialized. Console level: {console_level}, File: {log_file}")
