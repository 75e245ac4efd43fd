"""Logging configuration for the relay server.

This module provides centralized logging configuration using Loguru.
Library modules only emit through ``loguru.logger``; the command line calls
``configure_logging`` once at startup to send records to the console and to a
rotating log file.
"""

import sys
from pathlib import Path
from typing import Final

from loguru import logger

LOG_DIR: Final = Path.home() / ".socks4-relay" / "logs"

CONSOLE_FORMAT: Final = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT: Final = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def configure_logging(*, debug: bool = False, log_dir: Path | None = LOG_DIR) -> None:
    """Install console and file handlers.

    Args:
        debug: Log DEBUG records to the console as well
        log_dir: Directory for ``relay.log``; ``None`` disables file logging
    """
    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level="DEBUG" if debug else "INFO",
        backtrace=True,
        diagnose=debug,
    )

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "relay.log",
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format=FILE_FORMAT,
            level="DEBUG",
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )


__all__ = ["configure_logging", "logger", "LOG_DIR"]
