"""
Logging Setup
Configures loguru sinks for scripts and the CLI
"""

import os
import sys
from typing import Optional
from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}"


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> str:
    """
    Replace loguru's default sink

    Args:
        level: Console level (default: LOG_LEVEL env var, then INFO)
        log_file: Optional file sink, rotated daily and kept for a week

    Returns:
        Level actually applied
    """
    level = (level or os.getenv('LOG_LEVEL') or 'INFO').upper()

    try:
        logger.level(level)
    except ValueError:
        level = 'INFO'

    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level)

    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            format=FILE_FORMAT,
            level="DEBUG"
        )

    return level
