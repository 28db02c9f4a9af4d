"""
Logging utilities.

WHAT: Centralized logging configuration
WHY: Consistent log format and easy logger access
HOW: Python logging with console and optional file handlers

The host process (the bot runner that owns the Telegram update loop) calls
setup_logging() once at startup; library modules only call get_logger().
"""

import logging
import sys
from pathlib import Path

from ..core.config import settings


def setup_logging(level: str | None = None, log_file: str | None = None):
    """
    Configure application logging.

    WHAT: Set up root logger with console and (optionally) file handlers
    WHY: Ensure logs are visible in console and captured to file when configured
    HOW: Create handlers with formatters, set levels from config

    Args:
        level: Overrides settings.LOG_LEVEL
        log_file: Overrides settings.LOG_FILE (empty disables the file handler)
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_file = settings.LOG_FILE if log_file is None else log_file

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Remove existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level_name, logging.INFO))
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    # httpx logs full request URLs at INFO, which would leak query-string keys
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized (level={level_name}, file={log_file or 'none'})")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def mask_secret(secret: str) -> str:
    """Render a credential for logs, keeping only the last four characters."""
    if not secret:
        return "<unset>"
    if len(secret) <= 4:
        return "***"
    return "*" * 10 + secret[-4:]
