"""Logging utilities for the forge migration tool."""

import re
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# user:password@ in URLs, e.g. a GitLab import_url echoed back in an error
_URL_CREDENTIALS = re.compile(r'(?P<scheme>https?://)[^/\s:@]+:[^/\s@]+@')

CONSOLE_FORMAT = (
    '<green>{time:YYYY-MM-DD HH:mm:ss}</green> | '
    '<level>{level: <8}</level> | '
    '<cyan>{extra[component]}</cyan> | '
    '<level>{message}</level>'
)
FILE_FORMAT = (
    '{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}'
)


def redact(message: str) -> str:
    """Strip credentials embedded in URLs."""
    return _URL_CREDENTIALS.sub(r'\g<scheme>***@', message)


def _scrub(record) -> None:
    record['message'] = redact(record['message'])
    record['extra'].setdefault('component', record['name'])


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """Setup logging configuration using loguru.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        log_format: Optional custom log format
    """
    # Remove default handler
    logger.remove()
    logger.configure(patcher=_scrub)

    logger.add(
        sys.stderr,
        format=log_format or CONSOLE_FORMAT,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=level,
            rotation='10 MB',
            retention='30 days',
            compression='gz',
            backtrace=True,
            diagnose=False,
        )

    logger.debug(f'Logging initialized with level: {level}')
    if log_file:
        logger.debug(f'Log file: {log_file}')
