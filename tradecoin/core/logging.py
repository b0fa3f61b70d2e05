"""
Logging setup.

One stdout sink, configured once at application start. Tokens and
credentials are never passed to the logger.
"""
from __future__ import annotations

import sys

from loguru import logger

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | {level: <8} | {name} | {message}"


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stdout,
        level=level.upper(),
        enqueue=False,
        format=LOG_FORMAT,
    )
