"""
Logging Setup
Configures process-wide logging once at startup.
"""

import logging
from typing import Optional

from storystudio.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging for the API process.

    Args:
        level: Explicit level name; defaults to LOG_LEVEL (DEBUG when DEBUG=true)
    """
    if level is None:
        level = "DEBUG" if settings.DEBUG else settings.LOG_LEVEL

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )

    # httpx logs every request at INFO, which drowns out poll ticks
    logging.getLogger("httpx").setLevel(logging.WARNING)
