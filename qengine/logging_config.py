"""Logging setup for qengine."""

import logging
from typing import Optional

from qengine.config import settings


def configure_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
) -> logging.Logger:
    """
    Configure root logging from LoggingConfig.

    Library modules only create module loggers; applications and scripts
    call this once at startup.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to settings.logging.level.
        fmt: Format string. Defaults to settings.logging.format.

    Returns:
        The package logger ("qengine")
    """
    if level is None:
        level = settings.logging.level
    if fmt is None:
        fmt = settings.logging.format

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt
    )

    package_logger = logging.getLogger("qengine")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return package_logger
