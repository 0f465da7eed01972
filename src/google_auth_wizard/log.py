"""Logging setup for the Google Auth Wizard CLI.

Modules log through ``logging.getLogger(__name__)``; the CLI calls
``configure_logging`` once with the level resolved from flags and
``GOOGLE_AUTH_WIZARD_*`` environment switches.
"""

from __future__ import annotations

import enum
import logging
import sys
from typing import TextIO

LOGGER_NAME = "google_auth_wizard"
LOG_PREFIX = "[Google Auth Wizard]"

VERBOSE = 5
logging.addLevelName(VERBOSE, "VERBOSE")


class LogLevel(enum.IntEnum):
    """Wizard verbosity, ordered from quietest to noisiest."""

    SILENT = 0
    ERROR = 1
    INFO = 2
    DEBUG = 3
    VERBOSE = 4

    @property
    def logging_level(self) -> int:
        return {
            LogLevel.SILENT: logging.CRITICAL + 10,
            LogLevel.ERROR: logging.ERROR,
            LogLevel.INFO: logging.INFO,
            LogLevel.DEBUG: logging.DEBUG,
            LogLevel.VERBOSE: VERBOSE,
        }[self]


def resolve_log_level(
    debug: bool = False,
    verbose: bool = False,
    silent: bool = False,
) -> LogLevel:
    """Pick the effective level. Silent wins over verbose, verbose over debug."""
    if silent:
        return LogLevel.SILENT
    if verbose:
        return LogLevel.VERBOSE
    if debug:
        return LogLevel.DEBUG
    return LogLevel.INFO


def configure_logging(
    level: LogLevel = LogLevel.INFO, stream: TextIO | None = None
) -> logging.Logger:
    """Attach a single prefixed stderr handler to the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            f"%(asctime)s {LOG_PREFIX} [%(levelname)s] %(message)s",
            datefmt="%Y/%m/%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    logger.setLevel(level.logging_level)
    logger.propagate = False
    return logger


def is_debug(logger: logging.Logger | None = None) -> bool:
    """True when debug records of the package logger would be emitted."""
    logger = logger or logging.getLogger(LOGGER_NAME)
    return logger.isEnabledFor(logging.DEBUG)
