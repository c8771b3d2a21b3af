"""
zipunlock Logger - Centralized Logging Utility
Console output stays at INFO unless ZIPUNLOCK_LOG_LEVEL or a -v flag
asks for more.
"""
import logging
import os
import sys

LOGGER_NAME = "zipunlock"
LEVEL_ENV = "ZIPUNLOCK_LOG_LEVEL"


def _console_level() -> int:
    name = os.environ.get(LEVEL_ENV, "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logger():
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    if not logger.handlers:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(_console_level())
        # Clean output for CLI
        console.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(console)

    return logger


def set_verbose(verbose: bool = True):
    """Show per-entry debug lines on the console"""
    level = logging.DEBUG if verbose else _console_level()
    for handler in logger.handlers:
        handler.setLevel(level)


# Initialize singleton
logger = setup_logger()

__all__ = ["logger", "set_verbose"]
