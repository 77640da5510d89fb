"""
Logger setup shared by every stampcut module.

Each module asks for ``get_logger(__name__)``. The library stays quiet at
WARNING, the CLI reports progress at INFO, and ``STAMPCUT_LOG_LEVEL``
overrides both.
"""

import logging
import os

PACKAGE_LOGGER = "stampcut"
LOG_LEVEL_ENV = "STAMPCUT_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _default_level(name: str) -> int:
    if name.endswith(".cli"):
        return logging.INFO
    return logging.WARNING


def resolve_level(name: str) -> int:
    """Level for logger ``name``: the env override if it names a real level, else the default."""
    default_level = _default_level(name)
    level_name = os.getenv(LOG_LEVEL_ENV)
    if not level_name:
        return default_level

    level = logging.getLevelName(level_name.strip().upper())
    if not isinstance(level, int):
        return default_level
    return level


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolve_level(name))
    return logger


def set_verbose(verbose: bool = True) -> None:
    """Switch every stampcut logger created so far to DEBUG, or back to its resolved level."""
    for name in list(logging.root.manager.loggerDict):
        if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
            continue
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG if verbose else resolve_level(name))
