"""
Logging setup for the service.

Modules log through `logging.getLogger(__name__)`; records propagate to the
`ragapi` package logger, which owns the only handler.
"""

import logging
import sys
from typing import Any

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
ROOT_LOGGER = 'ragapi'


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a logger, attaching the stderr handler on first use.

    Args:
        name: Logger name (usually the package name)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger


def resolve_level(level: int | str) -> int:
    """Translate a level name such as "debug" into its numeric value."""
    if isinstance(level, int):
        return level

    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def set_log_level(level: int | str) -> None:
    """
    Set the level of all service loggers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    get_logger(ROOT_LOGGER).setLevel(resolve_level(level))


def uvicorn_log_config(level: int | str) -> dict[str, Any]:
    """Logging config for uvicorn using the service's format and level."""
    level_name = logging.getLevelName(resolve_level(level))
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": level_name, "propagate": False},
            "uvicorn.access": {"handlers": ["default"], "level": level_name, "propagate": False},
        },
    }
