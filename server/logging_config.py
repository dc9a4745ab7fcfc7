"""Logging setup for the agent server."""

import logging
import os
import sys

from core.timing import log_timing

SIMPLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
)

LOG_LEVEL_ENV = "LOG_LEVEL"
LOG_FORMAT_ENV = "LOG_FORMAT"

DEFAULT_LOG_LEVEL = "INFO"

# Loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "anthropic", "pydantic_ai", "uvicorn.access")

__all__ = ["setup_logging", "log_timing"]


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger.

    DEBUG (or ``LOG_FORMAT=detailed``) switches to a format with function
    names and line numbers.

    Args:
        level: Log level override. If not provided, uses LOG_LEVEL env var or INFO.
    """
    level_name = (level or os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    detailed = log_level == logging.DEBUG or os.environ.get(LOG_FORMAT_ENV, "").lower() == "detailed"

    logging.basicConfig(
        level=log_level,
        format=DETAILED_FORMAT if detailed else SIMPLE_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
