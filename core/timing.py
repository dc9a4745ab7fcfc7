"""Timing helpers for logging slow operations."""

import logging
import time
from contextlib import contextmanager
from typing import Generator


@contextmanager
def log_timing(
    logger: logging.Logger, operation: str, level: int = logging.DEBUG
) -> Generator[None, None, None]:
    """Context manager for timing operations.

    Args:
        logger: Logger instance to use.
        operation: Name of the operation being timed.
        level: Log level for the timing message (default: DEBUG).

    Example:
        with log_timing(logger, "Model stream"):
            await consume(stream)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.log(level, "%s completed in %.1fms", operation, duration_ms)
