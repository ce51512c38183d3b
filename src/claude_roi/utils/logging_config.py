"""Centralized logging configuration for the command line entry point."""

import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Generator, Optional

SIMPLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
)

LOG_LEVEL_ENV = "CLAUDE_ROI_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once for the whole process.

    Args:
        level: Log level override. If not provided, uses CLAUDE_ROI_LOG_LEVEL or WARNING.
    """
    level_name = (level or os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    log_level = getattr(logging, level_name, logging.WARNING)

    # Line numbers only at DEBUG
    fmt = DETAILED_FORMAT if log_level == logging.DEBUG else SIMPLE_FORMAT

    logging.basicConfig(
        level=log_level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


@contextmanager
def log_timing(
    logger: logging.Logger, operation: str, level: int = logging.DEBUG
) -> Generator[None, None, None]:
    """Log how long the wrapped block took.

    Example:
        with log_timing(logger, "Git analysis"):
            history = analyze_git_repo(path, days)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.log(level, "%s completed in %.1fms", operation, duration_ms)
