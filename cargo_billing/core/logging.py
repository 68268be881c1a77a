"""
Logging setup for the cargo billing core.

Operators get timestamped lines with module names; everyone else gets
short level-prefixed lines.
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Generator, Optional

TECHNICAL_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
BUSINESS_FORMAT = "%(levelname)s: %(message)s"

NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite", "asyncio")


def setup_logging(level: str = "INFO", technical: bool = False) -> logging.Logger:
    """
    Configure root logging to stdout and quiet third-party libraries.

    Args:
        level: Level name for the application loggers
        technical: Use the detailed format with timestamps and module names

    Returns:
        The package logger
    """
    logging.basicConfig(
        level=level,
        format=TECHNICAL_FORMAT if technical else BUSINESS_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("cargo_billing")
    logger.setLevel(level)
    logger.info(f"🔧 Logging configured at {level}")
    return logger


def _format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    return f"{int(seconds // 60)}m {seconds % 60:.1f}s"


@contextmanager
def time_operation(name: str, logger: Optional[logging.Logger] = None) -> Generator[None, None, None]:
    """
    Log the start of an operation, then its completion or failure with the elapsed time.

    Example:
        with time_operation("Saving 120 records", logger):
            ...
    """
    logger = logger or logging.getLogger("cargo_billing")
    logger.info(f"⏱️  Starting: {name}")
    start = time.perf_counter()
    try:
        yield
    except BaseException:
        logger.error(f"❌ Failed: {name} after {_format_duration(time.perf_counter() - start)}")
        raise
    logger.info(f"✅ Completed: {name} in {_format_duration(time.perf_counter() - start)}")
