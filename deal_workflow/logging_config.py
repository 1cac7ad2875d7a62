"""
Logging setup.

Loguru is the single logging backend. Records from the stdlib ``logging``
module (uvicorn, fastapi) are intercepted and routed through it.
"""

import logging
import sys

from loguru import logger

from .config import get_log_level, use_json_logs


def setup_logging() -> None:
    """Configure Loguru and intercept stdlib logging. Call once at startup."""
    logger.remove()

    level = get_log_level()
    if use_json_logs():
        logger.add(sys.stderr, level=level, format="{message}", serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=level,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan> | "
                "{message}"
            ),
            colorize=True,
        )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger.debug("Logging configured at {}", level)


class _InterceptHandler(logging.Handler):
    """Route stdlib logging records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip frames inside the logging module so Loguru reports the caller
        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())
