"""structlog setup shared by the CLI and tests."""

import sys
from typing import Any

import structlog

from .config import LogLevel


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger, never captured at configure time
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: str = "warning") -> None:
    """Route structlog output to stderr, dropping events below `level`."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(LogLevel.from_string(level)),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
