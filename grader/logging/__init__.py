"""
Logging
=======

Named loggers for the grader. Every record gets a `trace_id` attribute taken
from the current trace context ("-" outside a request), so one submission can
be followed across the API, the grading service and the provider chain.

Usage:
    from grader.logging import get_logger

    logger = get_logger("GradingService")
    logger.info("Cache hit")
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from .trace import get_trace_id

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] [trace=%(trace_id)s] %(message)s"

_configured = False


class TraceIdFilter(logging.Filter):
    """Attach the current trace id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_id() or "-"
        return True


def _default_level() -> str:
    return os.getenv("GRADER_LOG_LEVEL", "INFO").upper()


def configure_logging(level: Optional[str] = None) -> None:
    """Install one stream handler on the root logger (idempotent)."""
    global _configured
    root = logging.getLogger()
    root.setLevel(level or _default_level())
    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(TraceIdFilter())
    root.addHandler(handler)
    _configured = True


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a named logger.

    Args:
        name: Component name, e.g. "GradingService"
        level: Level for this logger; defaults to GRADER_LOG_LEVEL

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level or _default_level())
    return logger


__all__ = ["LOG_FORMAT", "TraceIdFilter", "configure_logging", "get_logger"]
