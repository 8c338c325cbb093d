"""Structured logger factory for sparkflow.

Call sites pass context as keyword arguments:

    logger.warning("Template not found", entry="assets/nodes/a.json", key="llmNode")
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional, TextIO

import structlog


class _CurrentStderr:
    """Writes to whatever `sys.stderr` is at call time."""

    def write(self, s: str) -> int:
        return sys.stderr.write(s)

    def flush(self) -> None:
        sys.stderr.flush()


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def configure_logging(level: str | int = "WARNING", *, stream: Optional[TextIO] = None) -> None:
    """Route structured logs to `stream` (stderr by default), dropping events below `level`."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level '{level}'")
        level = resolved
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=stream or _CurrentStderr()),
        cache_logger_on_first_use=False,
    )


# Library use gets stderr output too; the CLI reconfigures with its own level.
if not structlog.is_configured():
    configure_logging()
