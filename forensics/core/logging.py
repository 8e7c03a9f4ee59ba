"""Structured logging for diagnostic runs.

The human-readable report goes to stdout and the report file; structlog
events go to stderr, so piping the report never captures log noise.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

from forensics.core.config import get_settings

# Chatty at INFO: httpx logs every instance-metadata request.
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def _renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_logging(
    level: str | None = None,
    fmt: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog on top of the stdlib root logger.

    Args:
        level: Log level override (e.g. "DEBUG"). Uses config if None.
        fmt: Renderer override ("json" or "console"). Uses config if None.
        stream: Destination for log records. Defaults to stderr.
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.logging.level).upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(fmt or settings.logging.format),
        ],
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def bind_run_context(mode: str, report: str) -> None:
    """Attach the run's mode and report file name to every later log event."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(mode=mode, report=report)


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()
