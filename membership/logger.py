"""
structlog setup shared by the reconcilers and the CLI.

- configure_logging(): installs processors once per process and binds run_id.
- get_logger(): returns a named FilteringBoundLogger.
"""

from __future__ import annotations

import logging
import sys
from uuid import uuid4

import structlog
from structlog.contextvars import bind_contextvars
from structlog.typing import FilteringBoundLogger


def configure_logging(level: str = "INFO", *, json_output: bool = False) -> str:
    """Configure structlog and return the run id bound to every log line."""
    level_no = logging.getLevelName(level.upper())
    if not isinstance(level_no, int):
        raise ValueError(f"Unknown log level: {level!r}")

    renderer: structlog.typing.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    run_id = uuid4().hex[:12]
    bind_contextvars(run_id=run_id)
    return run_id


def get_logger(name: str) -> FilteringBoundLogger:
    return structlog.get_logger(name).bind(logger=name)


__all__ = ["configure_logging", "get_logger"]
