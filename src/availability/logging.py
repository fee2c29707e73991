"""structlog setup for the availability scripts.

Events are snake_case names with keyword context, e.g.
log.info("batch_built", mutations=3). Scripts print their reports to stdout;
everything logged here goes to stderr so the two never interleave.
"""

import logging
import sys
from typing import TextIO

import structlog


def setup_logging(
    json_output: bool = False,
    log_level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and route stdlib loggers (requests, urllib3) to the same stream.

    Args:
        json_output: Emit one JSON object per event instead of console lines.
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL. Unknown names fall back to INFO.
        stream: Output stream, stderr when omitted.
    """
    out = stream or sys.stderr
    level = getattr(logging, log_level.upper(), logging.INFO)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=out.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.set_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.handlers = [logging.StreamHandler(out)]
    root.setLevel(level)


def bind_run(**context) -> None:
    """Attach context (week_id, kind, ...) to every event logged by this run."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**{k: v for k, v in context.items() if v is not None})


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
