"""Structured logging configuration — structlog + stdlib logging."""

from __future__ import annotations

import logging
import logging.config
import os
import sys

import structlog

_QUIET_LEVEL = logging.WARNING


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_default_logging() -> None:
    """Library default: warnings and above to stderr, nothing else.

    Leaves an existing structlog configuration (the host application's, or
    :func:`setup_logging`) untouched.
    """
    if structlog.is_configured():
        return
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_QUIET_LEVEL),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def setup_logging(level: str | None = None) -> None:
    """Route structlog through stdlib logging on stderr.

    Reads from environment variables:
        DEPSWEEP_LOG_LEVEL  — engine log level (default: WARNING)
        DEPSWEEP_LOG_FORMAT — console | json (default: console)

    An explicit *level* (e.g. from ``--verbose``) overrides the environment.
    """
    log_level = (level or os.environ.get("DEPSWEEP_LOG_LEVEL", "WARNING")).upper()
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stdout is reserved for the --json report
    formatter = {
        "()": structlog.stdlib.ProcessorFormatter,
        "foreign_pre_chain": shared,
        "processors": [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(os.environ.get("DEPSWEEP_LOG_FORMAT", "console").lower()),
        ],
    }
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"structlog": formatter},
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {"handlers": ["stderr"], "level": log_level},
            "loggers": {"depsweep": {"level": log_level}},
        }
    )
