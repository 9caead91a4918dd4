"""Structured logging — structlog events rendered through stdlib logging.

Shared by the API server and the ``packsafe`` CLI. Everything goes to
stderr so ``packsafe scan --json`` keeps stdout machine-readable.

Environment:
    PACKSAFE_LOG_LEVEL   business log level (default: INFO)
    PACKSAFE_LOG_FORMAT  console | json (default: console)
"""

from __future__ import annotations

import logging
import logging.config
import os
import sys

import structlog

# chatty dependencies pinned regardless of PACKSAFE_LOG_LEVEL
_PINNED_LEVELS = {
    "uvicorn.access": "WARNING",
    "uvicorn.error": "INFO",
    "sqlalchemy.engine": "WARNING",
    "asyncpg": "WARNING",
    "aiosqlite": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
}


def _pre_chain() -> list[structlog.types.Processor]:
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
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(verbose: bool = False) -> None:
    """Configure structlog and the root stdlib logger.

    *verbose* (the CLI's ``-v``) forces DEBUG over ``PACKSAFE_LOG_LEVEL``.
    """
    level = "DEBUG" if verbose else os.environ.get("PACKSAFE_LOG_LEVEL", "INFO").upper()
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        _renderer(os.environ.get("PACKSAFE_LOG_FORMAT", "console").lower()),
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {"handlers": ["stderr"], "level": level},
            "loggers": {
                "packsafe": {"level": level},
                **{name: {"level": pinned} for name, pinned in _PINNED_LEVELS.items()},
            },
        }
    )
