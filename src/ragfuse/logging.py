"""Structured logging for ragfuse using structlog.

Log lines emitted while a search request is in flight carry that request's
``request_id`` (see :func:`request_context`), so the retrieval, fusion and
rerank events of one query can be grouped together.
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager

import structlog

from ragfuse.config import RagFuseConfig

# Model-loading libraries are chatty at INFO
QUIET_LOGGERS = ("transformers", "sentence_transformers", "urllib3", "httpx", "filelock")


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog with human-readable or JSON output on stderr."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared_processors,
        )
    )

    # stdout stays free for the CLI's JSON output
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, log_level))


def setup_logging_from_config(
    config: RagFuseConfig, level: str | None = None, json_output: bool | None = None
) -> None:
    """Configure logging from ``RAGFUSE_LOG_LEVEL`` / ``RAGFUSE_LOG_JSON``.

    Explicit *level* / *json_output* (e.g. CLI flags) take precedence.
    """
    setup_logging(
        level=level or config.log_level,
        json_output=config.log_json if json_output is None else json_output,
    )


def request_context(**values) -> AbstractContextManager:
    """Bind *values* onto every log line emitted inside the ``with`` block."""
    return structlog.contextvars.bound_contextvars(**values)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger."""
    return structlog.get_logger(name)
