"""Structured logging configuration using structlog.

Stdout is the output sink for forwarded log lines, so every diagnostic
(ours and those of uvicorn, aiohttp and kubernetes-asyncio, which log through
the standard library) is rendered as JSON on stderr.

Nothing is emitted before ``setup_logging``: module-level loggers are lazy
proxies, and ``ReflowApp.start`` configures logging before its first log
call (including on the config-error path).
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

_NOISY_LOGGERS = ("aiohttp.access", "kubernetes_asyncio", "uvicorn.access")

_SHARED_PROCESSORS: list[structlog.typing.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
]


class _StderrHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Marker type so repeated setup replaces, not stacks, our handler."""


def setup_logging(level: str = "info", stream: TextIO | None = None) -> None:
    """Configure structlog and stdlib logging for JSON output to *stream*.

    *stream* defaults to ``sys.stderr`` and must never be stdout.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    stream = stream or sys.stderr

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    # Third-party libraries log through the stdlib; render them the same way
    handler = _StderrHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[structlog.stdlib.add_logger_name, *_SHARED_PROCESSORS],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    root = logging.getLogger()
    for existing in [h for h in root.handlers if isinstance(h, _StderrHandler)]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    # Set log levels for third-party libraries
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
