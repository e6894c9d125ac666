"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog


def setup_logging(
    *, json: bool = False, level: str = "INFO", stream: TextIO | None = None
) -> None:
    """Configure structlog for the command-line reader.

    Parameters
    ----------
    json:
        If *True*, output JSON lines.  If *False* (the default), use the
        console renderer, coloured only when *stream* is a terminal.
    level:
        Root log level name (e.g. ``"DEBUG"``, ``"INFO"``).
    stream:
        Where log lines go.  Defaults to stderr so that stdout carries
        only command output.

    Python warnings (such as the ``ResourceWarning`` for a part window
    that was never closed) are routed through the same handler.
    """
    stream = stream or sys.stderr
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
    logging.captureWarnings(True)
