"""Structured logging for the poller process.

Poll cycles bind ``poll_id`` with :func:`structlog.contextvars.bound_contextvars`,
so every line logged by the fetcher, decoder and publisher during a cycle
carries it without the id being threaded through each call.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from structlog.types import EventDict, Processor, WrappedLogger

    from gtfs_rt_poller.config import Settings

from gtfs_rt_poller.config import get_settings

# Event Hub connection strings may surface in client error messages
_SECRET_RE = re.compile(r"\b(SharedAccessKey|sig)=[^;&\s]+", re.IGNORECASE)

# Third-party loggers and the level they run at unless debug is on
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "azure": logging.WARNING,
}


def redact_secrets(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    """Mask Event Hub keys in any string value of the event."""
    for key, value in event_dict.items():
        if isinstance(value, str) and "=" in value:
            event_dict[key] = _SECRET_RE.sub(r"\1=***", value)
    return event_dict


def setup_logging(settings: Settings | None = None) -> None:
    """Route structlog and stdlib logging through one renderer.

    Development gets coloured console output. Every other environment gets
    one JSON object per line.
    """
    settings = settings or get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]

    if settings.environment == "development":
        renderer: Processor = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level.upper())

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(logging.DEBUG if settings.debug else level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.stdlib.get_logger(name)
