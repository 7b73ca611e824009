"""Structured logging for the paste service."""

import logging
import sys
from pathlib import Path
from typing import List

import structlog

from core.config import Settings

# Loggers whose INFO output duplicates our own request logging
_QUIET_LOGGERS = ("uvicorn.access", "redis")


def _handlers(settings: Settings) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    return handlers


def configure_logging(settings: Settings) -> None:
    """Route structlog through stdlib logging with a JSON or console renderer."""
    level = getattr(logging, settings.log_level)
    logging.basicConfig(format="%(message)s", level=level, handlers=_handlers(settings), force=True)

    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors = [
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            *shared,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            *shared,
            structlog.dev.ConsoleRenderer(colors=False, pad_event=35,
                                          exception_formatter=structlog.dev.plain_traceback),
        ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_store_operation(logger: structlog.BoundLogger, operation: str,
                        key: str, hit: bool = None, **kwargs) -> None:
    """Debug line for one store round trip; ``hit`` only for reads."""
    if hit is not None:
        kwargs["store_hit"] = hit
    logger.debug("Store operation", operation=operation, store_key=key, **kwargs)
