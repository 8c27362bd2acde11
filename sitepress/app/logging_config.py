############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# logging_config.py: Structured logging configuration using structlog
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Structured logging for sitepress.

Application code logs through structlog (get_logger); library loggers
(uvicorn, SQLAlchemy, httpx) go through the standard library. Both end up in
the same ProcessorFormatter so every line has the same shape.
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from sitepress.app.settings import Settings, get_settings

# Event keys whose values are credentials
REDACTED_KEYS = frozenset({
    "authorization",
    "api_key",
    "apikey",
    "service_key",
    "internal_api_token",
    "token",
})

REDACTED = "***"

# Per-request chatter from the HTTP clients and Pillow's plugin loader
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "PIL")


def redact_credentials(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask storage, translation and webhook credentials in log events."""
    for key in event_dict:
        if key.lower() in REDACTED_KEYS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def service_info(settings: Settings) -> Processor:
    """Processor stamping the service name and version on each event."""
    info = {"service": settings.app_name, "version": settings.app_version}

    def add_service_info(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in info.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_info


def _shared_processors(settings: Settings) -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        service_info(settings),
        redact_credentials,
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def _handlers(settings: Settings, formatter: logging.Formatter, level: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
    return handlers


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure structlog and the root logger from settings."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    shared = _shared_processors(settings)

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(settings.log_format),
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers = _handlers(settings, formatter, level)
    root_logger.setLevel(level)

    for logger_name in QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    # SQL echo is controlled by database_echo, not the root level
    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_request_context(**kwargs: Any) -> None:
    """Bind request-scoped fields (request_id, path) to later log events."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
