"""Structured logging for the law search engine (structlog, JSON in production)."""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from core.config import get_settings

# Event keys whose values must never reach log output
SECRET_KEYS = frozenset({"api_key", "embedding_api_key", "authorization"})

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "pymongo", "qdrant_client")

QUERY_LOG_CHARS = 100


def add_service_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Tag every event with the service name, version and environment."""
    settings = get_settings()
    event_dict.setdefault("service", settings.APP_NAME)
    event_dict.setdefault("version", settings.APP_VERSION)
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def redact_secrets(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask credentials passed as event keys (per-request embedding keys)."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def setup_logging() -> structlog.BoundLogger:
    """
    Configure structlog once for the process.

    Console output when DEBUG is on in development, one JSON object per line
    otherwise. Chinese statute text is emitted as-is (ensure_ascii=False).

    Returns:
        structlog.BoundLogger: Root logger.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        add_service_context,
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Processor
    if settings.ENVIRONMENT == "development" and settings.DEBUG:
        renderer = structlog.dev.ConsoleRenderer(colors=True)
        processors = [*shared_processors, renderer]
    else:
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
        processors = [*shared_processors, structlog.processors.format_exc_info, renderer]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return structlog.get_logger()


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Logger bound with `logger_name` when a name is given."""
    logger = structlog.get_logger()
    return logger.bind(logger_name=name) if name else logger


class LoggerMixin:
    """Gives a class a `logger` property bound to its class name."""

    @property
    def logger(self) -> structlog.BoundLogger:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(type(self).__name__)
        return self._logger


def search_logger(operation: str, query: Optional[str] = None, **context: Any) -> structlog.BoundLogger:
    """
    Logger bound to one search request.

    Args:
        operation: Operation name, e.g. 'law_search'.
        query: User query; truncated to QUERY_LOG_CHARS.
        **context: Extra key-values (limit, filters, ...).

    Returns:
        structlog.BoundLogger: Request-scoped logger.
    """
    if query is not None:
        context["query"] = query[:QUERY_LOG_CHARS]
    return get_logger().bind(operation=operation, **context)


# Configure on first import
_logger = setup_logging()
