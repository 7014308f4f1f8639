"""
Logging Configuration for the Retail Marketing Dashboard

Structured logging through structlog on top of the stdlib handlers, so that
uvicorn and SQLAlchemy records share the same renderer. Every event carries
the service name and environment.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter

from retail_analytics.config.settings import Settings, get_settings

# Requests are logged once, by RequestLoggingMiddleware
ACCESS_LOGGERS = ("uvicorn.access", "gunicorn.access")
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "gunicorn.error")
SQL_LOGGER = "sqlalchemy.engine"


def service_context(settings: Settings):
    """Processor stamping each event with the service name and environment."""
    def add_service(logger, method_name, event_dict):
        event_dict.setdefault("service", settings.app_name)
        event_dict.setdefault("environment", settings.app_env)
        return event_dict
    return add_service


def configure_logging(log_level: Optional[str] = None, settings: Optional[Settings] = None) -> None:
    """
    Configure structured logging for the application.

    SQL statements are logged at INFO when POSTGRES_ECHO is set and
    suppressed below WARNING otherwise; uvicorn access lines are dropped in
    favour of the request middleware's events.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        settings: Settings to use instead of get_settings()
    """
    settings = settings or get_settings()
    level = log_level or settings.monitoring.log_level
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        service_context(settings),
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if settings.monitoring.log_format == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    formatter = ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if settings.database.echo else numeric_level)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(console_handler)

    for logger_name in SERVER_LOGGERS:
        server_logger = logging.getLogger(logger_name)
        server_logger.handlers = []
        server_logger.propagate = True
        server_logger.setLevel(numeric_level)

    for logger_name in ACCESS_LOGGERS:
        access_logger = logging.getLogger(logger_name)
        access_logger.handlers = []
        access_logger.setLevel(logging.WARNING)

    logging.getLogger(SQL_LOGGER).setLevel(logging.INFO if settings.database.echo else logging.WARNING)

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=level,
        format=settings.monitoring.log_format,
        sql_echo=settings.database.echo,
    )
