"""structlog setup shared by the API process and the seed script."""

import logging
import sys
from typing import Any

import structlog

from verdict import __version__
from verdict.config import Settings

# Third-party loggers that would duplicate or drown our own events
_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}

REQUEST_CONTEXT_KEYS = ("request_id", "account_id")


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "verdict",
    sql_echo: bool = False,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name for both structlog and stdlib loggers
        json_format: JSON lines when True, colored console output otherwise
        service_name: Bound as ``service`` on every event
        sql_echo: Let SQLAlchemy engine logging through at INFO
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for name, floor in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(floor, log_level))
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name, version=__version__)


def configure_from_settings(settings: Settings, json_format: bool | None = None) -> None:
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format == "json" if json_format is None else json_format,
        sql_echo=settings.database_echo,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: str, **kwargs: Any) -> None:
    """Tag subsequent events in this context with the HTTP call's id."""
    structlog.contextvars.bind_contextvars(request_id=request_id, **kwargs)


def clear_request_context() -> None:
    # Leaves service/version bound by configure_logging in place
    structlog.contextvars.unbind_contextvars(*REQUEST_CONTEXT_KEYS)
