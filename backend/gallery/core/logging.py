"""
Structured logging setup.

Configures structlog once at startup: JSON lines in production, console
rendering everywhere else. Request-scoped values (correlation id, user id)
are carried through ``structlog.contextvars``.
"""

import logging
import sys
from typing import Optional

import structlog

from .config import Settings

_configured = False


def configure_logging(settings: Settings, force: bool = False) -> None:
    """Configure stdlib logging and structlog processors."""
    global _configured
    if _configured and not force:
        return

    log_format = settings.LOG_FORMAT
    if log_format == "auto":
        log_format = "json" if settings.is_production else "console"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    )

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True


def bind_request_context(
    correlation_id: str, user_id: Optional[str] = None
) -> None:
    """Bind request-scoped values to every log line emitted in this context."""
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    if user_id:
        structlog.contextvars.bind_contextvars(user_id=user_id)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
