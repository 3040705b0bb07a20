"""Structured logging for rikka_import.

Every import run binds its backup path, restore mode and conflict policy
into the structlog context, so phase events (``providers_imported``,
``conversations_imported``, ``import_warning`` ...) can be traced back to
the run that produced them.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

__all__ = [
    "configure_logging",
    "get_logger",
    "import_run_context",
]

# Driver loggers that are chatty at INFO
_QUIET_LOGGERS = ("motor", "pymongo", "redis")


def configure_logging(
    level: int = logging.INFO,
    json_output: bool = False,
    add_timestamp: bool = True,
) -> None:
    """Configure structlog for the importer.

    Log lines go to stderr; stdout is left to callers that print results.

    Args:
        level: Logging level (default: INFO)
        json_output: If True, output JSON; if False, pretty console output
        add_timestamp: If True, add ISO timestamp to log entries
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured structlog logger.

    Args:
        name: Logger name (usually __name__ of the calling module)

    Returns:
        Configured structlog BoundLogger instance
    """
    return structlog.get_logger(name)


@contextmanager
def import_run_context(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` to every log event emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield


_configured = False


def _ensure_configured() -> None:
    global _configured
    if not _configured:
        configure_logging()
        _configured = True


_ensure_configured()
