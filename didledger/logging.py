import logging
import logging.config
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional
from uuid import uuid4

from didledger.config import settings

"""
Configures and provides logging for didledger.

This module sets up structured JSON logging by default (or text logging if configured)
and provides an operation context that stamps a unique operation ID on every log entry
emitted while a lifecycle operation (create, revoke, verify, ...) is running.
"""

_operation_id: ContextVar[str] = ContextVar("operation_id", default="-")


class OperationIdFilter(logging.Filter):
    """Adds the current `operation_id` to every record so formatters can rely on it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "operation_id"):
            record.operation_id = _operation_id.get()
        return True


def configure_logging():
    """Configures application-wide logging.

    Sets up logging format (JSON or text), level, and handlers based on `settings`.
    It configures handlers for the root logger, the application logger named after
    `settings.app_name` and the 'didledger' package logger, plus SQLAlchemy's engine logger.
    """
    log_format = settings.log_format.lower()
    if log_format not in ["json", "text"]:
        # Logging is not configured yet at this point.
        print(f"WARNING: Invalid log_format '{settings.log_format}' in settings. Falling back to 'text'.")
        log_format = "text"

    level = settings.log_level.upper()

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "operation_id": {"()": OperationIdFilter},
        },
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": "%(asctime)s %(levelname)s %(name)s %(message)s %(operation_id)s",
                "rename_fields": {"levelname": "level", "asctime": "timestamp"},
            },
            "text": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - [%(operation_id)s] - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": log_format,
                "filters": ["operation_id"],
                "level": level,
                "stream": "ext://sys.stderr"
            }
        },
        "loggers": {
            settings.app_name: {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
            "didledger": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "handlers": ["console"],
                "level": "INFO" if settings.debug else "WARNING",
                "propagate": False,
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level,
        }
    }
    logging.config.dictConfig(logging_config)

def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    If `name` is not provided, it defaults to the application name defined in settings,
    or 'didledger' as a fallback if app_name is empty.

    Args:
        name: The name for the logger. Defaults to `settings.app_name` or 'didledger'.

    Returns:
        A configured `logging.Logger` instance.
    """
    default_logger_name = settings.app_name if settings.app_name else "didledger"
    logger_name = name or default_logger_name
    return logging.getLogger(logger_name)

def current_operation_id() -> str:
    return _operation_id.get()

@contextmanager
def operation_context(operation: str, **fields) -> Iterator[str]:
    """Runs a block under a fresh operation ID and logs its start.

    Nested contexts keep the outer ID so that a DID revocation and the
    credential revocations it cascades into share one ID.

    Args:
        operation: Short operation name, e.g. "did.create".
        **fields: Extra structured fields for the start log entry.

    Yields:
        str: The operation ID in effect inside the block.
    """
    outer = _operation_id.get()
    if outer != "-":
        yield outer
        return

    operation_id = str(uuid4())
    token = _operation_id.set(operation_id)
    try:
        get_logger().info(
            f"Starting operation: {operation}",
            extra={"operation": operation, **fields},
        )
        yield operation_id
    finally:
        _operation_id.reset(token)

configure_logging()
