"""Logging configuration for the application."""

import json
import logging
import logging.config
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

# Context variable for correlation ID
correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

# Attributes every LogRecord carries; anything else was passed via ``extra``
_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName', 'message',
    'exc_info', 'exc_text', 'stack_info', 'correlation_id', 'asctime',
})


class CorrelationIdFormatter(logging.Formatter):
    """Custom formatter that includes correlation ID in log records."""

    def format(self, record: logging.LogRecord) -> str:
        record.correlation_id = correlation_id.get() or "N/A"
        return super().format(record)


class StructuredFormatter(CorrelationIdFormatter):
    """JSON formatter for structured logging.

    Values that are not JSON serializable are rendered with ``str``, which
    keeps ``SecretStr`` credentials masked.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": correlation_id.get() or "N/A",
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith('_'):
                continue
            log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def get_logging_config(log_level: str = "INFO", log_format: str = "json") -> Dict[str, Any]:
    """Build a dictConfig for the given level and format."""
    log_level = log_level.upper()

    if log_format == "json":
        formatter_config = {
            "()": "oncall_alert_service.config.logging.StructuredFormatter",
            "datefmt": "%Y-%m-%dT%H:%M:%S",
        }
    else:
        formatter_config = {
            "()": "oncall_alert_service.config.logging.CorrelationIdFormatter",
            "format": "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": formatter_config,
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "default",
                "level": log_level,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "oncall_alert_service": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
            # httpx logs every request URL at INFO
            "httpx": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Setup logging configuration."""
    logging.config.dictConfig(get_logging_config(log_level, log_format))


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def set_correlation_id(corr_id: str) -> None:
    """Set correlation ID in context."""
    correlation_id.set(corr_id)


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID from context."""
    return correlation_id.get()


class LoggingService:
    """Service for consistent logging across the application."""

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def log_operation(self, level: str, message: str, operation: Optional[str] = None,
                      number: Optional[str] = None, schedule: Optional[str] = None,
                      error: Optional[str] = None, **kwargs) -> None:
        """Log operation with consistent format.

        Args:
            level: Log level (info, warning, error, debug)
            message: Log message
            operation: Operation name
            number: Phone number involved in the operation
            schedule: Schedule identifier involved in the operation
            error: Error message if applicable
            **kwargs: Additional fields to log
        """
        extra = {}
        if operation:
            extra['operation'] = operation
        if number:
            extra['number'] = number
        if schedule:
            extra['schedule'] = schedule
        if error:
            extra['error'] = error

        extra.update(kwargs)

        log_method = getattr(self.logger, level.lower())
        log_method(message, extra=extra)

    def log_dispatch_outcome(self, number: str, outcome: str,
                             detail: Optional[str] = None, **kwargs) -> None:
        """Log the outcome of one dialed number.

        Successful calls are logged at info, anything else at warning.
        """
        self.log_operation(
            "info" if outcome == "success" else "warning",
            f"Dial {outcome}",
            operation="dial_number",
            number=number,
            error=detail,
            outcome=outcome,
            **kwargs
        )

    def log_error(self, message: str, error: Exception, operation: Optional[str] = None,
                  **kwargs) -> None:
        """Log error with consistent format.

        Args:
            message: Error message
            error: Exception object
            operation: Operation name if applicable
            **kwargs: Additional fields
        """
        self.log_operation(
            "error",
            message,
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **kwargs
        )
