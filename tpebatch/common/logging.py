"""
Structured logging configuration for the optimization harness.

This module provides JSON-structured logging for machine-readable run logs,
a plain-text alternative for interactive use, and helpers for logging
trial and system events.
"""

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Optional
from contextlib import contextmanager

from .config import get_settings


_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'message', 'exc_info',
    'exc_text', 'stack_info', 'getMessage', 'taskName'
}


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def __init__(self, service_name: str = "unknown"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        # Base log entry
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": self.service_name,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Add exception information if present
        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        # Add extra fields if present
        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, separators=(',', ':'))


def setup_logging(
    service_name: str,
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging for the harness.

    Handlers are attached to the `tpebatch` package logger so every module
    logger (`logging.getLogger(__name__)`) inherits them.

    Args:
        service_name: Name stamped on every JSON record
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: 'json' or 'text'

    Returns:
        Configured package logger
    """
    settings = get_settings()

    if log_level is None:
        log_level = settings.logging.level
    if log_format is None:
        log_format = settings.logging.format

    level = getattr(logging, log_level.upper())

    logger = logging.getLogger("tpebatch")
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if log_format == "json":
        console_handler.setFormatter(JSONFormatter(service_name))
    else:
        console_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
    logger.addHandler(console_handler)

    # Optuna is chatty at INFO; keep its own warnings only
    logging.getLogger("optuna").setLevel(logging.WARNING)

    logger.info(f"Logging initialized for service: {service_name}")
    return logger


@contextmanager
def log_execution_time(logger: logging.Logger, operation: str, level: int = logging.INFO):
    """
    Context manager to log execution time of operations.

    Args:
        logger: Logger instance
        operation: Description of the operation
        level: Log level
    """
    start_time = time.time()
    try:
        yield
        execution_time = (time.time() - start_time) * 1000  # Convert to milliseconds
        logger.log(level, f"{operation} completed", extra={
            "operation": operation,
            "execution_time_ms": round(execution_time, 2)
        })
    except Exception as e:
        execution_time = (time.time() - start_time) * 1000
        logger.error(f"{operation} failed", extra={
            "operation": operation,
            "execution_time_ms": round(execution_time, 2),
            "error": str(e)
        })
        raise


def log_trial_event(
    logger: logging.Logger,
    event_type: str,
    trial: int,
    level: int = logging.INFO,
    **kwargs
):
    """
    Log trial-level events with structured data.

    Args:
        logger: Logger instance
        event_type: Type of trial event (new_best, tell_rejected, evaluation_failed, ...)
        trial: Zero-based trial number
        level: Log level
        **kwargs: Additional event data
    """
    logger.log(level, f"Trial event: {event_type}", extra={
        "event_type": event_type,
        "trial": trial,
        "trial_data": kwargs
    })


def log_system_event(
    logger: logging.Logger,
    event_type: str,
    **kwargs: Any
):
    """
    Log system events with structured data.

    Args:
        logger: Logger instance
        event_type: Type of system event (run_started, run_completed, run_aborted, ...)
        **kwargs: Additional event data
    """
    logger.info(f"System event: {event_type}", extra={
        "event_type": event_type,
        "system_data": kwargs
    })
