"""
Structured logging configuration for dep-license-report.

Events are emitted as JSON lines on stderr, so the report itself can be
written to stdout and piped without interference.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .error_handling import sanitize_message

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
        }
        message = record.getMessage()
        if message:
            log_entry["message"] = sanitize_message(message)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = sanitize_message(value) if isinstance(value, str) else value

        return json.dumps(log_entry, default=str)


class ReportLogger:
    """Event-style logger for one pipeline component."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"dep_license_report.{name}")
        self.run_context: Dict[str, Any] = {}

    def set_run_context(
        self,
        package_name: Optional[str] = None,
        total_dependencies: Optional[int] = None,
    ) -> None:
        """Set run context for logging."""
        self.run_context = {}
        if package_name:
            self.run_context["package"] = package_name
        if total_dependencies is not None:
            self.run_context["total_dependencies"] = total_dependencies

    def clear_run_context(self) -> None:
        self.run_context.clear()

    def _log(self, level: int, event_type: str, **kwargs: Any) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        self.logger.log(level, "", extra=log_data)

    def info(self, event_type: str, **kwargs: Any) -> None:
        """Log info level event."""
        self._log(logging.INFO, event_type, **kwargs)

    def warning(self, event_type: str, **kwargs: Any) -> None:
        """Log warning level event."""
        self._log(logging.WARNING, event_type, **kwargs)

    def error(self, event_type: str, **kwargs: Any) -> None:
        """Log error level event."""
        self._log(logging.ERROR, event_type, **kwargs)

    def debug(self, event_type: str, **kwargs: Any) -> None:
        """Log debug level event."""
        self._log(logging.DEBUG, event_type, **kwargs)


_resolver_logger = ReportLogger("resolver")
_annotator_logger = ReportLogger("annotator")
_report_logger = ReportLogger("report")

_ALL_LOGGERS = [_resolver_logger, _annotator_logger, _report_logger]


def get_resolver_logger() -> ReportLogger:
    """Get license URL probing/resolution logger."""
    return _resolver_logger


def get_annotator_logger() -> ReportLogger:
    """Get per-dependency annotation logger."""
    return _annotator_logger


def get_report_logger() -> ReportLogger:
    """Get report assembly logger."""
    return _report_logger


def set_run_context(
    package_name: Optional[str] = None, total_dependencies: Optional[int] = None
) -> None:
    """Set global run context for all loggers."""
    for logger in _ALL_LOGGERS:
        logger.set_run_context(package_name, total_dependencies)


def clear_run_context() -> None:
    """Clear global run context."""
    for logger in _ALL_LOGGERS:
        logger.clear_run_context()


def configure_logging(
    log_level: str = "INFO",
    enable_json: bool = True,
    quiet: bool = False,
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
) -> None:
    """
    Configure the package logger.

    ``quiet`` raises the threshold to ERROR rather than removing the handler,
    so diagnostics of real failures still reach stderr.
    """
    level = logging.ERROR if quiet else getattr(logging, log_level.upper(), logging.INFO)

    package_logger = logging.getLogger("dep_license_report")
    package_logger.setLevel(level)
    package_logger.propagate = False

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if enable_json:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(log_format))
    package_logger.addHandler(handler)
