"""
Error handling for dep-license-report.

Provides the exception types raised between pipeline stages, structured
error logging with credential redaction, and error callbacks so that a single
dependency's failure is recorded without aborting the report.
"""

import logging
import re
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse


class LicenseReportError(Exception):
    """Base class for errors raised by dep-license-report."""


class IndeterminateProbeError(LicenseReportError):
    """No candidate validated and at least one probe reached an unrecognized state."""

    def __init__(self, base_url: str, reasons: List[str]):
        self.base_url = base_url
        self.reasons = reasons
        super().__init__(
            f"License probes for {base_url} reached an unknown state: "
            + "; ".join(reasons)
        )


class CrawlerError(LicenseReportError):
    """The external dependency crawler failed or produced unusable output."""


class ExtraMetadataError(LicenseReportError):
    """The extra metadata file could not be read or parsed."""


class ErrorLevel(Enum):
    """Error severity levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    NETWORK = "NETWORK"
    RESOLUTION = "RESOLUTION"
    PARSING = "PARSING"
    CONFIGURATION = "CONFIGURATION"
    CRAWLER = "CRAWLER"


@dataclass
class ErrorContext:
    """Structured error context information."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None
    traceback_info: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging."""
        return {
            "level": self.level.value,
            "category": self.category.value,
            "message": self.message,
            "module": self.module,
            "function": self.function,
            "details": self.details,
            "exception_type": type(self.exception).__name__ if self.exception else None,
            "exception_message": str(self.exception) if self.exception else None,
            "traceback": self.traceback_info,
            "suggestions": self.suggestions,
        }


# Repository URLs from package metadata occasionally embed access tokens
_SENSITIVE_PATTERNS = [
    (re.compile(r"(https?://[^@\s/]+:)[^@\s/]+@", re.IGNORECASE), r"\1[REDACTED]@"),
    (re.compile(r"(https?://)[^@\s/:]{20,}@", re.IGNORECASE), r"\1[REDACTED]@"),
    (
        re.compile(r'token["\s]*[:=]["\s]*([a-zA-Z0-9_\-+=/.]{8,})', re.IGNORECASE),
        'token="[REDACTED]"',
    ),
    (re.compile(r"Authorization:\s*\w+\s+([^\s]+)", re.IGNORECASE), "Authorization: [REDACTED]"),
]


def sanitize_message(message: str) -> str:
    """Remove credentials from a log message."""
    sanitized = message
    for pattern, replacement in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


class SecureLogger:
    """Logger that redacts credentials before anything reaches a handler."""

    def __init__(self, name: str, level: int = logging.NOTSET):
        """
        Initialize secure logger.

        Args:
            name: Logger name
            level: Logging level, NOTSET to inherit from the package logger
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Outside the package hierarchy nothing configures a handler for us
        if not name.startswith("dep_license_report") and not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(handler)

    def log_error_context(self, context: ErrorContext) -> None:
        """
        Log error context with appropriate level.

        Args:
            context: Error context to log
        """
        log_data: Dict[str, Any] = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": self._sanitize_dict(context.details),
        }

        if context.exception:
            log_data["exception"] = type(context.exception).__name__

        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        log_message = f"{sanitize_message(context.message)} | {log_data}"
        self.logger.log(getattr(logging, context.level.value), log_message)

    def _sanitize_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize dictionary values to remove sensitive info."""
        sanitized: Dict[str, Any] = {}
        sensitive_keys = {"token", "password", "secret", "credential", "auth"}

        for key, value in data.items():
            if any(sensitive_key in key.lower() for sensitive_key in sensitive_keys):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_dict(value)
            elif isinstance(value, str):
                sanitized[key] = sanitize_message(value)
            else:
                sanitized[key] = value

        return sanitized


ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Centralized error handler.

    Every failure absorbed at the dependency level passes through here, so
    callers can observe (and count) what the report silently turned into
    ``null`` license fields.
    """

    def __init__(
        self,
        logger_name: str = "dep_license_report.errors",
        log_level: int = logging.NOTSET,
        enable_callbacks: bool = True,
    ):
        self.logger = SecureLogger(logger_name, log_level)
        self.enable_callbacks = enable_callbacks
        self.error_callbacks: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self.global_callbacks: List[ErrorCallback] = []
        self.error_stats: Dict[str, int] = {}

    def register_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ) -> None:
        """
        Register error callback.

        Args:
            callback: Function to call on errors
            category: Error category to filter, None for all errors
        """
        if not self.enable_callbacks:
            return

        if category is None:
            self.global_callbacks.append(callback)
        else:
            self.error_callbacks.setdefault(category, []).append(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ErrorContext:
        """
        Handle an error with structured logging and callbacks.

        Returns:
            ErrorContext: The created error context
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=(
                "".join(traceback.format_exception_only(type(exception), exception))
                if exception
                else None
            ),
            suggestions=suggestions or [],
        )

        stat_key = f"{category.value}_{level.value}"
        self.error_stats[stat_key] = self.error_stats.get(stat_key, 0) + 1

        self.logger.log_error_context(context)

        if self.enable_callbacks:
            for callback in self.error_callbacks.get(category, []):
                try:
                    callback(context)
                except Exception as cb_error:
                    # Don't let callback errors break the main flow
                    self.logger.logger.error(f"Error in callback: {cb_error}")

            for callback in self.global_callbacks:
                try:
                    callback(context)
                except Exception as cb_error:
                    self.logger.logger.error(f"Error in global callback: {cb_error}")

        return context

    def warning(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle warning level error."""
        return self.handle_error(
            ErrorLevel.WARNING, category, message, module, function, **kwargs
        )

    def error(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle error level error."""
        return self.handle_error(
            ErrorLevel.ERROR, category, message, module, function, **kwargs
        )

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        return self.error_stats.copy()

    def reset_stats(self) -> None:
        """Reset error statistics."""
        self.error_stats.clear()


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """
    Get the global error handler instance.

    Returns:
        ErrorHandler: Global error handler
    """
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def _sanitize_url(url: str) -> str:
    try:
        parsed = urlparse(url)
    except ValueError:
        return "[INVALID URL]"
    sanitized_url = f"{parsed.scheme}://{parsed.hostname}"
    try:
        port = parsed.port
    except ValueError:
        # Unparseable port; keep only the host
        port = None
    if port:
        sanitized_url += f":{port}"
    return sanitized_url + parsed.path


def log_network_error(
    message: str,
    module: str,
    function: str,
    url: Optional[str] = None,
    status_code: Optional[int] = None,
    exception: Optional[Exception] = None,
) -> ErrorContext:
    """
    Convenience function for logging network errors.

    Args:
        message: Error message
        module: Module name
        function: Function name
        url: URL that failed (credentials are stripped)
        status_code: HTTP status code
        exception: Optional exception
    """
    details: Dict[str, Any] = {}
    if url is not None:
        details["url"] = _sanitize_url(url)
    if status_code is not None:
        details["status_code"] = status_code

    return get_error_handler().warning(
        ErrorCategory.NETWORK,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Check network connectivity",
            "Verify the repository URL in the package metadata",
        ],
    )


def log_resolution_error(
    message: str,
    module: str,
    function: str,
    package_name: Optional[str] = None,
    repository: Optional[str] = None,
    exception: Optional[Exception] = None,
) -> ErrorContext:
    """Log a dependency whose license could not be resolved."""
    details: Dict[str, Any] = {}
    if package_name is not None:
        details["package_name"] = package_name
    if repository is not None:
        details["repository"] = repository

    return get_error_handler().warning(
        ErrorCategory.RESOLUTION,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Add the license text through the dependenciesExtra field",
        ],
    )


def log_parsing_error(
    message: str,
    module: str,
    function: str,
    file_path: Optional[str] = None,
    exception: Optional[Exception] = None,
) -> ErrorContext:
    """Convenience function for logging parsing errors."""
    details: Dict[str, Any] = {}
    if file_path is not None:
        details["file_path"] = Path(file_path).name

    return get_error_handler().error(
        ErrorCategory.PARSING,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=["Check that the file is valid JSON"],
    )
