"""Structured logging configuration with secret sanitization.

This module configures structlog for the lifecycle manager:
- Configurable log levels and output formats (JSON/console)
- Automatic secret sanitization in log output
- Service and version context on every entry
- Optional file output
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import Any, cast

import structlog

from .security import SecretRedactor, sanitize_for_logging

SERVICE_NAME = "issue-lifecycle"


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_redactor: SecretRedactor | None = None


def _get_redactor() -> SecretRedactor:
    """Get or create the global secret redactor."""
    global _redactor
    if _redactor is None:
        _redactor = SecretRedactor(placeholder="[REDACTED]")
    return _redactor


def sanitize_log_value(value: Any) -> Any:
    """Recursively sanitize secrets and control characters from log values.

    Args:
        value: Value to sanitize (can be nested dict/list/str)

    Returns:
        Sanitized value with secrets redacted
    """
    if isinstance(value, str):
        return _get_redactor().redact(sanitize_for_logging(value))
    elif isinstance(value, dict):
        return {k: sanitize_log_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return type(value)(sanitize_log_value(v) for v in value)
    else:
        return value


def secret_sanitizer(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor to sanitize secrets from log entries."""
    return cast(MutableMapping[str, Any], sanitize_log_value(event_dict))


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Add the service name and version to all log entries."""
    event_dict["service"] = SERVICE_NAME

    try:
        from .._version import __version__

        event_dict["version"] = __version__
    except ImportError:
        pass

    return event_dict


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging

    Example:
        # Interactive dry runs
        configure_logging(level="DEBUG", log_format="console")

        # Scheduled sweeps feeding log aggregation
        configure_logging(level="INFO", log_format="json")
    """
    if isinstance(level, str):
        level = LogLevel(level.upper())
    if isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())

    numeric_level = getattr(logging, level.value)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        secret_sanitizer,
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == LogFormat.JSON:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True, exception_formatter=structlog.dev.plain_traceback
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    handlers.append(console_handler)

    if file_enabled and file_path:
        try:
            file_path = Path(file_path)
            file_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(file_path)
            file_handler.setLevel(numeric_level)
            handlers.append(file_handler)
        except OSError as e:
            # continue with console only
            logging.getLogger("issue_lifecycle.logging").warning(
                f"Could not create log file {file_path}: {e}"
            )

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=handlers,
        force=True,
    )


def bind_context(**kwargs: Any) -> None:
    """Bind contextual variables for all subsequent log calls.

    Example:
        bind_context(run_id="sweep-20240101", dry_run=True)
        log.info("lifecycle_sweep_starting")  # Includes run_id and dry_run
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound contextual variables."""
    structlog.contextvars.clear_contextvars()


class LogEventNames:
    """Standard log event names for consistency.

    Events emitted by the executor are derived from the action kind
    (``add_label_applied``, ``would_close`` and so on).
    """

    # Sweeps
    SWEEP_STARTING = "lifecycle_sweep_starting"
    SWEEP_STATS = "lifecycle_sweep_stats"
    SWEEP_COMPLETE = "lifecycle_sweep_complete"
    SWEEP_FAILED = "lifecycle_sweep_failed"

    # Per issue
    ISSUE_EVALUATED = "issue_evaluated"
    ISSUE_SKIPPED = "issue_skipped"
    ISSUE_PROCESSING_FAILED = "issue_processing_failed"
    ISSUE_ENUMERATION_FAILED = "issue_enumeration_failed"
    POLICY_MISSING = "policy_missing"

    # Configuration
    CONFIG_LOADED = "config_loaded"
    POLICY_DELAY_INVERTED = "policy_delay_inverted"
    NO_LIFECYCLE_POLICIES = "no_lifecycle_policies"

    # Clients
    RETRYING_OPERATION = "retrying_operation"
    RATE_LIMIT_HIT = "rate_limit_hit"
    OPERATION_TIMEOUT = "operation_timeout"

    # Health checks
    HEALTH_CHECK_COMPLETE = "health_check_complete"
    HEALTH_CHECK_FAILED = "health_check_failed"
