"""Utility functions and helpers.

This module provides various utilities for the lifecycle manager:
- security: Secret redaction, input validation
- gh_cli: Safe gh CLI execution
- async_helpers: Async retry, rate limiting, timeouts
- logging: Structured logging with secret sanitization
- health: Health check utilities
- metrics: Application metrics collection
"""

from issue_lifecycle.utils.health import (
    HealthChecker,
    HealthReport,
    HealthStatus,
)
from issue_lifecycle.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
)
from issue_lifecycle.utils.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    Timer,
    get_metrics,
)
from issue_lifecycle.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
)

__all__ = [
    # Metrics
    "Counter",
    "Gauge",
    # Health
    "HealthChecker",
    "HealthReport",
    "HealthStatus",
    "Histogram",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "MetricsRegistry",
    # Security
    "RedactionError",
    "SecretRedactor",
    "SecurityError",
    "Timer",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_metrics",
]
