"""Health check utilities for the lifecycle manager.

This module checks that a sweep can run:
- Configuration names repositories and lifecycle records
- The gh CLI is installed and authenticated
- The ZenHub API is reachable with the configured token (if configured)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from ..config.schema import BotConfig

log = structlog.get_logger()

ConnectionCheck = Callable[[], Awaitable[bool]]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class CheckResult:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    message: str
    latency_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthReport:
    """Overall health report."""

    healthy: bool
    status: HealthStatus
    timestamp: datetime
    checks: list[CheckResult]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "healthy": self.healthy,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "checks": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                    "details": c.details,
                }
                for c in self.checks
            ],
        }


class HealthChecker:
    """Performs health checks on the manager's dependencies.

    Example:
        checker = HealthChecker(config, github_check=github.check_connection)
        report = await checker.run_all_checks()
        sys.exit(0 if report.healthy else 1)
    """

    def __init__(
        self,
        config: BotConfig,
        github_check: ConnectionCheck | None = None,
        zenhub_check: ConnectionCheck | None = None,
    ) -> None:
        """Initialize the health checker.

        Args:
            config: Application configuration
            github_check: Returns True if gh is authenticated
            zenhub_check: Returns True if ZenHub accepts the token
        """
        self._config = config
        self._github_check = github_check
        self._zenhub_check = zenhub_check

    async def run_all_checks(self) -> HealthReport:
        """Run all health checks and return a report."""
        start_time = datetime.now(UTC)

        results = await asyncio.gather(
            self._check_config(),
            self._check_connection("github_auth", self._github_check, "gh CLI authenticated"),
            self._check_connection("zenhub", self._zenhub_check, "ZenHub reachable"),
        )
        checks = list(results)

        if all(c.status == HealthStatus.HEALTHY for c in checks):
            status = HealthStatus.HEALTHY
        elif any(c.status == HealthStatus.UNHEALTHY for c in checks):
            status = HealthStatus.UNHEALTHY
        else:
            status = HealthStatus.DEGRADED

        report = HealthReport(
            healthy=status != HealthStatus.UNHEALTHY,
            status=status,
            timestamp=start_time,
            checks=checks,
        )

        log.info(
            "health_check_complete",
            healthy=report.healthy,
            status=status.value,
            checks_run=len(checks),
        )
        return report

    async def _check_config(self) -> CheckResult:
        repos = self._config.repo_names()
        details = {"repos": len(repos), "lifecycle_records": len(self._config.lifecycle)}

        if not repos:
            return CheckResult(
                name="config",
                status=HealthStatus.UNHEALTHY,
                message="No repositories configured",
                details=details,
            )

        if not self._config.lifecycle:
            return CheckResult(
                name="config",
                status=HealthStatus.DEGRADED,
                message="No lifecycle records configured; sweeps will do nothing",
                details=details,
            )

        if self._config.zenhub is None:
            return CheckResult(
                name="config",
                status=HealthStatus.DEGRADED,
                message="ZenHub not configured; every issue is treated as unclassified",
                details=details,
            )

        return CheckResult(
            name="config",
            status=HealthStatus.HEALTHY,
            message="Configuration valid",
            details=details,
        )

    async def _check_connection(
        self,
        name: str,
        check: ConnectionCheck | None,
        ok_message: str,
    ) -> CheckResult:
        if check is None:
            return CheckResult(name=name, status=HealthStatus.HEALTHY, message="Not configured")

        start = time.monotonic()
        try:
            ok = await check()
        except Exception as e:
            log.warning("health_check_failed", check=name, error=str(e))
            return CheckResult(
                name=name,
                status=HealthStatus.UNHEALTHY,
                message=f"Check failed: {e}",
            )
        latency = (time.monotonic() - start) * 1000

        if ok:
            return CheckResult(
                name=name, status=HealthStatus.HEALTHY, message=ok_message, latency_ms=latency
            )
        return CheckResult(
            name=name,
            status=HealthStatus.UNHEALTHY,
            message=f"{name} check did not pass",
            latency_ms=latency,
        )
