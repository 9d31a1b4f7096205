"""Tests for health check utilities."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from issue_lifecycle.config.schema import BotConfig
from issue_lifecycle.utils.health import CheckResult, HealthChecker, HealthReport, HealthStatus


def make_config(zenhub: bool = True, lifecycle: bool = True, repos: bool = True) -> BotConfig:
    data: dict = {}
    if repos:
        data["orgs"] = [{"name": "istio", "repos": [{"name": "istio"}]}]
    if lifecycle:
        data["lifecycle"] = [{}]
    if zenhub:
        data["zenhub"] = {"token": "zh-token"}
    return BotConfig.model_validate(data)


class TestHealthReport:
    """Tests for HealthReport."""

    def test_health_report_to_dict(self) -> None:
        """Test serializing a report."""
        timestamp = datetime(2024, 6, 1, tzinfo=UTC)
        report = HealthReport(
            healthy=True,
            status=HealthStatus.DEGRADED,
            timestamp=timestamp,
            checks=[
                CheckResult(
                    name="config",
                    status=HealthStatus.DEGRADED,
                    message="ZenHub not configured",
                    details={"repos": 1},
                )
            ],
        )

        data = report.to_dict()

        assert data["status"] == "degraded"
        assert data["timestamp"] == "2024-06-01T00:00:00+00:00"
        assert data["checks"][0] == {
            "name": "config",
            "status": "degraded",
            "message": "ZenHub not configured",
            "latency_ms": None,
            "details": {"repos": 1},
        }


class TestHealthChecker:
    """Tests for HealthChecker."""

    async def test_all_healthy(self) -> None:
        """Test a fully configured, reachable deployment."""
        checker = HealthChecker(
            make_config(),
            github_check=AsyncMock(return_value=True),
            zenhub_check=AsyncMock(return_value=True),
        )

        report = await checker.run_all_checks()

        assert report.healthy
        assert report.status == HealthStatus.HEALTHY
        assert [c.name for c in report.checks] == ["config", "github_auth", "zenhub"]
        assert report.checks[1].latency_ms is not None

    async def test_no_repos_is_unhealthy(self) -> None:
        """Test that nothing to sweep is unhealthy."""
        report = await HealthChecker(make_config(repos=False)).run_all_checks()

        assert not report.healthy
        assert report.checks[0].status == HealthStatus.UNHEALTHY

    @pytest.mark.parametrize(
        ("config", "message"),
        [
            (make_config(lifecycle=False), "No lifecycle records"),
            (make_config(zenhub=False), "ZenHub not configured"),
        ],
    )
    async def test_degraded_config(self, config: BotConfig, message: str) -> None:
        """Test configurations that run with reduced behaviour."""
        report = await HealthChecker(config).run_all_checks()

        assert report.healthy
        assert report.status == HealthStatus.DEGRADED
        assert report.checks[0].message.startswith(message)

    async def test_unconfigured_checks_pass(self) -> None:
        """Test that missing connection checks are reported as not configured."""
        report = await HealthChecker(make_config()).run_all_checks()

        assert report.checks[1].message == "Not configured"
        assert report.status == HealthStatus.HEALTHY

    async def test_github_auth_failure(self) -> None:
        """Test that an unauthenticated gh is unhealthy."""
        checker = HealthChecker(make_config(), github_check=AsyncMock(return_value=False))

        report = await checker.run_all_checks()

        assert report.status == HealthStatus.UNHEALTHY
        assert report.checks[1].status == HealthStatus.UNHEALTHY

    async def test_check_exception(self) -> None:
        """Test that a raising check is unhealthy, not fatal."""
        checker = HealthChecker(
            make_config(), zenhub_check=AsyncMock(side_effect=RuntimeError("dns failure"))
        )

        report = await checker.run_all_checks()

        assert report.checks[2].status == HealthStatus.UNHEALTHY
        assert "dns failure" in report.checks[2].message
        assert not report.healthy
