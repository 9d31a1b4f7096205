"""Tests for the command line entry point."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from issue_lifecycle.__main__ import parse_args, run
from issue_lifecycle.adapters.pipeline.zenhub import StaticPipelineResolver
from issue_lifecycle.config.schema import BotConfig
from issue_lifecycle.core.errors import SweepFailedError
from issue_lifecycle.core.manager import RepoSweepResult, SweepReport
from issue_lifecycle.models.actions import Decision
from issue_lifecycle.models.issue import IssueRef
from issue_lifecycle.utils.gh_cli import GHCliError


@pytest.fixture
def config() -> BotConfig:
    """Create a configuration with one managed repository."""
    return BotConfig.model_validate(
        {
            "orgs": [{"name": "istio", "repos": [{"name": "istio"}]}],
            "lifecycle": [{}],
        }
    )


@pytest.fixture
def manager() -> MagicMock:
    """Create a mock lifecycle manager."""
    mock = MagicMock()
    mock.sweep_all = AsyncMock(return_value=SweepReport())
    mock.manage_one = AsyncMock(return_value=Decision())
    return mock


@pytest.fixture
def wired(config: BotConfig, manager: MagicMock):
    """Patch configuration loading and adapter wiring."""
    github = MagicMock()
    github.check_connection = AsyncMock(return_value=True)
    pipelines = MagicMock(spec=["classification", "close"])
    pipelines.close = AsyncMock()

    with (
        patch("issue_lifecycle.config.loader.load_config", return_value=config),
        patch(
            "issue_lifecycle.core.manager.create_adapters", return_value=(github, pipelines)
        ) as create_adapters,
        patch("issue_lifecycle.core.manager.create_manager", return_value=manager),
    ):
        yield create_adapters, github, pipelines


class TestParseArgs:
    """Test argument parsing."""

    def test_sweep_defaults(self):
        """Test the sweep command defaults."""
        args = parse_args(["sweep"])

        assert args.command == "sweep"
        assert args.dry_run is False
        assert args.config == Path("config/lifecycle.yaml")
        assert args.format is None
        assert args.debug is False

    def test_sweep_dry_run(self):
        """Test global options combined with a dry-run sweep."""
        args = parse_args(["-c", "other.yaml", "-d", "--format", "json", "sweep", "--dry-run"])

        assert args.dry_run is True
        assert args.config == Path("other.yaml")
        assert args.debug is True
        assert args.format == "json"

    def test_manage(self):
        """Test the manage command."""
        assert parse_args(["manage", "istio/istio#123"]).ref == "istio/istio#123"

    def test_command_required(self):
        """Test that a command must be given."""
        with pytest.raises(SystemExit):
            parse_args([])


class TestRun:
    """Test command execution."""

    async def test_sweep(self, wired, manager):
        """Test a successful sweep."""
        _, _, pipelines = wired

        assert await run(parse_args(["sweep", "--dry-run"])) == 0

        manager.sweep_all.assert_awaited_once_with(dry_run=True)
        pipelines.close.assert_awaited_once()

    async def test_sweep_structural_failure(self, wired, manager):
        """Test that a failed repository yields a non-zero exit code."""
        report = SweepReport(repos=[RepoSweepResult(repo="istio/istio", failure="HTTP 502")])
        manager.sweep_all.side_effect = SweepFailedError(report)

        assert await run(parse_args(["sweep"])) == 1

    async def test_manage(self, wired, manager):
        """Test managing a single issue."""
        assert await run(parse_args(["manage", "istio/istio#7"])) == 0

        manager.manage_one.assert_awaited_once_with(IssueRef("istio", "istio", 7))

    async def test_manage_invalid_reference(self, wired, manager):
        """Test that malformed references are rejected."""
        assert await run(parse_args(["manage", "istio-7"])) == 1
        manager.manage_one.assert_not_awaited()

    async def test_manage_unconfigured_repo(self, wired, manager):
        """Test that only configured repositories can be managed."""
        assert await run(parse_args(["manage", "other/repo#1"])) == 1
        manager.manage_one.assert_not_awaited()

    async def test_check(self, wired):
        """Test the health check command."""
        _, github, _ = wired

        assert await run(parse_args(["check"])) == 0

        github.check_connection.assert_awaited_once()

    async def test_missing_config(self, tmp_path):
        """Test that a missing configuration file fails cleanly."""
        assert await run(parse_args(["-c", str(tmp_path / "missing.yaml"), "sweep"])) == 1

    async def test_invalid_config(self, tmp_path):
        """Test that an invalid configuration fails cleanly."""
        path = tmp_path / "bad.yaml"
        path.write_text("runtime:\n  max_concurrent: 0\n")

        assert await run(parse_args(["-c", str(path), "sweep"])) == 1

    async def test_gh_missing(self, wired):
        """Test that a missing gh binary fails cleanly."""
        create_adapters, _, _ = wired
        create_adapters.side_effect = GHCliError("gh CLI not found")

        assert await run(parse_args(["sweep"])) == 1

    async def test_static_resolver_needs_no_close(self, wired, manager):
        """Test that resolvers without close() are fine."""
        create_adapters, github, _ = wired
        create_adapters.return_value = (github, StaticPipelineResolver())

        assert await run(parse_args(["sweep"])) == 0
