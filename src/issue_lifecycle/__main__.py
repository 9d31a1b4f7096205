"""Entry point for the issue lifecycle manager.

This module provides the command line interface:
- ``sweep`` evaluates every open issue in every configured repository
- ``manage`` evaluates a single issue, as a webhook handler would
- ``check`` runs health checks against gh and ZenHub

It handles configuration loading, logging setup and adapter wiring.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
import yaml

from issue_lifecycle._version import __version__

if TYPE_CHECKING:
    from issue_lifecycle.adapters.vcs.github import GitHubAdapter
    from issue_lifecycle.config.schema import BotConfig
    from issue_lifecycle.interfaces.pipeline import PipelineResolver

log = structlog.get_logger()


def setup_logging(debug: bool = False, log_format: str = "console") -> None:
    """Configure structured logging before the configuration is loaded.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
    """
    from issue_lifecycle.utils.logging import LogFormat, LogLevel, configure_logging

    configure_logging(
        level=LogLevel.DEBUG if debug else LogLevel.INFO,
        log_format=LogFormat(log_format.lower()),
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        argv: Arguments to parse (defaults to sys.argv)

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="issue-lifecycle",
        description="Issue and PR lifecycle manager - triage, escalation, staleness and closure",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config/lifecycle.yaml"),
        help="Path to configuration file (default: config/lifecycle.yaml)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default=None,
        help="Log output format (default: from config file)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    sweep = commands.add_parser("sweep", help="Evaluate all open issues in all repositories")
    sweep.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the actions that would be taken without applying them",
    )

    manage = commands.add_parser("manage", help="Evaluate a single issue or pull request")
    manage.add_argument("ref", help="Issue reference in org/repo#number form")

    commands.add_parser("check", help="Run health checks and exit")

    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    """Run a lifecycle manager command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    from issue_lifecycle.config.loader import load_config
    from issue_lifecycle.core.errors import LifecycleError, SweepFailedError
    from issue_lifecycle.core.manager import create_adapters, create_manager
    from issue_lifecycle.models.issue import IssueRef
    from issue_lifecycle.utils.gh_cli import GHCliError
    from issue_lifecycle.utils.logging import bind_context, configure_logging

    log.info("starting_issue_lifecycle", version=__version__, command=args.command)

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(args.config), error=str(e))
        return 1
    except (ValueError, yaml.YAMLError) as e:
        log.error("configuration_invalid", error=str(e))
        return 1

    configure_logging(
        level="DEBUG" if args.debug else config.logging.level,
        log_format=args.format or config.logging.format,
        file_path=config.logging.file.path if config.logging.file.enabled else None,
        file_enabled=config.logging.file.enabled,
    )
    log.info("config_loaded", path=str(args.config), repos=len(config.repo_names()))

    try:
        github, pipelines = create_adapters(config)
    except GHCliError as e:
        log.error("github_unavailable", error=str(e))
        return 1

    try:
        if args.command == "check":
            return await run_health_check(config, github, pipelines)

        manager = create_manager(config, github, pipelines)

        if args.command == "sweep":
            bind_context(dry_run=args.dry_run)
            try:
                await manager.sweep_all(dry_run=args.dry_run)
            except SweepFailedError as e:
                log.error("lifecycle_sweep_failed", failed_repos=e.report.failed_repos)
                return 1
            return 0

        try:
            ref = IssueRef.parse(args.ref)
        except ValueError as e:
            log.error("invalid_issue_reference", error=str(e))
            return 1

        if ref.full_repo not in config.repo_names():
            log.error("repo_not_configured", repo=ref.full_repo)
            return 1

        decision = await manager.manage_one(ref)
        log.info(
            "issue_managed",
            issue=str(ref),
            actions=[kind.value for kind in decision.kinds],
            skip_reason=decision.skip_reason,
        )
        return 0

    except LifecycleError as e:
        log.error("lifecycle_command_failed", command=args.command, error=str(e))
        return 1
    finally:
        close = getattr(pipelines, "close", None)
        if close is not None:
            await close()


async def run_health_check(
    config: "BotConfig",
    github: "GitHubAdapter",
    pipelines: "PipelineResolver",
) -> int:
    """Run health checks and log the report."""
    from issue_lifecycle.utils.health import HealthChecker

    checker = HealthChecker(
        config,
        github_check=github.check_connection,
        zenhub_check=getattr(pipelines, "check_connection", None),
    )
    report = await checker.run_all_checks()

    if report.healthy:
        log.info("health_check_passed", report=report.to_dict())
        return 0

    log.error("health_check_failed", report=report.to_dict())
    return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(debug=args.debug, log_format=args.format or "console")

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return 130


if __name__ == "__main__":
    sys.exit(main())
