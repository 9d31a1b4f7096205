"""Lifecycle manager: drives the engine over repositories and single issues.

Two entry points:
- ``sweep_all`` walks every open issue of every configured repository
  (timer or CLI triggered, optionally as a dry run)
- ``manage_one`` handles a single issue synchronously (webhook triggered)

Per-issue failures are logged and never abort a sweep; a repository
whose issues cannot be enumerated is abandoned while the others continue.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from ..models.actions import Decision, LifecycleStats
from ..models.issue import Issue, IssueRef
from ..models.signals import ActivitySignals
from ..utils.async_helpers import with_timeout
from ..utils.metrics import MetricsRegistry, Timer, get_metrics
from .engine import evaluate
from .errors import (
    ActionApplyError,
    IssueNotFoundError,
    LifecycleError,
    PolicyMissingError,
    SignalLookupError,
    StructuralError,
    SweepFailedError,
)
from .executor import ActionExecutor

if TYPE_CHECKING:
    from ..adapters.vcs.github import GitHubAdapter
    from ..config.schema import BotConfig, LifecyclePolicy
    from ..interfaces.github import ActivityResolver, IssueSource
    from ..interfaces.pipeline import PipelineResolver, PolicyStore

T = TypeVar("T")

SKIP_POLICY_MISSING = "policy_missing"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class RepoSweepResult:
    """Outcome of sweeping one repository."""

    repo: str
    stats: LifecycleStats = field(default_factory=LifecycleStats)
    evaluated: int = 0
    errors: int = 0
    skipped: bool = False
    failure: str | None = None


@dataclass
class SweepReport:
    """Outcome of a full sweep across all repositories."""

    dry_run: bool = False
    repos: list[RepoSweepResult] = field(default_factory=list)

    @property
    def failed_repos(self) -> list[str]:
        """Return repositories that could not be enumerated."""
        return [result.repo for result in self.repos if result.failure]

    @property
    def stats(self) -> LifecycleStats:
        """Return stats summed over all repositories."""
        total = LifecycleStats()
        for result in self.repos:
            total = total + result.stats
        return total

    @property
    def errors(self) -> int:
        """Return the number of issues whose processing failed."""
        return sum(result.errors for result in self.repos)


class LifecycleManager:
    """Feeds issues through the lifecycle engine and applies the results.

    Example:
        manager = LifecycleManager(
            repos=config.repo_names(),
            policies=PolicyRegistry(config.lifecycle),
            issues=github,
            activity=github,
            pipelines=zenhub,
            executor=ActionExecutor(github),
        )
        report = await manager.sweep_all(dry_run=True)
    """

    DEFAULT_MAX_CONCURRENT = 5
    DEFAULT_SIGNAL_TIMEOUT = 30.0

    def __init__(
        self,
        repos: Sequence[str],
        policies: PolicyStore,
        issues: IssueSource,
        activity: ActivityResolver,
        pipelines: PipelineResolver,
        executor: ActionExecutor,
        *,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        signal_timeout: float = DEFAULT_SIGNAL_TIMEOUT,
        metrics: MetricsRegistry | None = None,
        logger: Any = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the manager.

        Args:
            repos: Repositories to sweep, in org/repo form
            policies: Lifecycle record lookup
            issues: Source of issue snapshots
            activity: Member activity lookups
            pipelines: Priority classification lookups
            executor: Applies engine actions
            max_concurrent: Issues evaluated concurrently within a repository
            signal_timeout: Seconds allowed for each signal lookup
            metrics: Metrics registry (defaults to the global one)
            logger: structlog logger (defaults to one bound to this component)
            clock: Returns the current time, timezone-aware
        """
        self._repos = list(repos)
        self._policies = policies
        self._issues = issues
        self._activity = activity
        self._pipelines = pipelines
        self._executor = executor
        self._max_concurrent = max_concurrent
        self._signal_timeout = signal_timeout
        self._metrics = metrics or get_metrics()
        self._log = logger or structlog.get_logger().bind(component="lifecycle_manager")
        self._clock = clock

    async def sweep_all(self, dry_run: bool = False) -> SweepReport:
        """Evaluate every open issue in every configured repository.

        Args:
            dry_run: If True, log actions instead of applying them

        Returns:
            Per-repository results

        Raises:
            SweepFailedError: After all repositories were processed, if any
                of them could not be enumerated
        """
        report = SweepReport(dry_run=dry_run)
        self._log.info("lifecycle_sweep_starting", repos=len(self._repos), dry_run=dry_run)

        with Timer(self._metrics.sweep_duration) as timer:
            for full_name in self._repos:
                org, repo = full_name.split("/", 1)
                report.repos.append(await self._sweep_repo(org, repo, dry_run))

        self._log.info(
            "lifecycle_sweep_complete",
            duration_seconds=timer.elapsed,
            errors=report.errors,
            failed_repos=report.failed_repos,
            **report.stats.as_dict(),
        )

        if report.failed_repos:
            raise SweepFailedError(report)
        return report

    async def manage_one(self, ref: IssueRef) -> Decision:
        """Evaluate and apply lifecycle actions for a single issue.

        Args:
            ref: The issue to manage

        Returns:
            The decision that was applied

        Raises:
            IssueNotFoundError: If the issue does not exist
            SignalLookupError: If issue data or signals could not be fetched
            ActionApplyError: If a GitHub mutation failed
        """
        try:
            policy = self._policy_for(ref.org, ref.repo)
        except PolicyMissingError as e:
            self._log.info("policy_missing", repo=e.repo, issue=str(ref))
            return Decision(skip_reason=SKIP_POLICY_MISSING)

        issue = await self._lookup(
            ref, "issue data", self._issues.get_issue(ref.org, ref.repo, ref.number)
        )
        if issue is None:
            raise IssueNotFoundError(f"issue/PR {ref} not found")

        return await self._manage(issue, policy, dry_run=False)

    async def manage_issue(self, issue: Issue, dry_run: bool = False) -> Decision:
        """Evaluate and apply lifecycle actions for an already fetched snapshot.

        Used for webhook payloads; applies unless dry_run is set.

        Raises:
            SignalLookupError: If signals could not be fetched
            ActionApplyError: If a GitHub mutation failed
        """
        try:
            policy = self._policy_for(issue.org, issue.repo)
        except PolicyMissingError as e:
            self._log.info("policy_missing", repo=e.repo, issue=str(issue.ref))
            return Decision(skip_reason=SKIP_POLICY_MISSING)

        return await self._manage(issue, policy, dry_run=dry_run)

    def _policy_for(self, org: str, repo: str) -> LifecyclePolicy:
        policy = self._policies.record_for(org, repo)
        if policy is None:
            raise PolicyMissingError(f"{org}/{repo}")
        return policy

    async def _sweep_repo(self, org: str, repo: str, dry_run: bool) -> RepoSweepResult:
        full_name = f"{org}/{repo}"
        result = RepoSweepResult(repo=full_name)

        try:
            policy = self._policy_for(org, repo)
        except PolicyMissingError as e:
            self._log.info("policy_missing", repo=e.repo)
            result.skipped = True
            return result

        try:
            issues = [issue async for issue in self._issues.open_issues(org, repo)]
        except Exception as e:
            error = StructuralError(full_name, e)
            self._metrics.repo_failures.inc(labels={"repo": full_name})
            self._log.error("issue_enumeration_failed", repo=full_name, error=str(error))
            result.failure = str(error)
            return result

        self._metrics.open_issues.set(len(issues), labels={"repo": full_name})
        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def run(issue: Issue) -> Decision | None:
            async with semaphore:
                try:
                    return await self._manage(issue, policy, dry_run)
                except (SignalLookupError, ActionApplyError) as e:
                    self._log.error(
                        "issue_processing_failed",
                        repo=full_name,
                        issue=str(issue.ref),
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    return None
                except Exception as e:
                    self._log.exception(
                        "issue_processing_failed",
                        repo=full_name,
                        issue=str(issue.ref),
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    return None

        decisions = await asyncio.gather(*(run(issue) for issue in issues))

        for decision in decisions:
            if decision is None:
                result.errors += 1
                continue
            result.evaluated += 1
            result.stats = result.stats + decision.stats

        self._log.info(
            "lifecycle_sweep_stats",
            repo=full_name,
            evaluated=result.evaluated,
            errors=result.errors,
            dry_run=dry_run,
            **result.stats.as_dict(),
        )
        return result

    async def _manage(self, issue: Issue, policy: LifecyclePolicy, dry_run: bool) -> Decision:
        signals = ActivitySignals() if issue.is_closed else await self._fetch_signals(issue)

        decision = evaluate(issue, policy, signals, self._clock())
        self._metrics.issues_evaluated.inc()

        if decision.skip_reason:
            self._metrics.issues_skipped.inc(labels={"reason": decision.skip_reason})
            self._log.debug("issue_skipped", issue=str(issue.ref), reason=decision.skip_reason)
            return decision

        self._log.debug(
            "issue_evaluated",
            issue=str(issue.ref),
            state=issue.state.value,
            pipeline=signals.pipeline,
            actions=[kind.value for kind in decision.kinds],
        )

        await self._executor.apply(issue, decision.actions, dry_run=dry_run)
        return decision

    async def _fetch_signals(self, issue: Issue) -> ActivitySignals:
        ref = issue.ref
        comment, activity, pipeline = await asyncio.gather(
            self._lookup(
                ref,
                "member comment",
                self._activity.latest_member_comment(ref.org, ref.repo, ref.number),
            ),
            self._lookup(
                ref,
                "member activity",
                self._activity.latest_member_activity(ref.org, ref.repo, ref.number),
            ),
            self._lookup(
                ref,
                "issue pipeline data",
                self._pipelines.classification(ref.org, ref.repo, ref.number),
            ),
        )
        return ActivitySignals(
            latest_member_comment=comment,
            latest_member_activity=activity,
            pipeline=pipeline or "",
        )

    async def _lookup(self, ref: IssueRef, what: str, coro: Awaitable[T]) -> T:
        try:
            return await with_timeout(coro, self._signal_timeout)
        except LifecycleError:
            raise
        except Exception as e:
            self._metrics.signal_failures.inc()
            raise SignalLookupError(ref, what) from e


def create_adapters(config: BotConfig) -> tuple[GitHubAdapter, PipelineResolver]:
    """Create the GitHub adapter and the pipeline resolver for a configuration.

    Raises:
        GHCliError: If the gh CLI is not installed
    """
    # Import here to avoid loading client dependencies for the pure engine
    from ..adapters.pipeline.zenhub import StaticPipelineResolver, ZenHubAdapter
    from ..adapters.vcs.github import GitHubAdapter

    github = GitHubAdapter(config.github)

    pipelines: PipelineResolver
    if config.zenhub is None:
        pipelines = StaticPipelineResolver()
    else:
        pipelines = ZenHubAdapter(
            config.zenhub,
            repo_id_lookup=github.get_repo_id,
            retry_config=config.retry,
        )

    return github, pipelines


def create_manager(
    config: BotConfig,
    github: GitHubAdapter,
    pipelines: PipelineResolver,
) -> LifecycleManager:
    """Factory function to create a LifecycleManager with all dependencies.

    Args:
        config: Application configuration
        github: GitHub adapter used as issue source, activity resolver and mutator
        pipelines: Pipeline classification lookups

    Returns:
        Configured LifecycleManager instance

    Raises:
        ValueError: If the lifecycle records are inconsistent
    """
    from ..config.policies import PolicyRegistry

    return LifecycleManager(
        repos=config.repo_names(),
        policies=PolicyRegistry(config.lifecycle),
        issues=github,
        activity=github,
        pipelines=pipelines,
        executor=ActionExecutor(github),
        max_concurrent=config.runtime.max_concurrent,
        signal_timeout=config.runtime.signal_timeout,
    )
