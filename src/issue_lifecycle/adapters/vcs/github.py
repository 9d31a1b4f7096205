"""GitHub adapter using the gh CLI.

This module implements the IssueSource, ActivityResolver and IssueMutator
protocols for GitHub on top of the SafeGHCli wrapper:
- Open issues and pull requests come from the REST issues endpoint
- Member activity is derived from issue comments and issue events,
  filtered through cached organization membership checks
- Bot comments are recognized by a signature trailer in their body
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import structlog
from cachetools import TTLCache

from ...config.schema import GitHubConfig
from ...core.engine import BOT_SIGNATURE
from ...models.issue import Issue, IssueState
from ...utils.async_helpers import RateLimiter
from ...utils.gh_cli import GHCliError, NotFoundError, SafeGHCli

log = structlog.get_logger()


class GitHubAdapterError(Exception):
    """Base exception for GitHub adapter errors."""


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp from the GitHub API into an aware datetime."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class GitHubAdapter:
    """GitHub adapter for reading and mutating issues.

    Example:
        adapter = GitHubAdapter(GitHubConfig(token="ghp_..."))

        async for issue in adapter.open_issues("istio", "istio"):
            ...

        await adapter.add_label("istio", "istio", 123, "lifecycle/stale")
    """

    MEMBER_CACHE_SIZE = 10_000

    def __init__(
        self,
        config: GitHubConfig,
        gh: SafeGHCli | None = None,
        signature: str = BOT_SIGNATURE,
    ) -> None:
        """Initialize the GitHub adapter.

        Args:
            config: GitHub-specific configuration.
            gh: gh CLI wrapper. If None, one is created from config.
            signature: Trailer identifying the bot's own comments.
        """
        self._config = config
        self._gh = gh or SafeGHCli(
            gh_path=config.gh_path,
            default_timeout=config.command_timeout,
            token=config.token,
            rate_limiter=RateLimiter(rate=config.requests_per_second),
        )
        self._signature = signature
        self._robots = frozenset(config.robots)
        self._member_cache: TTLCache[tuple[str, str], bool] = TTLCache(
            maxsize=self.MEMBER_CACHE_SIZE,
            ttl=config.member_cache_ttl,
        )
        self._comment_fetches: dict[tuple[str, str, int], asyncio.Future[Any]] = {}

    @property
    def gh(self) -> SafeGHCli:
        """Return the underlying gh CLI wrapper."""
        return self._gh

    def _repo_path(self, org: str, repo: str) -> str:
        full_name = f"{org}/{repo}"
        self._gh.validate_repo(full_name)
        return f"repos/{full_name}"

    def _parse_issue(self, org: str, repo: str, data: dict[str, Any]) -> Issue:
        state = IssueState.CLOSED if data.get("state") == "closed" else IssueState.OPEN
        labels = tuple(
            label.get("name", "") if isinstance(label, dict) else str(label)
            for label in data.get("labels") or []
        )
        created_at = parse_timestamp(data.get("created_at"))
        if created_at is None:
            raise GitHubAdapterError(f"issue {org}/{repo}#{data.get('number')} has no created_at")

        return Issue(
            org=org,
            repo=repo,
            number=int(data["number"]),
            is_pull_request="pull_request" in data,
            created_at=created_at,
            state=state,
            labels=labels,
            body=data.get("body") or "",
            title=data.get("title") or "",
        )

    async def open_issues(self, org: str, repo: str) -> AsyncIterator[Issue]:
        """Iterate over every open issue and pull request in a repository.

        Raises:
            SecurityError: If the repository name is invalid.
            GHCliError: If the issues cannot be listed.
        """
        path = f"{self._repo_path(org, repo)}/issues?state=open&per_page=100"
        items = await self._gh.api(path, paginate=True)

        log.debug("open_issues_listed", repo=f"{org}/{repo}", count=len(items))
        for item in items:
            yield self._parse_issue(org, repo, item)

    async def get_issue(self, org: str, repo: str, number: int) -> Issue | None:
        """Fetch a specific issue or pull request by number.

        Returns:
            Issue if found, None otherwise.
        """
        try:
            data = await self._gh.api(f"{self._repo_path(org, repo)}/issues/{number}")
        except NotFoundError:
            log.debug("issue_not_found", repo=f"{org}/{repo}", number=number)
            return None
        return self._parse_issue(org, repo, data)

    async def get_repo_id(self, org: str, repo: str) -> int:
        """Return the numeric GitHub id of a repository."""
        data = await self._gh.api(self._repo_path(org, repo))
        return int(data["id"])

    async def is_member(self, org: str, login: str) -> bool:
        """Return True if a user is a trusted member of an organization.

        Configured robot accounts are never members. Answers are cached.
        """
        if not login or login in self._robots:
            return False

        key = (org, login)
        cached = self._member_cache.get(key)
        if cached is not None:
            return cached

        try:
            await self._gh.api(f"orgs/{org}/members/{login}")
            member = True
        except NotFoundError:
            member = False

        self._member_cache[key] = member
        return member

    async def _comments(self, org: str, repo: str, number: int) -> list[dict[str, Any]]:
        # concurrent callers for the same issue share one paginated fetch
        key = (org, repo, number)
        fetch = self._comment_fetches.get(key)
        if fetch is None:
            path = f"{self._repo_path(org, repo)}/issues/{number}/comments?per_page=100"
            fetch = asyncio.ensure_future(self._gh.api(path, paginate=True))
            self._comment_fetches[key] = fetch
            fetch.add_done_callback(lambda done: self._forget_fetch(key, done))
        return await asyncio.shield(fetch)

    def _forget_fetch(self, key: tuple[str, str, int], fetch: asyncio.Future[Any]) -> None:
        self._comment_fetches.pop(key, None)
        # waiters that timed out leave the outcome unobserved
        if not fetch.cancelled():
            fetch.exception()

    async def _latest_by_member(
        self,
        org: str,
        items: list[dict[str, Any]],
        user_key: str,
    ) -> datetime | None:
        latest: datetime | None = None
        for item in items:
            login = (item.get(user_key) or {}).get("login", "")
            if self._signature in (item.get("body") or ""):
                continue
            created_at = parse_timestamp(item.get("created_at"))
            if created_at is None or (latest is not None and created_at <= latest):
                continue
            if await self.is_member(org, login):
                latest = created_at
        return latest

    async def latest_member_comment(self, org: str, repo: str, number: int) -> datetime | None:
        """Return the time of the latest comment by an organization member."""
        comments = await self._comments(org, repo, number)
        return await self._latest_by_member(org, comments, "user")

    async def latest_member_activity(self, org: str, repo: str, number: int) -> datetime | None:
        """Return the time of the latest member comment or issue event.

        Shares the comment fetch with a concurrent ``latest_member_comment``
        call for the same issue.
        """
        path = f"{self._repo_path(org, repo)}/issues/{number}/events?per_page=100"
        events, comments = await asyncio.gather(
            self._gh.api(path, paginate=True),
            self._comments(org, repo, number),
        )

        latest_event = await self._latest_by_member(org, events, "actor")
        latest_comment = await self._latest_by_member(org, comments, "user")

        candidates = [ts for ts in (latest_event, latest_comment) if ts is not None]
        return max(candidates) if candidates else None

    async def add_label(self, org: str, repo: str, number: int, label: str) -> None:
        """Add a label to an issue. Empty label names are ignored."""
        if not label:
            return
        await self._gh.api(
            f"{self._repo_path(org, repo)}/issues/{number}/labels",
            method="POST",
            fields={"labels": [label]},
        )

    async def remove_label(self, org: str, repo: str, number: int, label: str) -> None:
        """Remove a label from an issue. Empty or absent labels are ignored."""
        if not label:
            return
        try:
            await self._gh.api(
                f"{self._repo_path(org, repo)}/issues/{number}/labels/{quote(label, safe='')}",
                method="DELETE",
            )
        except NotFoundError:
            log.debug("label_already_absent", repo=f"{org}/{repo}", number=number, label=label)

    async def find_bot_comment(
        self,
        org: str,
        repo: str,
        number: int,
        signature: str,
    ) -> dict[str, Any] | None:
        """Return the first comment whose body contains the signature."""
        for comment in await self._comments(org, repo, number):
            if signature in (comment.get("body") or ""):
                return comment
        return None

    async def add_or_replace_bot_comment(
        self,
        org: str,
        repo: str,
        number: int,
        body: str,
        signature: str,
    ) -> None:
        """Ensure a single bot comment with the given body exists."""
        text = body + signature
        existing = await self.find_bot_comment(org, repo, number, signature)

        if existing is not None:
            if existing.get("body") == text:
                return
            await self._delete_comment(org, repo, existing)

        await self._gh.api(
            f"{self._repo_path(org, repo)}/issues/{number}/comments",
            method="POST",
            fields={"body": text},
        )

    async def remove_bot_comment(self, org: str, repo: str, number: int, signature: str) -> None:
        """Delete the bot comment on an issue, if there is one."""
        existing = await self.find_bot_comment(org, repo, number, signature)
        if existing is not None:
            await self._delete_comment(org, repo, existing)

    async def _delete_comment(self, org: str, repo: str, comment: dict[str, Any]) -> None:
        try:
            await self._gh.api(
                f"{self._repo_path(org, repo)}/issues/comments/{comment['id']}",
                method="DELETE",
            )
        except NotFoundError:
            log.debug("comment_already_deleted", repo=f"{org}/{repo}", comment_id=comment["id"])

    async def close_issue(self, org: str, repo: str, number: int) -> None:
        """Set an issue's state to closed."""
        await self._gh.api(
            f"{self._repo_path(org, repo)}/issues/{number}",
            method="PATCH",
            fields={"state": "closed"},
        )

    async def check_connection(self) -> bool:
        """Return True if gh is installed and authenticated."""
        try:
            return await self._gh.check_auth()
        except GHCliError:
            return False
