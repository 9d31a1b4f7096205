"""Abstract interfaces for reading and mutating GitHub issues."""

from collections.abc import AsyncIterator
from datetime import datetime
from typing import Protocol

from ..models.issue import Issue


class IssueSource(Protocol):
    """Supplies issue snapshots for evaluation."""

    def open_issues(self, org: str, repo: str) -> AsyncIterator[Issue]:
        """
        Iterate over every open issue and pull request in a repository.

        Args:
            org: Organization login
            repo: Repository name

        Yields:
            Fresh Issue snapshots

        Raises:
            GHCliError: If the repository's issues cannot be enumerated
        """
        ...

    async def get_issue(self, org: str, repo: str, number: int) -> Issue | None:
        """
        Fetch a single issue or pull request.

        Args:
            org: Organization login
            repo: Repository name
            number: Issue or pull request number

        Returns:
            Issue snapshot if found, None otherwise
        """
        ...


class ActivityResolver(Protocol):
    """Answers when trusted organization members last touched an issue."""

    async def latest_member_comment(self, org: str, repo: str, number: int) -> datetime | None:
        """
        Return the time of the latest comment by an organization member.

        Returns:
            Timestamp, or None if no member ever commented
        """
        ...

    async def latest_member_activity(self, org: str, repo: str, number: int) -> datetime | None:
        """
        Return the time of the latest event of any kind by an organization member.

        Returns:
            Timestamp, or None if no member activity ever happened
        """
        ...


class IssueMutator(Protocol):
    """Applies label, comment and state changes to an issue.

    Implementations are expected to throttle their own calls; callers
    perform no retries.
    """

    async def add_label(self, org: str, repo: str, number: int, label: str) -> None:
        """Add a label to an issue."""
        ...

    async def remove_label(self, org: str, repo: str, number: int, label: str) -> None:
        """Remove a label from an issue. Removing an absent label is not an error."""
        ...

    async def add_or_replace_bot_comment(
        self,
        org: str,
        repo: str,
        number: int,
        body: str,
        signature: str,
    ) -> None:
        """
        Ensure exactly one bot comment carrying ``signature`` exists with ``body``.

        The comment text posted is ``body + signature``. An existing
        identical comment is left alone; a differing one is replaced.
        """
        ...

    async def remove_bot_comment(self, org: str, repo: str, number: int, signature: str) -> None:
        """Delete the bot comment carrying ``signature``, if present."""
        ...

    async def close_issue(self, org: str, repo: str, number: int) -> None:
        """Set the issue state to closed."""
        ...
