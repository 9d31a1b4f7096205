"""Data models for GitHub issues and pull requests."""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

_REF_PATTERN = re.compile(r"^([a-zA-Z0-9_.-]+)/([a-zA-Z0-9_.-]+)#(\d+)$")


class IssueState(Enum):
    """State of an issue or pull request."""

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class IssueRef:
    """Identity of an issue or pull request."""

    org: str
    repo: str
    number: int

    @property
    def full_repo(self) -> str:
        """Return the repository in owner/repo form."""
        return f"{self.org}/{self.repo}"

    @classmethod
    def parse(cls, text: str) -> "IssueRef":
        """Parse an ``org/repo#123`` reference.

        Raises:
            ValueError: If the text is not a valid reference
        """
        match = _REF_PATTERN.match(text.strip())
        if not match:
            raise ValueError(f"Invalid issue reference: {text!r}. Expected: org/repo#number")
        return cls(org=match.group(1), repo=match.group(2), number=int(match.group(3)))

    def __str__(self) -> str:
        return f"{self.org}/{self.repo}#{self.number}"


@dataclass(frozen=True)
class Issue:
    """Snapshot of an issue or pull request at decision time.

    Pull requests are treated as issues for lifecycle purposes; the
    ``is_pull_request`` flag selects the PR-specific delays.
    """

    org: str
    repo: str
    number: int
    is_pull_request: bool
    created_at: datetime
    state: IssueState
    labels: tuple[str, ...]
    body: str = ""
    title: str = ""

    @property
    def ref(self) -> IssueRef:
        """Return the identity of this issue."""
        return IssueRef(org=self.org, repo=self.repo, number=self.number)

    @property
    def is_closed(self) -> bool:
        """Return True if the issue is closed."""
        return self.state == IssueState.CLOSED
