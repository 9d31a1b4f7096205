"""Exceptions raised while managing issue lifecycles."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models.actions import Action
    from ..models.issue import IssueRef
    from .manager import SweepReport


class LifecycleError(Exception):
    """Base exception for lifecycle management errors."""


class PolicyMissingError(LifecycleError):
    """No lifecycle record applies to a repository."""

    def __init__(self, repo: str) -> None:
        super().__init__(f"no lifecycle record for repo {repo}")
        self.repo = repo


class IssueNotFoundError(LifecycleError):
    """The issue to manage does not exist."""


class SignalLookupError(LifecycleError):
    """Activity or pipeline data for an issue could not be obtained."""

    def __init__(self, ref: IssueRef, message: str) -> None:
        super().__init__(f"could not get {message} for issue/PR {ref}")
        self.ref = ref


class ActionApplyError(LifecycleError):
    """A GitHub mutation failed; earlier actions may already be applied."""

    def __init__(self, ref: IssueRef, action: Action, cause: Exception) -> None:
        super().__init__(f"unable to apply {action.kind.value} to issue/PR {ref}: {cause}")
        self.ref = ref
        self.action = action


class StructuralError(LifecycleError):
    """Issues of a repository could not be enumerated."""

    def __init__(self, repo: str, cause: Exception) -> None:
        super().__init__(f"unable to enumerate issues in repo {repo}: {cause}")
        self.repo = repo


class SweepFailedError(LifecycleError):
    """One or more repositories failed structurally during a sweep."""

    def __init__(self, report: SweepReport) -> None:
        repos = ", ".join(sorted(report.failed_repos))
        super().__init__(f"sweep failed for repositories: {repos}")
        self.report = report
