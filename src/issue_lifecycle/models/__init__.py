"""Data models and transfer objects."""

from .actions import Action, ActionKind, Decision, LifecycleStats
from .issue import Issue, IssueRef, IssueState
from .signals import HIGH_PRIORITY_PIPELINES, NEW_ISSUES_PIPELINE, ActivitySignals

__all__ = [
    # Issue models
    "IssueState",
    "IssueRef",
    "Issue",
    # Signals
    "ActivitySignals",
    "HIGH_PRIORITY_PIPELINES",
    "NEW_ISSUES_PIPELINE",
    # Actions
    "ActionKind",
    "Action",
    "LifecycleStats",
    "Decision",
]
