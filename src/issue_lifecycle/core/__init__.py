"""Core business logic components.

This module exports the main business logic classes:
- evaluate: Pure lifecycle decision function
- ActionExecutor: Applies decided actions to GitHub
- LifecycleManager: Drives sweeps and single-issue runs
"""

from issue_lifecycle.core.engine import BOT_SIGNATURE, evaluate
from issue_lifecycle.core.errors import (
    ActionApplyError,
    IssueNotFoundError,
    LifecycleError,
    PolicyMissingError,
    SignalLookupError,
    StructuralError,
    SweepFailedError,
)
from issue_lifecycle.core.executor import ActionExecutor
from issue_lifecycle.core.manager import LifecycleManager, RepoSweepResult, SweepReport

__all__ = [
    "BOT_SIGNATURE",
    "ActionApplyError",
    "ActionExecutor",
    "IssueNotFoundError",
    "LifecycleError",
    "LifecycleManager",
    "PolicyMissingError",
    "RepoSweepResult",
    "SignalLookupError",
    "StructuralError",
    "SweepFailedError",
    "SweepReport",
    "evaluate",
]
