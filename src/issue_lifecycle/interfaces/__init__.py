"""Protocol definitions for pluggable collaborators."""

from .github import ActivityResolver, IssueMutator, IssueSource
from .pipeline import PipelineResolver, PolicyStore

__all__ = [
    "ActivityResolver",
    "IssueMutator",
    "IssueSource",
    "PipelineResolver",
    "PolicyStore",
]
