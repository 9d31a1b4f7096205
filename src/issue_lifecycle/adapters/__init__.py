"""Concrete implementations of provider interfaces."""

from .pipeline.zenhub import StaticPipelineResolver, ZenHubAdapter
from .vcs.github import GitHubAdapter

__all__ = [
    "GitHubAdapter",
    "StaticPipelineResolver",
    "ZenHubAdapter",
]
