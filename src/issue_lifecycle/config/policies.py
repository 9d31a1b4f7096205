"""Lookup of lifecycle policy records by repository."""

from __future__ import annotations

from collections.abc import Iterable

from .schema import LifecyclePolicy


class PolicyRegistry:
    """Resolves the lifecycle record that applies to a repository.

    A repository's own record wins; otherwise the global default record
    applies; with neither, the repository is not managed.

    Example:
        registry = PolicyRegistry(config.lifecycle)
        policy = registry.record_for("istio", "istio")
    """

    def __init__(self, records: Iterable[LifecyclePolicy]) -> None:
        self._by_repo: dict[str, LifecyclePolicy] = {}
        self._default: LifecyclePolicy | None = None

        for record in records:
            if record.is_default:
                if self._default is not None:
                    raise ValueError("Multiple default lifecycle records")
                self._default = record
                continue

            for repo in record.repos:
                if repo in self._by_repo:
                    raise ValueError(f"Multiple lifecycle records claim repository {repo}")
                self._by_repo[repo] = record

    @property
    def default(self) -> LifecyclePolicy | None:
        """Return the global default record, if any."""
        return self._default

    def record_for(self, org: str, repo: str) -> LifecyclePolicy | None:
        """Return the record for a repository, or None if it is unmanaged."""
        return self._by_repo.get(f"{org}/{repo}", self._default)
