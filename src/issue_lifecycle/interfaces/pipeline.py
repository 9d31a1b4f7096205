"""Abstract interfaces for priority classification and policy lookup."""

from typing import Protocol

from ..config.schema import LifecyclePolicy


class PipelineResolver(Protocol):
    """Looks up an issue's priority pipeline on an external board."""

    async def classification(self, org: str, repo: str, number: int) -> str:
        """
        Return the pipeline name for an issue.

        Returns:
            Pipeline name (e.g. "P0", "Backlog"), or "" if unknown

        Raises:
            ZenHubError: If the board could not be queried
        """
        ...


class PolicyStore(Protocol):
    """Resolves the lifecycle record for a repository."""

    def record_for(self, org: str, repo: str) -> LifecyclePolicy | None:
        """
        Return the record governing a repository.

        Returns:
            The repository's record, the global default, or None if the
            repository is not managed
        """
        ...
