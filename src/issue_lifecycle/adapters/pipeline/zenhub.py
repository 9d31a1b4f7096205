"""ZenHub pipeline resolver.

Issue priority comes from the ZenHub board pipeline an issue sits in.
This module implements the PipelineResolver protocol over the ZenHub
REST API, plus a static resolver for deployments without ZenHub.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog
from cachetools import TTLCache

from ...config.schema import RetryConfig, ZenHubConfig
from ...utils.async_helpers import RateLimiter, TransientHTTPError, create_retry

log = structlog.get_logger()

RepoIdLookup = Callable[[str, str], Awaitable[int]]


class ZenHubError(Exception):
    """Raised when ZenHub returns an unusable response."""


class ZenHubAdapter:
    """Pipeline resolver backed by the ZenHub API.

    Example:
        zenhub = ZenHubAdapter(config.zenhub, repo_id_lookup=github.get_repo_id)
        pipeline = await zenhub.classification("istio", "istio", 1234)
    """

    CACHE_SIZE = 10_000

    def __init__(
        self,
        config: ZenHubConfig,
        repo_id_lookup: RepoIdLookup,
        retry_config: RetryConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the ZenHub adapter.

        Args:
            config: ZenHub-specific configuration.
            repo_id_lookup: Resolves org/repo to the numeric GitHub repo id.
            retry_config: Retry policy for transient failures.
            client: HTTP client. If None, one is created from config.
        """
        self._config = config
        self._repo_id_lookup = repo_id_lookup
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
            headers={"X-Authentication-Token": config.token},
        )
        self._rate_limiter = RateLimiter(rate=config.requests_per_second)
        self._repo_ids: dict[tuple[str, str], int] = {}
        self._cache: TTLCache[tuple[str, str, int], str] = TTLCache(
            maxsize=self.CACHE_SIZE,
            ttl=config.cache_ttl,
        )

        retry_config = retry_config or RetryConfig()
        self._fetch = create_retry(
            max_attempts=retry_config.max_attempts,
            min_wait=retry_config.initial_delay,
            max_wait=retry_config.max_delay,
        )(self._fetch_once)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _repo_id(self, org: str, repo: str) -> int:
        key = (org, repo)
        if key not in self._repo_ids:
            self._repo_ids[key] = await self._repo_id_lookup(org, repo)
        return self._repo_ids[key]

    async def _fetch_once(self, path: str) -> dict[str, Any] | None:
        async with self._rate_limiter:
            response = await self._client.get(path)

        if response.status_code == 404:
            return None

        if response.status_code == 429 or response.status_code >= 500:
            retry_after = response.headers.get("Retry-After")
            raise TransientHTTPError(
                f"ZenHub returned {response.status_code} for {path}",
                status_code=response.status_code,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        if response.status_code != 200:
            raise ZenHubError(f"ZenHub returned {response.status_code} for {path}")

        try:
            return response.json()
        except ValueError as e:
            raise ZenHubError(f"Invalid JSON from ZenHub for {path}") from e

    async def classification(self, org: str, repo: str, number: int) -> str:
        """Return the name of the pipeline holding an issue.

        Returns:
            Pipeline name, or "" if ZenHub does not know the issue.

        Raises:
            ZenHubError: If ZenHub returns an unexpected response.
            TransientHTTPError: If ZenHub keeps failing after retries.
            httpx.HTTPError: On network failures after retries.
        """
        key = (org, repo, number)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        repo_id = await self._repo_id(org, repo)
        data = await self._fetch(f"/p1/repositories/{repo_id}/issues/{number}")

        pipeline = ""
        if data is not None:
            pipeline = (data.get("pipeline") or {}).get("name", "") or ""

        log.debug("pipeline_resolved", issue=f"{org}/{repo}#{number}", pipeline=pipeline)
        self._cache[key] = pipeline
        return pipeline

    async def check_connection(self) -> bool:
        """Return True if the ZenHub API accepts our token."""
        try:
            response = await self._client.get("/p1/user")
        except httpx.HTTPError as e:
            log.warning("zenhub_unreachable", error=str(e))
            return False
        return response.status_code == 200


class StaticPipelineResolver:
    """Pipeline resolver returning a fixed classification.

    Used when ZenHub is not configured: every issue looks unclassified,
    so no item is ever high priority.
    """

    def __init__(self, pipeline: str = "") -> None:
        self._pipeline = pipeline

    async def classification(self, org: str, repo: str, number: int) -> str:
        return self._pipeline
