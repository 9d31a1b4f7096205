"""Safe subprocess wrapper for gh CLI operations.

This module provides a secure wrapper around the GitHub CLI (gh) that:
- Never uses shell=True
- Passes request fields as raw strings so values are never read from files
- Enforces timeouts and a shared rate limit on all operations
- Parses common error conditions into specific exceptions
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any

import structlog

from .async_helpers import RateLimiter
from .security import SecurityError, validate_repo_name

log = structlog.get_logger()


class GHCliError(Exception):
    """Base exception for gh CLI errors."""


class AuthenticationError(GHCliError):
    """Raised when gh CLI authentication fails."""


class RateLimitError(GHCliError):
    """Raised when GitHub rate limit is exceeded."""

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class NotFoundError(GHCliError):
    """Raised when a resource is not found."""


class PermissionError(GHCliError):
    """Raised when permission is denied."""


class CommandTimeoutError(GHCliError):
    """Raised when a command times out."""


class OutputParseError(GHCliError):
    """Raised when gh output is not the JSON we asked for."""


@dataclass
class CommandResult:
    """Result of a gh CLI command execution."""

    stdout: str
    stderr: str
    return_code: int
    command: list[str]

    @property
    def success(self) -> bool:
        """Return True if the command succeeded."""
        return self.return_code == 0

    def json(self) -> Any:
        """Parse stdout as a single JSON document (None when empty).

        Raises:
            OutputParseError: If stdout is not valid JSON.
        """
        if not self.stdout.strip():
            return None
        try:
            return json.loads(self.stdout)
        except json.JSONDecodeError as e:
            raise OutputParseError(f"Invalid JSON from gh: {e}") from e

    def json_lines(self) -> list[Any]:
        """Parse stdout as one JSON document per line.

        Raises:
            OutputParseError: If any line is not valid JSON.
        """
        try:
            return [json.loads(line) for line in self.stdout.splitlines() if line.strip()]
        except json.JSONDecodeError as e:
            raise OutputParseError(f"Invalid JSON lines from gh: {e}") from e


class SafeGHCli:
    """Safe wrapper for GitHub CLI (gh) REST calls.

    Example:
        gh = SafeGHCli(token=os.environ["GITHUB_TOKEN"])
        issues = await gh.api("repos/istio/istio/issues?state=open", paginate=True)
    """

    DEFAULT_TIMEOUT = 30

    # Paginated listings take longer than single requests
    PAGINATE_TIMEOUT = 300

    def __init__(
        self,
        gh_path: str | None = None,
        default_timeout: int = DEFAULT_TIMEOUT,
        token: str | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize the SafeGHCli wrapper.

        Args:
            gh_path: Path to the gh CLI binary. If None, uses PATH.
            default_timeout: Default timeout for commands in seconds.
            token: GitHub token passed to gh as GH_TOKEN. If None, gh uses
                its own stored credentials.
            rate_limiter: Limiter shared by every call made through this wrapper.

        Raises:
            GHCliError: If gh CLI is not found.
        """
        resolved_path = gh_path or shutil.which("gh")
        if not resolved_path:
            raise GHCliError("gh CLI not found. Please install it from https://cli.github.com")

        self._gh_path: str = resolved_path
        self._default_timeout = default_timeout
        self._token = token
        self._rate_limiter = rate_limiter

    def validate_repo(self, repo: str) -> None:
        """Validate a repository name.

        Raises:
            SecurityError: If the repository name is invalid.
        """
        if not validate_repo_name(repo):
            log.warning("invalid_repo_name_rejected", repo=repo)
            raise SecurityError(f"Invalid repository name: {repo}")

    def _parse_error(self, result: CommandResult) -> GHCliError:
        """Parse a failed command result into a specific error type."""
        combined = (result.stderr + result.stdout).lower()
        detail = result.stderr.strip() or result.stdout.strip()

        if "authentication" in combined or "not logged in" in combined or "http 401" in combined:
            return AuthenticationError(f"Authentication failed: {detail}")

        if "rate limit" in combined:
            return RateLimitError(f"Rate limit exceeded: {detail}")

        if "not found" in combined or "http 404" in combined or "could not resolve" in combined:
            return NotFoundError(f"Resource not found: {detail}")

        if "permission denied" in combined or "forbidden" in combined or "http 403" in combined:
            return PermissionError(f"Permission denied: {detail}")

        return GHCliError(f"Command failed: {detail}")

    def _env(self) -> dict[str, str] | None:
        if not self._token:
            return None
        env = dict(os.environ)
        env["GH_TOKEN"] = self._token
        env["GH_PROMPT_DISABLED"] = "1"
        return env

    async def _run_command(
        self,
        args: list[str],
        timeout: int | None = None,
        check: bool = True,
    ) -> CommandResult:
        """Run a gh CLI command safely.

        Args:
            args: Command arguments (without 'gh' prefix).
            timeout: Timeout in seconds (uses default if None).
            check: If True, raise an exception on failure.

        Returns:
            CommandResult with stdout, stderr, and return code.

        Raises:
            CommandTimeoutError: If the command times out.
            GHCliError: If check=True and the command fails.
        """
        cmd = [self._gh_path, *args]
        effective_timeout = timeout or self._default_timeout
        env = self._env()

        if self._rate_limiter is not None:
            await self._rate_limiter.acquire()

        log.debug("executing_gh_command", command=cmd, timeout=effective_timeout)

        def run_sync() -> subprocess.CompletedProcess[str]:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=effective_timeout,
                shell=False,
                env=env,
            )

        try:
            proc = await asyncio.wait_for(
                asyncio.to_thread(run_sync),
                timeout=effective_timeout + 5,
            )
        except (subprocess.TimeoutExpired, TimeoutError) as e:
            log.error("command_timeout", command=cmd, timeout=effective_timeout)
            raise CommandTimeoutError(
                f"Command timed out after {effective_timeout}s: {cmd}"
            ) from e

        result = CommandResult(
            stdout=proc.stdout,
            stderr=proc.stderr,
            return_code=proc.returncode,
            command=cmd,
        )

        if check and not result.success:
            error = self._parse_error(result)
            if isinstance(error, RateLimitError):
                log.warning("rate_limit_hit", command=cmd)
            raise error

        return result

    async def check_auth(self) -> bool:
        """Check if gh CLI is authenticated.

        Returns:
            True if authenticated, False otherwise.
        """
        try:
            result = await self._run_command(["auth", "status"], check=False)
            return result.success
        except GHCliError:
            return False

    async def api(
        self,
        path: str,
        method: str = "GET",
        fields: dict[str, str | list[str]] | None = None,
        paginate: bool = False,
    ) -> Any:
        """Call a GitHub REST endpoint through ``gh api``.

        Args:
            path: Endpoint path relative to the API root, e.g.
                ``repos/istio/istio/issues/1/labels``.
            method: HTTP method.
            fields: Request body fields. List values are sent as array fields.
            paginate: Follow all pages; the endpoint must return a JSON array.

        Returns:
            The decoded response. Paginated calls return a flat list; empty
            responses (e.g. 204 No Content) return None.

        Raises:
            NotFoundError: If the endpoint returns 404.
            GHCliError: If the command fails for another reason.
        """
        args = ["api", path, "--method", method.upper()]

        for key, value in (fields or {}).items():
            if isinstance(value, list):
                for item in value:
                    args.extend(["-f", f"{key}[]={item}"])
            else:
                args.extend(["-f", f"{key}={value}"])

        if paginate:
            # one array element per output line across all pages
            args.extend(["--paginate", "--jq", ".[]"])
            result = await self._run_command(args, timeout=self.PAGINATE_TIMEOUT)
            return result.json_lines()

        result = await self._run_command(args)
        return result.json()
