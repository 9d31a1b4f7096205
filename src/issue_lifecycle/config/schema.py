"""Pydantic models for configuration schema."""

import re
import string
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(w|d|h|m|s)")
_DURATION_FULL = re.compile(r"^(?:\d+(?:\.\d+)?(?:w|d|h|m|s))+$")
_DURATION_UNITS = {"w": "weeks", "d": "days", "h": "hours", "m": "minutes", "s": "seconds"}

# Fields available to comment templates
CLOSE_COMMENT_FIELDS = frozenset({"org", "repo", "number", "date"})
STALE_COMMENT_FIELDS = CLOSE_COMMENT_FIELDS | {"close_date"}


def parse_duration(value: Any) -> Any:
    """Accept Go-style duration strings such as ``720h`` or ``1d12h``.

    Anything else is handed to pydantic's own timedelta parsing
    (seconds, ISO 8601, ``HH:MM:SS``).
    """
    if isinstance(value, str):
        text = value.strip().replace(" ", "")
        if _DURATION_FULL.match(text):
            total = timedelta()
            for amount, unit in _DURATION_PART.findall(text):
                total += timedelta(**{_DURATION_UNITS[unit]: float(amount)})
            return total
    return value


Duration = Annotated[timedelta, BeforeValidator(parse_duration)]


# Values shaped like the ones the engine renders with; dates are plain strings
_SAMPLE_FIELDS: dict[str, object] = {
    "org": "istio",
    "repo": "istio",
    "number": 1,
    "date": "2024-01-01",
    "close_date": "2024-03-01",
}


def _template_fields(template: str) -> set[str]:
    return {name for _, name, _, _ in string.Formatter().parse(template) if name is not None}


def _check_template(name: str, template: str, allowed: frozenset[str]) -> str:
    unknown = _template_fields(template) - allowed
    if unknown:
        raise ValueError(f"Unknown {name} placeholders: {sorted(unknown)}")
    sample = {key: value for key, value in _SAMPLE_FIELDS.items() if key in allowed}
    try:
        template.format(**sample)
    except (ValueError, IndexError, KeyError, AttributeError) as e:
        raise ValueError(f"Invalid {name} template: {e}") from e
    return template


class LifecyclePolicy(BaseModel):
    """Per-repository lifecycle thresholds, label names and comment templates.

    A record with no ``repos`` is the global default, used for every
    configured repository that has no record of its own.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    repos: list[str] = []

    feature_request_label: str = "enhancement"
    ignore_labels: list[str] = []
    real_old_delay: Duration | None = None

    triage_delay: Duration = timedelta(0)
    triage_label: str = "lifecycle/needs-triage"

    escalation_delay: Duration = timedelta(days=7)
    escalation_label: str = "lifecycle/needs-escalation"

    pull_request_stale_delay: Duration = timedelta(days=30)
    feature_request_stale_delay: Duration = timedelta(days=30)
    issue_stale_delay: Duration = timedelta(days=30)
    stale_label: str = "lifecycle/stale"
    stale_comment: str = (
        "This issue or pull request has been automatically marked as stale because it has "
        "not had activity from a project member since {date}. It will be closed on "
        "{close_date} unless a project member adds the `lifecycle/staleproof` label or "
        "comments on it."
    )
    staleproof_label: str = Field("lifecycle/staleproof", alias="cant_be_stale_label")

    pull_request_close_delay: Duration = timedelta(days=60)
    feature_request_close_delay: Duration = timedelta(days=60)
    issue_close_delay: Duration = timedelta(days=60)
    close_label: str = "lifecycle/automatically-closed"
    close_comment: str = (
        "This issue or pull request has been automatically closed because it has not had "
        "activity from a project member since {date}. If you feel this issue or pull "
        "request deserves attention, please reopen it."
    )

    @field_validator("repos")
    @classmethod
    def validate_repos(cls, v: list[str]) -> list[str]:
        """Validate repository names claimed by the record."""
        from ..utils.security import validate_repo_name

        for repo in v:
            if not validate_repo_name(repo):
                raise ValueError(f"Invalid repository format: {repo}. Expected: org/repo")
        return v

    @field_validator("stale_comment")
    @classmethod
    def validate_stale_comment(cls, v: str) -> str:
        """Reject stale comments that cannot be rendered."""
        return _check_template("stale_comment", v, STALE_COMMENT_FIELDS)

    @field_validator("close_comment")
    @classmethod
    def validate_close_comment(cls, v: str) -> str:
        """Reject close comments that cannot be rendered."""
        return _check_template("close_comment", v, CLOSE_COMMENT_FIELDS)

    @property
    def is_default(self) -> bool:
        """Return True if this is the global default record."""
        return not self.repos

    def inverted_delays(self) -> list[str]:
        """Return the variants whose stale delay is not below the close delay."""
        pairs = {
            "issue": (self.issue_stale_delay, self.issue_close_delay),
            "pull_request": (self.pull_request_stale_delay, self.pull_request_close_delay),
            "feature_request": (self.feature_request_stale_delay, self.feature_request_close_delay),
        }
        return [name for name, (stale, close) in pairs.items() if stale >= close]


class RepoConfig(BaseModel):
    """Configuration for an individual repository."""

    name: str


class OrgConfig(BaseModel):
    """Configuration for a GitHub organization."""

    name: str
    repos: list[RepoConfig] = []

    def repo_names(self) -> list[str]:
        """Return repositories in org/repo form."""
        return [f"{self.name}/{repo.name}" for repo in self.repos]


class GitHubConfig(BaseModel):
    """GitHub-specific configuration."""

    token: str | None = None
    gh_path: str | None = None
    command_timeout: int = Field(30, ge=1, le=600)
    requests_per_second: float = Field(5.0, gt=0)
    member_cache_ttl: int = Field(900, ge=0)
    robots: list[str] = []


class ZenHubConfig(BaseModel):
    """ZenHub-specific configuration."""

    token: str
    base_url: str = "https://api.zenhub.com"
    timeout: float = Field(30.0, gt=0)
    requests_per_second: float = Field(1.5, gt=0)
    cache_ttl: int = Field(900, ge=0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) base URL."""
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"Invalid ZenHub base URL: {v}")
        return v.rstrip("/")


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/issue-lifecycle/lifecycle.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class RuntimeConfig(BaseModel):
    """Runtime configuration."""

    max_concurrent: int = Field(5, ge=1, le=50, description="Max issues evaluated concurrently")
    signal_timeout: float = Field(30.0, gt=0, le=600, description="Per-lookup timeout in seconds")


class RetryConfig(BaseModel):
    """Retry configuration for transient ZenHub failures."""

    max_attempts: int = Field(3, ge=1, le=10)
    initial_delay: float = Field(1.0, ge=0.1, le=10.0)
    max_delay: float = Field(30.0, ge=1.0, le=300.0)


class BotConfig(BaseSettings):
    """Root configuration for the lifecycle manager."""

    github: GitHubConfig = GitHubConfig()
    zenhub: ZenHubConfig | None = None
    orgs: list[OrgConfig] = []
    lifecycle: list[LifecyclePolicy] = []
    logging: LoggingConfig = LoggingConfig()
    runtime: RuntimeConfig = RuntimeConfig()
    retry: RetryConfig = RetryConfig()

    model_config = SettingsConfigDict(
        env_prefix="LIFECYCLE_",
        env_nested_delimiter="__",
    )

    @model_validator(mode="after")
    def check_policy_cardinality(self) -> "BotConfig":
        """Allow one default record and at most one record per repository."""
        defaults = [policy for policy in self.lifecycle if policy.is_default]
        if len(defaults) > 1:
            raise ValueError("Only one lifecycle record may omit 'repos' (the global default)")

        claimed: set[str] = set()
        for policy in self.lifecycle:
            for repo in policy.repos:
                if repo in claimed:
                    raise ValueError(f"Multiple lifecycle records claim repository {repo}")
                claimed.add(repo)
        return self

    def repo_names(self) -> list[str]:
        """Return every configured repository in org/repo form."""
        return [name for org in self.orgs for name in org.repo_names()]
