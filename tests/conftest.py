"""Shared test fixtures for the issue lifecycle manager."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from issue_lifecycle.config.schema import LifecyclePolicy
from issue_lifecycle.models.issue import Issue, IssueState
from issue_lifecycle.models.signals import ActivitySignals

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def days_ago(days: float) -> datetime:
    """Return a timestamp the given number of days before NOW."""
    return NOW - timedelta(days=days)


@pytest.fixture
def now() -> datetime:
    """Return the fixed evaluation time used across tests."""
    return NOW


@pytest.fixture
def ago() -> Callable[[float], datetime]:
    """Return a helper computing timestamps relative to NOW."""
    return days_ago


@pytest.fixture
def policy() -> LifecyclePolicy:
    """Return a lifecycle record with the default thresholds and labels."""
    return LifecyclePolicy()


@pytest.fixture
def make_issue() -> Callable[..., Issue]:
    """Return a factory for issue snapshots."""

    def factory(
        created_days_ago: float = 10,
        labels: tuple[str, ...] = (),
        state: IssueState = IssueState.OPEN,
        is_pull_request: bool = False,
        number: int = 1,
        org: str = "istio",
        repo: str = "istio",
    ) -> Issue:
        return Issue(
            org=org,
            repo=repo,
            number=number,
            is_pull_request=is_pull_request,
            created_at=days_ago(created_days_ago),
            state=state,
            labels=labels,
            title=f"Issue {number}",
        )

    return factory


@pytest.fixture
def make_signals() -> Callable[..., ActivitySignals]:
    """Return a factory for activity signals with day offsets."""

    def factory(
        comment_days_ago: float | None = None,
        activity_days_ago: float | None = None,
        pipeline: str = "Backlog",
    ) -> ActivitySignals:
        return ActivitySignals(
            latest_member_comment=days_ago(comment_days_ago)
            if comment_days_ago is not None
            else None,
            latest_member_activity=days_ago(activity_days_ago)
            if activity_days_ago is not None
            else None,
            pipeline=pipeline,
        )

    return factory


@pytest.fixture
def issue_json() -> Callable[..., dict[str, Any]]:
    """Return a factory for GitHub REST issue payloads."""

    def factory(
        number: int = 1,
        state: str = "open",
        labels: tuple[str, ...] = (),
        created_at: str = "2024-05-01T10:00:00Z",
        pull_request: bool = False,
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "number": number,
            "title": f"Issue {number}",
            "body": None,
            "state": state,
            "labels": [{"name": name} for name in labels],
            "created_at": created_at,
        }
        if pull_request:
            data["pull_request"] = {"url": f"https://api.github.com/pulls/{number}"}
        return data

    return factory


@pytest.fixture
def malicious_repo_names() -> list[str]:
    """Return a list of malicious repository names for testing."""
    return [
        "owner/repo; rm -rf /",
        "owner/repo$(whoami)",
        "owner/repo`id`",
        "../../../etc/passwd",
        "owner/repo\nmalicious",
        "owner/repo|cat /etc/passwd",
        "owner/repo&& echo pwned",
        "owner/repo\x00null",
    ]


@pytest.fixture
def valid_repo_names() -> list[str]:
    """Return a list of valid repository names for testing."""
    return [
        "istio/istio",
        "my-org/my-project",
        "user123/repo_name",
        "org.name/repo.name",
    ]
