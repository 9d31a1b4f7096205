"""Applies lifecycle actions to GitHub."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog

from ..models.actions import Action, ActionKind
from ..models.issue import Issue
from ..utils.metrics import MetricsRegistry, get_metrics
from .engine import BOT_SIGNATURE
from .errors import ActionApplyError

if TYPE_CHECKING:
    from ..interfaces.github import IssueMutator

log = structlog.get_logger()


class ActionExecutor:
    """Translates engine actions into GitHub client calls.

    Actions are applied in order and the first failure stops the rest.
    No retries happen here; the next sweep re-derives every action.

    Example:
        executor = ActionExecutor(github)
        await executor.apply(issue, decision.actions)
    """

    def __init__(
        self,
        client: IssueMutator,
        metrics: MetricsRegistry | None = None,
        logger: Any = None,
        signature: str = BOT_SIGNATURE,
    ) -> None:
        """Initialize the executor.

        Args:
            client: Rate-limited GitHub mutation client
            metrics: Metrics registry (defaults to the global one)
            logger: structlog logger (defaults to the module logger)
            signature: Trailer identifying the bot's own comments
        """
        self._client = client
        self._metrics = metrics or get_metrics()
        self._log = logger or log
        self._signature = signature

    async def apply(self, issue: Issue, actions: Sequence[Action], dry_run: bool = False) -> None:
        """Apply actions to an issue.

        Args:
            issue: The issue the actions were computed for
            actions: Ordered actions from the engine
            dry_run: If True, only log what would have happened

        Raises:
            ActionApplyError: If a GitHub call fails
        """
        for action in actions:
            if dry_run:
                self._log.info(
                    f"would_{action.kind.value}",
                    issue=str(issue.ref),
                    label=action.label or None,
                    purpose=action.purpose or None,
                )
                continue

            try:
                await self._apply_one(issue, action)
            except Exception as e:
                self._metrics.action_failures.inc(labels={"kind": action.kind.value})
                raise ActionApplyError(issue.ref, action, e) from e

            self._metrics.actions_applied.inc(labels={"kind": action.kind.value})
            self._log.info(
                f"{action.kind.value}_applied",
                issue=str(issue.ref),
                label=action.label or None,
                purpose=action.purpose or None,
            )

    async def _apply_one(self, issue: Issue, action: Action) -> None:
        org, repo, number = issue.org, issue.repo, issue.number

        if action.kind == ActionKind.ADD_LABEL:
            await self._client.add_label(org, repo, number, action.label)
        elif action.kind == ActionKind.REMOVE_LABEL:
            await self._client.remove_label(org, repo, number, action.label)
        elif action.kind == ActionKind.ADD_COMMENT:
            await self._client.add_or_replace_bot_comment(
                org, repo, number, action.body, self._signature
            )
        elif action.kind == ActionKind.REMOVE_COMMENT:
            await self._client.remove_bot_comment(org, repo, number, self._signature)
        elif action.kind == ActionKind.CLOSE:
            await self._client.close_issue(org, repo, number)
        else:
            raise ValueError(f"Unsupported action kind: {action.kind}")
