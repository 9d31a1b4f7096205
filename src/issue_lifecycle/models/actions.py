"""Actions produced by the lifecycle engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ActionKind(StrEnum):
    """Kinds of mutation the executor can apply to an issue."""

    ADD_LABEL = "add_label"
    REMOVE_LABEL = "remove_label"
    ADD_COMMENT = "add_comment"
    REMOVE_COMMENT = "remove_comment"
    CLOSE = "close"


@dataclass(frozen=True)
class Action:
    """A single idempotent mutation.

    Attributes:
        kind: What to do
        label: Label name for label actions
        body: Comment body (without bot signature) for ADD_COMMENT
        purpose: Short tag for logs ("staleness", "closing")
    """

    kind: ActionKind
    label: str = ""
    body: str = ""
    purpose: str = ""

    @classmethod
    def add_label(cls, label: str) -> Action:
        return cls(ActionKind.ADD_LABEL, label=label)

    @classmethod
    def remove_label(cls, label: str) -> Action:
        return cls(ActionKind.REMOVE_LABEL, label=label)

    @classmethod
    def add_comment(cls, body: str, purpose: str) -> Action:
        return cls(ActionKind.ADD_COMMENT, body=body, purpose=purpose)

    @classmethod
    def remove_comment(cls, purpose: str = "staleness") -> Action:
        return cls(ActionKind.REMOVE_COMMENT, purpose=purpose)

    @classmethod
    def close(cls) -> Action:
        return cls(ActionKind.CLOSE)


@dataclass
class LifecycleStats:
    """Counts of lifecycle outcomes, used for sweep summary logging."""

    needs_triage: int = 0
    needs_escalation: int = 0
    marked_stale: int = 0
    closed: int = 0

    def __add__(self, other: LifecycleStats) -> LifecycleStats:
        return LifecycleStats(
            needs_triage=self.needs_triage + other.needs_triage,
            needs_escalation=self.needs_escalation + other.needs_escalation,
            marked_stale=self.marked_stale + other.marked_stale,
            closed=self.closed + other.closed,
        )

    def as_dict(self) -> dict[str, int]:
        """Return the counters as a dict for structured logging."""
        return {
            "needs_triage": self.needs_triage,
            "needs_escalation": self.needs_escalation,
            "marked_stale": self.marked_stale,
            "closed": self.closed,
        }


@dataclass(frozen=True)
class Decision:
    """Ordered actions for one issue plus the stats delta they represent.

    ``skip_reason`` is set when evaluation stopped before any policy
    applied (e.g. "too_new", "ignored").
    """

    actions: tuple[Action, ...] = ()
    stats: LifecycleStats = field(default_factory=LifecycleStats)
    skip_reason: str | None = None

    @property
    def empty(self) -> bool:
        """Return True if there is nothing to apply."""
        return not self.actions

    @property
    def kinds(self) -> list[ActionKind]:
        """Return the action kinds in order."""
        return [action.kind for action in self.actions]
