"""Issue and pull request lifecycle decision engine.

The engine maps an issue snapshot, the repository's lifecycle policy,
member activity signals and the current time to the ordered list of
actions needed to keep the issue in the right lifecycle state:

- too-new and ignore-label guards
- label cleanup on closed items
- triage of unclassified or untouched issues
- escalation of high-priority items lacking a member response
- staleness marking and automatic closure, unless staleproof

Evaluation is a pure function of its arguments.
All timestamps must be timezone-aware.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..config.schema import LifecyclePolicy
from ..models.actions import Action, Decision, LifecycleStats
from ..models.issue import Issue
from ..models.signals import ActivitySignals

BOT_SIGNATURE = "\n\n_Created by the issue and PR lifecycle manager_."

DATE_FORMAT = "%Y-%m-%d"

SKIP_TOO_NEW = "too_new"
SKIP_IGNORED = "ignored"


@dataclass(frozen=True)
class LabelState:
    """Lifecycle-relevant labels found on an issue."""

    has_triage: bool = False
    has_escalation: bool = False
    has_staleproof: bool = False
    has_stale: bool = False
    has_feature_request: bool = False
    has_close: bool = False
    ignored_by: str | None = None

    @classmethod
    def classify(cls, labels: tuple[str, ...], policy: LifecyclePolicy) -> LabelState:
        """Scan an issue's labels once against the policy's label names."""
        present = set(labels)

        def has(name: str) -> bool:
            return bool(name) and name in present

        ignored_by = next((label for label in labels if label in policy.ignore_labels), None)

        return cls(
            has_triage=has(policy.triage_label),
            has_escalation=has(policy.escalation_label),
            has_staleproof=has(policy.staleproof_label),
            has_stale=has(policy.stale_label),
            has_feature_request=has(policy.feature_request_label),
            has_close=has(policy.close_label),
            ignored_by=ignored_by,
        )


def needs_triage(signals: ActivitySignals) -> bool:
    """Return True if an issue still needs its initial human review."""
    return signals.unclassified or signals.never_touched


def needs_escalation(signals: ActivitySignals, idle: timedelta, policy: LifecyclePolicy) -> bool:
    """Return True if a high-priority item has waited too long for a member."""
    return signals.high_priority and idle > policy.escalation_delay


def select_delays(
    issue: Issue,
    labels: LabelState,
    policy: LifecyclePolicy,
) -> tuple[timedelta, timedelta]:
    """Return the (stale, close) delays for the kind of item."""
    if issue.is_pull_request:
        return policy.pull_request_stale_delay, policy.pull_request_close_delay
    if labels.has_feature_request:
        return policy.feature_request_stale_delay, policy.feature_request_close_delay
    return policy.issue_stale_delay, policy.issue_close_delay


class _Plan:
    """Accumulates actions while skipping those with no configured label."""

    def __init__(self) -> None:
        self.actions: list[Action] = []
        self.stats = LifecycleStats()

    def add_label(self, label: str, present: bool) -> None:
        if label and not present:
            self.actions.append(Action.add_label(label))

    def remove_label(self, label: str, present: bool) -> None:
        if label and present:
            self.actions.append(Action.remove_label(label))

    def comment(self, template: str, purpose: str, **fields: object) -> None:
        # an empty template means the bot should have no comment at all
        if template:
            self.actions.append(Action.add_comment(template.format(**fields), purpose))
        else:
            self.actions.append(Action.remove_comment(purpose))

    def remove_comment(self) -> None:
        self.actions.append(Action.remove_comment())

    def decision(self) -> Decision:
        return Decision(actions=tuple(self.actions), stats=self.stats)


def evaluate(
    issue: Issue,
    policy: LifecyclePolicy,
    signals: ActivitySignals,
    now: datetime,
) -> Decision:
    """
    Compute the lifecycle actions for one issue or pull request.

    Args:
        issue: Snapshot of the issue
        policy: Lifecycle record governing the issue's repository
        signals: Member activity and pipeline classification
        now: Evaluation time

    Returns:
        Decision with the ordered actions and the stats they represent
    """
    if now - issue.created_at < policy.triage_delay:
        return Decision(skip_reason=SKIP_TOO_NEW)

    labels = LabelState.classify(issue.labels, policy)
    if labels.ignored_by is not None:
        return Decision(skip_reason=SKIP_IGNORED)

    plan = _Plan()

    if issue.is_closed:
        # bookkeeping only; stale and close labels stay as a record
        plan.remove_label(policy.triage_label, labels.has_triage)
        plan.remove_label(policy.escalation_label, labels.has_escalation)
        return plan.decision()

    reference = signals.latest_member_comment or issue.created_at
    idle = now - reference

    if not issue.is_pull_request:
        if needs_triage(signals):
            if policy.real_old_delay is None or issue.created_at > now - policy.real_old_delay:
                plan.stats.needs_triage += 1
                plan.add_label(policy.triage_label, labels.has_triage)
                return plan.decision()
        else:
            plan.remove_label(policy.triage_label, labels.has_triage)

    if needs_escalation(signals, idle, policy):
        plan.stats.needs_escalation += 1
        plan.add_label(policy.escalation_label, labels.has_escalation)
    else:
        plan.remove_label(policy.escalation_label, labels.has_escalation)

    if labels.has_staleproof:
        plan.remove_label(policy.stale_label, labels.has_stale)
        plan.remove_comment()
        return plan.decision()

    stale_delay, close_delay = select_delays(issue, labels, policy)
    fields = {
        "org": issue.org,
        "repo": issue.repo,
        "number": issue.number,
        "date": reference.strftime(DATE_FORMAT),
    }

    if idle > close_delay:
        plan.stats.closed += 1
        plan.actions.append(Action.close())
        plan.comment(policy.close_comment, "closing", **fields)
        plan.add_label(policy.close_label, labels.has_close)
    elif idle > stale_delay:
        plan.stats.marked_stale += 1
        plan.comment(
            policy.stale_comment,
            "staleness",
            close_date=(reference + close_delay).strftime(DATE_FORMAT),
            **fields,
        )
        plan.add_label(policy.stale_label, labels.has_stale)
    else:
        plan.remove_label(policy.stale_label, labels.has_stale)
        plan.remove_comment()

    return plan.decision()
