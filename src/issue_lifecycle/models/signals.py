"""Activity signals gathered for an issue before evaluation."""

from dataclasses import dataclass
from datetime import datetime

NEW_ISSUES_PIPELINE = "New Issues"
HIGH_PRIORITY_PIPELINES = frozenset({"P0", "Release Blocker"})


@dataclass(frozen=True)
class ActivitySignals:
    """Member activity and priority classification for one issue.

    A timestamp of None means the event never happened.
    """

    latest_member_comment: datetime | None = None
    latest_member_activity: datetime | None = None
    pipeline: str = ""

    @property
    def never_touched(self) -> bool:
        """Return True if no member has ever commented on or acted on the issue."""
        return self.latest_member_comment is None and self.latest_member_activity is None

    @property
    def unclassified(self) -> bool:
        """Return True if the issue has no meaningful pipeline yet."""
        return self.pipeline in ("", NEW_ISSUES_PIPELINE)

    @property
    def high_priority(self) -> bool:
        """Return True if the pipeline marks the issue as high priority."""
        return self.pipeline in HIGH_PRIORITY_PIPELINES
