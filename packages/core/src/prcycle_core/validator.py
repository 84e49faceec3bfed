"""Workflow validation: missing steps, wrong order, abnormal gaps.

Validation is total: it returns a (possibly empty) list of issues and
never raises, so callers always get whatever metrics could be computed
alongside the findings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from prcycle_core.events import EventKind, RawEvent
from prcycle_core.metrics import STAGES, Anchors, find_anchors

if TYPE_CHECKING:
    from prcycle_core.config import EngineSettings
    from prcycle_core.events import PrSnapshot

logger = logging.getLogger(__name__)

MISSING_STEP = "missing_step"
WRONG_ORDER = "wrong_order"
ABNORMAL_TIME = "abnormal_time"

ERROR = "error"
WARNING = "warning"

_STAGE_LABELS = dict(STAGES)


@dataclass(frozen=True)
class ValidationIssue:
    type: str  # "missing_step" | "wrong_order" | "abnormal_time"
    severity: str  # "error" | "warning"
    message: str
    details: dict | None = None

    def to_dict(self) -> dict:
        data = {"type": self.type, "severity": self.severity, "message": self.message}
        if self.details is not None:
            data["details"] = dict(self.details)
        return data


def _missing(step: str, severity: str, message: str, **details) -> ValidationIssue:
    return ValidationIssue(MISSING_STEP, severity, message, {"step": step, **details})


def check_missing_steps(
    anchors: Anchors,
    events: tuple[RawEvent, ...] | list[RawEvent],
    snapshot: PrSnapshot,
    work_started_prefix: str | None = None,
) -> list[ValidationIssue]:
    status = snapshot.status
    if status == "Draft":
        # Drafts are work in progress; only opened or merged PRs are held to the workflow.
        return []

    # A PR closed without merging never needed review or approval to finish.
    review_severity = WARNING if status == "Closed" else ERROR
    issues: list[ValidationIssue] = []

    if anchors.first_commit is None:
        issues.append(_missing("first_commit", ERROR, "Missing first commit step", blocks="commitToOpen"))
    elif work_started_prefix:
        messages = [e.payload.get("message") or "" for e in events if e.kind is EventKind.COMMIT]
        if not any(m.lower().startswith(work_started_prefix.lower()) for m in messages):
            issues.append(
                _missing(
                    "work_started_commit",
                    WARNING,
                    f'Missing "{work_started_prefix}" commit',
                    commitTitles=messages,
                )
            )

    if anchors.opened is None:
        issues.append(
            _missing("opened", ERROR, "Missing opened / ready for review step", blocks="commitToOpen, openToReview")
        )
    if anchors.review_requested is None:
        issues.append(
            _missing(
                "review_requested", review_severity, "Missing review request step", blocks="openToReview, reviewToApproval"
            )
        )
    if anchors.approved is None:
        issues.append(
            _missing("approved", review_severity, "Missing approval step", blocks="reviewToApproval, approvalToMerge")
        )
    if anchors.merged is None and anchors.closed is None:
        if status in ("Merged", "Closed"):
            issues.append(
                _missing("merged", ERROR, f"PR is {status.lower()} but the timeline has no merge or close step")
            )
        else:
            issues.append(_missing("merged", WARNING, "PR has not been merged or closed yet"))

    return issues


def _present_stages(anchors: Anchors) -> list[tuple[str, datetime]]:
    return [(name, getattr(anchors, name)) for name, _ in STAGES if getattr(anchors, name) is not None]


def check_order(anchors: Anchors) -> list[ValidationIssue]:
    """Flag each adjacent pair of present stages whose later stage is timestamped earlier."""
    issues: list[ValidationIssue] = []
    stages = _present_stages(anchors)
    for (earlier, earlier_time), (later, later_time) in zip(stages, stages[1:]):
        if later_time < earlier_time:
            issues.append(
                ValidationIssue(
                    WRONG_ORDER,
                    ERROR,
                    f"{_STAGE_LABELS[later].capitalize()} ({later_time.isoformat()}) appears before "
                    f"{_STAGE_LABELS[earlier]} ({earlier_time.isoformat()})",
                    {
                        "earlier": earlier,
                        "earlierTime": earlier_time.isoformat(),
                        "later": later,
                        "laterTime": later_time.isoformat(),
                    },
                )
            )
    return issues


def check_gaps(anchors: Anchors, threshold: timedelta) -> list[ValidationIssue]:
    """Flag impossible (negative) and excessive gaps between adjacent stages."""
    issues: list[ValidationIssue] = []
    stages = _present_stages(anchors)
    for (earlier, earlier_time), (later, later_time) in zip(stages, stages[1:]):
        gap = later_time - earlier_time
        details = {
            "from": earlier,
            "to": later,
            "fromTime": earlier_time.isoformat(),
            "toTime": later_time.isoformat(),
            "hours": round(gap.total_seconds() / 3600, 2),
        }
        if gap < timedelta(0):
            issues.append(
                ValidationIssue(
                    ABNORMAL_TIME,
                    ERROR,
                    f"Negative duration from {_STAGE_LABELS[earlier]} to {_STAGE_LABELS[later]}",
                    details,
                )
            )
        elif gap > threshold:
            issues.append(
                ValidationIssue(
                    ABNORMAL_TIME,
                    WARNING,
                    f"{_STAGE_LABELS[earlier].capitalize()} to {_STAGE_LABELS[later]} took "
                    f"{gap.total_seconds() / 86400:.1f} days (threshold {threshold.total_seconds() / 86400:g} days)",
                    details,
                )
            )
    return issues


def validate(
    events: tuple[RawEvent, ...] | list[RawEvent],
    snapshot: PrSnapshot,
    settings: EngineSettings | None = None,
    anchors: Anchors | None = None,
) -> list[ValidationIssue]:
    prefix = settings.work_started_prefix if settings else None
    gap_days = settings.abnormal_gap_days if settings else 30
    anchors = anchors or find_anchors(events, prefix)

    issues = check_missing_steps(anchors, events, snapshot, prefix)
    issues.extend(check_order(anchors))
    issues.extend(check_gaps(anchors, timedelta(days=gap_days)))

    if issues:
        logger.debug(
            "PR #%d: %d validation issue(s) (%d error(s))",
            snapshot.number,
            len(issues),
            sum(1 for i in issues if i.severity == ERROR),
        )
    return issues
