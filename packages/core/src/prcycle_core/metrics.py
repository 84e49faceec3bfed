"""Cycle-time metrics derived from anchor timestamps."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from prcycle_core.errors import MissingAnchorError
from prcycle_core.events import EventKind, RawEvent
from prcycle_core.utils.business_hours import hours_between

if TYPE_CHECKING:
    from prcycle_core.config import EngineSettings
    from prcycle_core.events import PrSnapshot

logger = logging.getLogger(__name__)

# (anchor attribute, human label) in causal order.
STAGES: tuple[tuple[str, str], ...] = (
    ("first_commit", "first commit"),
    ("opened", "opened / ready for review"),
    ("review_requested", "review requested"),
    ("approved", "approved"),
    ("merged", "merged"),
)

# (metric name, start anchor, end anchor)
PHASES: tuple[tuple[str, str, str], ...] = (
    ("commit_to_open", "first_commit", "opened"),
    ("open_to_review", "opened", "review_requested"),
    ("review_to_approval", "review_requested", "approved"),
    ("approval_to_merge", "approved", "merged"),
)


@dataclass(frozen=True)
class Anchors:
    first_commit: datetime | None = None
    opened: datetime | None = None
    review_requested: datetime | None = None
    approved: datetime | None = None
    merged: datetime | None = None
    closed: datetime | None = None

    def require(self, name: str) -> datetime:
        value = getattr(self, name)
        if value is None:
            raise MissingAnchorError(name)
        return value


def _first_commit(commits: list[RawEvent], work_started_prefix: str | None) -> RawEvent | None:
    """Pick the commit that starts the clock.

    Priority: the "work started" commit when a prefix is configured, then
    the earliest non-merge commit, then the earliest commit of any kind.
    """
    if not commits:
        return None
    non_merge = [c for c in commits if not c.payload.get("is_merge")]
    if work_started_prefix:
        prefix = work_started_prefix.lower()
        for commit in non_merge:
            if (commit.payload.get("message") or "").lower().startswith(prefix):
                return commit
    return non_merge[0] if non_merge else commits[0]


def find_anchors(events: tuple[RawEvent, ...] | list[RawEvent], work_started_prefix: str | None = None) -> Anchors:
    """Locate the anchor timestamps in a sorted event sequence."""

    def first(kind: EventKind) -> datetime | None:
        return next((e.timestamp for e in events if e.kind is kind), None)

    commit = _first_commit([e for e in events if e.kind is EventKind.COMMIT], work_started_prefix)

    # First ready_for_review wins; otherwise the most recent (re)open.
    opened = first(EventKind.READY_FOR_REVIEW)
    if opened is None:
        opens = [e.timestamp for e in events if e.kind is EventKind.OPENED]
        opened = opens[-1] if opens else None

    return Anchors(
        first_commit=commit.timestamp if commit else None,
        opened=opened,
        review_requested=first(EventKind.REVIEW_REQUESTED),
        approved=first(EventKind.APPROVED),
        merged=first(EventKind.MERGED),
        closed=first(EventKind.CLOSED),
    )


def phase_duration(anchors: Anchors, start: str, end: str, business_only: bool = False) -> float | None:
    """Hours between two anchors, or None when either is missing or the gap is negative."""
    try:
        begin = anchors.require(start)
        finish = anchors.require(end)
    except MissingAnchorError as e:
        logger.debug("%s → %s not computed: %s", start, end, e)
        return None
    hours = hours_between(begin, finish, business_only)
    if hours < 0:
        return None
    return hours


def calculate_total_time(
    commit_to_open: float | None,
    open_to_review: float | None,
    review_to_approval: float | None,
    approval_to_merge: float | None,
) -> float:
    """Sum of the four phases, absent phases counting as zero."""
    return (commit_to_open or 0) + (open_to_review or 0) + (review_to_approval or 0) + (approval_to_merge or 0)


def _round(value: float | None) -> float | None:
    return None if value is None else round(value, 2)


@dataclass
class PrMetrics:
    pr_number: int
    title: str
    author: str
    url: str
    status: str
    commit_to_open: float | None = None
    open_to_review: float | None = None
    review_to_approval: float | None = None
    approval_to_merge: float | None = None
    created_at: str | None = None
    updated_at: str | None = None
    labels: list[dict] = field(default_factory=list)
    has_force_pushed: bool = False
    is_draft: bool = False
    was_created_as_draft: bool = False
    base_branch: str | None = None
    head_branch: str | None = None

    @property
    def total_time(self) -> float:
        return calculate_total_time(
            self.commit_to_open, self.open_to_review, self.review_to_approval, self.approval_to_merge
        )

    @property
    def open_to_merge(self) -> float:
        return (self.open_to_review or 0) + (self.review_to_approval or 0) + (self.approval_to_merge or 0)

    def to_dict(self) -> dict:
        """Dashboard shape: camelCase keys, hours rounded to two decimals."""
        return {
            "prNumber": self.pr_number,
            "title": self.title,
            "author": self.author,
            "url": self.url,
            "status": self.status,
            "commitToOpen": _round(self.commit_to_open),
            "openToReview": _round(self.open_to_review),
            "reviewToApproval": _round(self.review_to_approval),
            "approvalToMerge": _round(self.approval_to_merge),
            "totalTime": round(self.total_time, 2),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "labels": [dict(label) for label in self.labels],
            "hasForcePushed": self.has_force_pushed,
            "isDraft": self.is_draft,
            "wasCreatedAsDraft": self.was_created_as_draft,
            "baseBranch": self.base_branch,
            "headBranch": self.head_branch,
        }


def compute_metrics(
    snapshot: PrSnapshot,
    events: tuple[RawEvent, ...] | list[RawEvent],
    settings: EngineSettings | None = None,
    anchors: Anchors | None = None,
) -> PrMetrics:
    """Derive PrMetrics from the normalized events of one snapshot.

    Force pushes never move an anchor; they only set has_force_pushed.
    PRs that are still drafts get no durations at all.
    """
    business_only = settings.business_hours if settings else False
    prefix = settings.work_started_prefix if settings else None
    anchors = anchors or find_anchors(events, prefix)

    metrics = PrMetrics(
        pr_number=snapshot.number,
        title=snapshot.title or f"PR #{snapshot.number}",
        author=snapshot.author or "Unknown",
        url=snapshot.url,
        status=snapshot.status,
        created_at=snapshot.created_at,
        updated_at=snapshot.updated_at,
        labels=[dict(label) for label in snapshot.labels],
        has_force_pushed=any(e.kind is EventKind.FORCE_PUSHED for e in events),
        is_draft=snapshot.is_draft,
        # History, not current state: a dropped ready_for_review record still counts.
        was_created_as_draft=snapshot.was_created_as_draft
        or any(e.kind is EventKind.READY_FOR_REVIEW for e in events),
        base_branch=snapshot.base_branch,
        head_branch=snapshot.head_branch,
    )
    if snapshot.status == "Draft":
        return metrics

    for name, start, end in PHASES:
        setattr(metrics, name, phase_duration(anchors, start, end, business_only))
    return metrics
