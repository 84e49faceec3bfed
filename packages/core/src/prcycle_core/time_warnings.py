"""Per-phase time limits and suggested reasons for slow PRs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from prcycle_core.config import DEFAULT_TIME_LIMITS
from prcycle_core.events import parse_timestamp

if TYPE_CHECKING:
    from prcycle_core.events import PrSnapshot
    from prcycle_core.metrics import PrMetrics

PHASE_LABELS = {
    "commit_to_open": "Commit → Open",
    "open_to_review": "Open → Review",
    "review_to_approval": "Review → Approve",
    "approval_to_merge": "Approve → Merge",
}

_MAX_REASONS = 4


@dataclass(frozen=True)
class TimeWarning:
    type: str
    label: str
    limit: float
    actual: float
    suggested_reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "label": self.label,
            "limit": self.limit,
            "actual": self.actual,
            "exceeded": True,
            "suggestedReasons": list(self.suggested_reasons),
        }


@dataclass(frozen=True)
class TimeWarningResult:
    warnings: tuple[TimeWarning, ...] = field(default_factory=tuple)

    @property
    def has_warning(self) -> bool:
        return bool(self.warnings)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)


def _created_on_weekend(snapshot: PrSnapshot) -> bool:
    try:
        return parse_timestamp(snapshot.created_at).weekday() >= 5
    except ValueError:
        return False


def suggest_reasons(phase: str, snapshot: PrSnapshot) -> list[str]:
    reasons: list[str] = []
    changed = snapshot.changed_files or 0
    additions = snapshot.additions or 0
    deletions = snapshot.deletions or 0
    total_loc = additions + deletions

    if changed > 20:
        reasons.append(f"Many files changed ({changed} files)")
    if total_loc > 500:
        reasons.append(f"Large diff (+{additions}/-{deletions} LOC)")
    if _created_on_weekend(snapshot):
        reasons.append("PR was created on a weekend")

    if phase == "commit_to_open":
        if changed > 10:
            reasons.append("Large PR needs more preparation time")
    elif phase == "open_to_review":
        reasons.append("No reviewer may have been assigned yet")
        reasons.append("Reviewers may be busy with other tasks")
    elif phase == "review_to_approval":
        reasons.append("Several review rounds may have been needed")
        if total_loc > 300:
            reasons.append("Large PR needs a more careful review")
    elif phase == "approval_to_merge":
        reasons.append("May be waiting for CI/CD to finish")
        reasons.append("May be waiting for a merge window")

    if not reasons:
        reasons.append("No specific reason identified")
    return list(dict.fromkeys(reasons))[:_MAX_REASONS]


def check_time_warnings(
    metrics: PrMetrics,
    snapshot: PrSnapshot,
    limits: dict | None = None,
    exempt_branches: tuple[str, ...] | list[str] = (),
) -> TimeWarningResult:
    """Compare each present phase duration against its limit (hours)."""
    limits = {**DEFAULT_TIME_LIMITS, **(limits or {})}
    warnings: list[TimeWarning] = []
    for phase, label in PHASE_LABELS.items():
        actual = getattr(metrics, phase)
        if actual is None or actual <= limits[phase]:
            continue
        if phase == "approval_to_merge" and snapshot.base_branch in exempt_branches:
            continue
        warnings.append(
            TimeWarning(
                type=phase,
                label=label,
                limit=limits[phase],
                actual=round(actual, 2),
                suggested_reasons=tuple(suggest_reasons(phase, snapshot)),
            )
        )
    return TimeWarningResult(warnings=tuple(warnings))
