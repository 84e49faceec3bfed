"""Timeline reconstruction, validation and cycle-time metrics for one PR.

analyze() is a pure function of (snapshot, settings): no I/O, no shared
state, no caching. Running it twice on the same snapshot gives identical
results, and analyze_batch() is a plain map over independent snapshots.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from prcycle_core.config import EngineSettings
from prcycle_core.correlation import correlation_from_settings
from prcycle_core.errors import InvalidInputError
from prcycle_core.events import PrSnapshot
from prcycle_core.metrics import PrMetrics, compute_metrics, find_anchors
from prcycle_core.normalizer import normalize
from prcycle_core.time_warnings import TimeWarningResult, check_time_warnings
from prcycle_core.timeline import TimelineItem, build_timeline
from prcycle_core.validator import ERROR, ValidationIssue, validate

logger = logging.getLogger(__name__)


@dataclass
class Analysis:
    """Everything derived from one snapshot. Recomputed on demand, never stored."""

    snapshot: PrSnapshot
    timeline: list[TimelineItem]
    metrics: PrMetrics
    issues: list[ValidationIssue]
    notes: list[str] = field(default_factory=list)
    time_warnings: TimeWarningResult = field(default_factory=TimeWarningResult)

    @property
    def has_errors(self) -> bool:
        return any(i.severity == ERROR for i in self.issues)

    @property
    def has_time_warning(self) -> bool:
        return self.time_warnings.has_warning

    @property
    def needs_timeline_update(self) -> bool:
        # An open or draft PR can still gain events; a lossy normalization
        # means the stored timeline is incomplete. Either way a fresh
        # collection would change the timeline.
        return self.snapshot.status in ("Open", "Draft") or bool(self.notes)

    def to_dict(self) -> dict:
        return {
            "timeline": [item.to_dict() for item in self.timeline],
            "validationIssues": [issue.to_dict() for issue in self.issues],
            "notes": list(self.notes),
            "pr": {
                **self.metrics.to_dict(),
                "needsTimelineUpdate": self.needs_timeline_update,
                "hasTimeWarning": self.has_time_warning,
                "timeWarnings": [w.to_dict() for w in self.time_warnings.warnings],
            },
        }


def analyze(snapshot: PrSnapshot, settings: EngineSettings | None = None) -> Analysis:
    """Return the (timeline, metrics, issues) triple for one snapshot.

    Malformed records are dropped and reported in Analysis.notes; missing
    anchors become absent metrics; ordering problems become issues. Only an
    empty or unreadable snapshot raises InvalidInputError.
    """
    if not isinstance(snapshot, PrSnapshot):
        raise InvalidInputError(f"Expected a PrSnapshot, got {type(snapshot).__name__}")
    if snapshot.is_empty:
        raise InvalidInputError(f"PR #{snapshot.number} snapshot has no events or metadata to analyze.")

    settings = settings or EngineSettings()
    correlation = correlation_from_settings(settings.thread_correlation, settings.thread_window_hours)

    normalized = normalize(snapshot)
    anchors = find_anchors(normalized.events, settings.work_started_prefix)
    timeline = build_timeline(normalized.events, snapshot, correlation)
    metrics = compute_metrics(snapshot, normalized.events, settings, anchors)
    issues = validate(normalized.events, snapshot, settings, anchors)
    warnings = check_time_warnings(
        metrics, snapshot, settings.time_limits, settings.time_warning_exempt_branches
    )

    return Analysis(
        snapshot=snapshot,
        timeline=timeline,
        metrics=metrics,
        issues=issues,
        notes=list(normalized.notes),
        time_warnings=warnings,
    )


def analyze_batch(snapshots: Iterable[PrSnapshot], settings: EngineSettings | None = None) -> list[Analysis]:
    """Analyze independent snapshots; unreadable ones are logged and skipped."""
    results = []
    for snapshot in snapshots:
        try:
            results.append(analyze(snapshot, settings))
        except InvalidInputError as e:
            logger.warning("Skipping snapshot: %s", e)
    return results
