"""Tests for workflow validation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from prcycle_core.config import EngineSettings
from prcycle_core.events import PrSnapshot
from prcycle_core.metrics import Anchors
from prcycle_core.normalizer import normalize
from prcycle_core.validator import (
    ABNORMAL_TIME,
    ERROR,
    MISSING_STEP,
    WARNING,
    WRONG_ORDER,
    ValidationIssue,
    check_gaps,
    check_order,
    validate,
)

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


def _at(hours: float) -> str:
    return (T0 + timedelta(hours=hours)).isoformat()


def _merged_snapshot(**overrides) -> PrSnapshot:
    data = dict(
        repo="owner/repo",
        number=7,
        title="Add login form",
        author="alice",
        url="https://github.com/owner/repo/pull/7",
        state="closed",
        created_at=_at(2),
        merged_at=_at(12),
        closed_at=_at(12),
        commits=({"sha": "a1", "message": "Start work", "date": _at(0), "author": "alice"},),
        timeline=(
            {"id": 11, "event": "review_requested", "created_at": _at(3), "actor": "alice", "requested_reviewer": "bob"},
        ),
        reviews=({"id": 21, "state": "APPROVED", "submitted_at": _at(10), "user": "bob", "body": ""},),
    )
    data.update(overrides)
    return PrSnapshot(**data)


def _validate(snapshot: PrSnapshot, settings: EngineSettings | None = None) -> list[ValidationIssue]:
    return validate(normalize(snapshot).events, snapshot, settings)


def _of_type(issues, issue_type):
    return [i for i in issues if i.type == issue_type]


# ---------------------------------------------------------------------------
# Missing steps
# ---------------------------------------------------------------------------


class TestMissingSteps:
    def test_complete_flow_has_no_issues(self):
        assert _validate(_merged_snapshot()) == []

    def test_missing_review_request(self):
        issues = _validate(_merged_snapshot(timeline=()))
        missing = _of_type(issues, MISSING_STEP)
        assert len(missing) == 1
        assert missing[0].severity == ERROR
        assert missing[0].details["step"] == "review_requested"
        assert missing[0].message == "Missing review request step"

    def test_missing_commit(self):
        issues = _validate(_merged_snapshot(commits=()))
        assert [i.details["step"] for i in _of_type(issues, MISSING_STEP)] == ["first_commit"]

    def test_open_pr_not_merged_is_warning(self):
        issues = _validate(_merged_snapshot(state="open", merged_at=None, closed_at=None))
        merged = [i for i in issues if i.details and i.details.get("step") == "merged"]
        assert merged[0].severity == WARNING

    def test_merged_without_merge_event_is_error(self):
        # Hand-built snapshot: metadata says merged but the merge record never parsed.
        snapshot = _merged_snapshot(merged_at="garbage")
        issues = _validate(snapshot)
        merged = [i for i in issues if i.details and i.details.get("step") == "merged"]
        assert merged[0].severity == ERROR

    def test_closed_unmerged_review_steps_are_warnings(self):
        snapshot = _merged_snapshot(merged_at=None, timeline=(), reviews=())
        issues = _of_type(_validate(snapshot), MISSING_STEP)
        assert {i.details["step"] for i in issues} == {"review_requested", "approved"}
        assert all(i.severity == WARNING for i in issues)

    def test_draft_skips_missing_step_checks(self):
        snapshot = _merged_snapshot(state="open", is_draft=True, merged_at=None, closed_at=None, timeline=(), reviews=())
        assert _of_type(_validate(snapshot), MISSING_STEP) == []

    def test_work_started_commit_missing(self):
        settings = EngineSettings(work_started_prefix="work has started on the")
        issues = _validate(_merged_snapshot(), settings)
        assert len(issues) == 1
        assert issues[0].severity == WARNING
        assert issues[0].details["step"] == "work_started_commit"
        assert issues[0].details["commitTitles"] == ["Start work"]


# ---------------------------------------------------------------------------
# Order and gaps
# ---------------------------------------------------------------------------


class TestOrder:
    def test_merged_before_approved(self):
        reviews = ({"id": 21, "state": "APPROVED", "submitted_at": _at(14), "user": "bob", "body": ""},)
        issues = _validate(_merged_snapshot(reviews=reviews))
        wrong = _of_type(issues, WRONG_ORDER)
        assert len(wrong) == 1
        assert wrong[0].severity == ERROR
        assert wrong[0].details["earlier"] == "approved"
        assert wrong[0].details["later"] == "merged"

    def test_only_adjacent_present_stages_compared(self):
        anchors = Anchors(first_commit=T0, opened=T0 + timedelta(hours=1), merged=T0 + timedelta(hours=2))
        assert check_order(anchors) == []

    def test_commit_after_open_is_not_an_error(self):
        commits = (
            {"sha": "a1", "message": "Start work", "date": _at(0), "author": "alice"},
            {"sha": "a2", "message": "Address review", "date": _at(11), "author": "alice"},
        )
        assert _validate(_merged_snapshot(commits=commits)) == []


class TestGaps:
    def test_long_gap_is_warning(self):
        approved = T0 + timedelta(hours=3, days=45)
        reviews = ({"id": 21, "state": "APPROVED", "submitted_at": approved.isoformat(), "user": "bob", "body": ""},)
        merged = (approved + timedelta(hours=1)).isoformat()
        issues = _validate(_merged_snapshot(reviews=reviews, merged_at=merged, closed_at=merged))
        assert len(issues) == 1
        assert issues[0].type == ABNORMAL_TIME
        assert issues[0].severity == WARNING
        assert "45.0 days" in issues[0].message
        assert "threshold 30 days" in issues[0].message

    def test_negative_gap_is_error(self):
        approved = T0 + timedelta(hours=3) - timedelta(minutes=10)
        reviews = ({"id": 21, "state": "APPROVED", "submitted_at": approved.isoformat(), "user": "bob", "body": ""},)
        issues = _validate(_merged_snapshot(reviews=reviews))
        abnormal = _of_type(issues, ABNORMAL_TIME)
        assert len(abnormal) == 1
        assert abnormal[0].severity == ERROR
        assert abnormal[0].details["hours"] == round(-10 / 60, 2)
        assert len(_of_type(issues, WRONG_ORDER)) == 1

    def test_threshold_configurable(self):
        anchors = Anchors(opened=T0, review_requested=T0 + timedelta(days=3))
        assert check_gaps(anchors, timedelta(days=30)) == []
        assert len(check_gaps(anchors, timedelta(days=2))) == 1


def test_issue_to_dict():
    issue = ValidationIssue(MISSING_STEP, ERROR, "Missing approval step", {"step": "approved"})
    assert issue.to_dict() == {
        "type": "missing_step",
        "severity": "error",
        "message": "Missing approval step",
        "details": {"step": "approved"},
    }
