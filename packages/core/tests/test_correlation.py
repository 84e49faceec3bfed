"""Tests for review-thread correlation strategies."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from prcycle_core.correlation import ActorWindowCorrelation, FlatCorrelation, correlation_from_settings
from prcycle_core.events import EventKind, RawEvent

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


def _request(reviewer="bob", **payload) -> RawEvent:
    return RawEvent(EventKind.REVIEW_REQUESTED, T0, actor="alice", payload={"requested_reviewer": reviewer, **payload})


def _comment(actor="bob", hours=1.0, **payload) -> RawEvent:
    return RawEvent(EventKind.REVIEW_COMMENT, T0 + timedelta(hours=hours), actor=actor, payload=payload)


class TestActorWindowCorrelation:
    def test_requested_reviewer_within_window(self):
        assert ActorWindowCorrelation().belongs(_request(), _comment())

    def test_other_actor_rejected(self):
        assert not ActorWindowCorrelation().belongs(_request(), _comment(actor="carol"))

    def test_outside_window_rejected(self):
        strategy = ActorWindowCorrelation(window=timedelta(hours=24))
        assert not strategy.belongs(_request(), _comment(hours=25))

    def test_before_request_rejected(self):
        assert not ActorWindowCorrelation().belongs(_request(), _comment(hours=-1))

    def test_missing_reviewer_means_no_grouping(self):
        assert not ActorWindowCorrelation().belongs(_request(reviewer=None), _comment())

    def test_thread_id_decides_when_both_present(self):
        strategy = ActorWindowCorrelation()
        assert strategy.belongs(_request(thread_id="T1"), _comment(actor="carol", thread_id="T1"))
        assert not strategy.belongs(_request(thread_id="T1"), _comment(thread_id="T2"))


def test_flat_never_groups():
    assert not FlatCorrelation().belongs(_request(), _comment())


class TestCorrelationFromSettings:
    def test_flat(self):
        assert isinstance(correlation_from_settings("flat", 72), FlatCorrelation)

    def test_actor_window_uses_hours(self):
        strategy = correlation_from_settings("actor_window", 12)
        assert isinstance(strategy, ActorWindowCorrelation)
        assert strategy.window == timedelta(hours=12)

    def test_unknown_name_raises(self):
        with pytest.raises(ValueError, match="Unknown thread correlation"):
            correlation_from_settings("magic", 72)
