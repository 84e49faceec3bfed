"""Tests for the PyGithub snapshot collector."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

from prcycle_core.engine import analyze
from github import GithubException

from prcycle_core.gh.pull_request import collect_snapshot, fetch_details, get_pull, get_pull_requests, get_repo

CREATED = datetime(2024, 3, 4, 11, 0)  # PyGithub may hand back naive UTC datetimes
COMMITTED = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


def _user(login):
    user = MagicMock()
    user.login = login
    return user


def _commit(sha="abc1234", message="Start work\n\nDetails", parents=1):
    commit = MagicMock()
    commit.sha = sha
    commit.parents = [MagicMock() for _ in range(parents)]
    commit.committer = _user("alice")
    commit.author = _user("alice")
    commit.commit.message = message
    commit.commit.committer.date = COMMITTED
    return commit


def _review(state="APPROVED", hour=15):
    review = MagicMock()
    review.id = 21
    review.state = state
    review.submitted_at = datetime(2024, 3, 4, hour, 0, tzinfo=timezone.utc)
    review.user = _user("bob")
    review.body = ""
    review.html_url = "https://github.com/owner/repo/pull/7#pullrequestreview-21"
    return review


def _event(event="review_requested", hour=12, raw_data=None, commit_id=None):
    ev = MagicMock()
    ev.id = 11
    ev.event = event
    ev.created_at = datetime(2024, 3, 4, hour, 0, tzinfo=timezone.utc)
    ev.actor = _user("alice")
    ev.commit_id = commit_id
    ev.raw_data = raw_data if raw_data is not None else {"requested_reviewer": {"login": "bob"}}
    return ev


def _details_response(threads=(), items=()):
    return {
        "data": {
            "repository": {
                "pullRequest": {
                    "reviewThreads": {"nodes": list(threads)},
                    "timelineItems": {"nodes": list(items)},
                }
            }
        }
    }


def _review_comment(id=31, in_reply_to_id=30):
    comment = MagicMock()
    comment.id = id
    comment.created_at = datetime(2024, 3, 4, 13, 0, tzinfo=timezone.utc)
    comment.user = _user("alice")
    comment.body = "fixed"
    comment.html_url = f"https://github.com/owner/repo/pull/7#discussion_r{id}"
    comment.in_reply_to_id = in_reply_to_id
    return comment


def _make_pr(**overrides):
    pr = MagicMock()
    pr.number = 7
    pr.title = "Add login form"
    pr.user = _user("alice")
    pr.html_url = "https://github.com/owner/repo/pull/7"
    pr.state = "open"
    pr.base.ref = "main"
    pr.head.ref = "feature/login"
    label = MagicMock()
    label.name = "enhancement"
    label.color = "a2eeef"
    pr.labels = [label]
    pr.draft = False
    pr.created_at = CREATED
    pr.updated_at = CREATED
    pr.merged_at = None
    pr.closed_at = None
    pr.merged_by = None
    pr.merge_commit_sha = None
    pr.changed_files = 3
    pr.additions = 40
    pr.deletions = 10
    pr.get_commits.return_value = [_commit()]
    pr.get_reviews.return_value = [_review()]
    pr.get_review_comments.return_value = []
    pr.get_issue_comments.return_value = []
    pr.as_issue.return_value.get_events.return_value = [_event()]
    pr.requester.graphql_query.return_value = ({}, _details_response())
    for key, value in overrides.items():
        setattr(pr, key, value)
    return pr


class TestCollectSnapshot:
    def test_metadata(self):
        snapshot = collect_snapshot("owner/repo", _make_pr())
        assert snapshot.repo == "owner/repo"
        assert snapshot.number == 7
        assert snapshot.author == "alice"
        assert snapshot.base_branch == "main"
        assert snapshot.labels == ({"name": "enhancement", "color": "a2eeef"},)
        assert snapshot.status == "Open"
        assert snapshot.scraped_at is not None

    def test_naive_datetimes_become_utc(self):
        snapshot = collect_snapshot("owner/repo", _make_pr())
        assert snapshot.created_at == "2024-03-04T11:00:00+00:00"

    def test_commit_record(self):
        record = collect_snapshot("owner/repo", _make_pr()).commits[0]
        assert record == {
            "sha": "abc1234",
            "message": "Start work\n\nDetails",
            "date": COMMITTED.isoformat(),
            "author": "alice",
            "parents": 1,
        }

    def test_review_request_keeps_reviewer(self):
        record = collect_snapshot("owner/repo", _make_pr()).timeline[0]
        assert record["event"] == "review_requested"
        assert record["requested_reviewer"] == "bob"
        assert "commit_id" not in record

    def test_force_push_keeps_commit_id(self):
        pr = _make_pr()
        pr.as_issue.return_value.get_events.return_value = [
            _event(event="head_ref_force_pushed", raw_data={}, commit_id="f00ba4")
        ]
        record = collect_snapshot("owner/repo", pr).timeline[0]
        assert record["commit_id"] == "f00ba4"

    def test_review_comment_reply_link(self):
        pr = _make_pr()
        pr.get_review_comments.return_value = [_review_comment()]
        record = collect_snapshot("owner/repo", pr).review_comments[0]
        assert record["in_reply_to_id"] == 30

    def test_snapshot_is_analyzable(self):
        snapshot = collect_snapshot("owner/repo", _make_pr())
        analysis = analyze(snapshot)
        assert analysis.metrics.commit_to_open == 2
        assert analysis.metrics.open_to_review == 1
        assert analysis.metrics.review_to_approval == 3


class TestFetchDetails:
    def test_query_variables(self):
        pr = _make_pr()
        fetch_details("owner/repo", pr)
        query, variables = pr.requester.graphql_query.call_args.args
        assert "reviewThreads" in query
        assert variables == {"owner": "owner", "repo": "repo", "number": 7}

    def test_thread_id_attached_to_review_comments(self):
        pr = _make_pr()
        pr.get_review_comments.return_value = [_review_comment(id=30, in_reply_to_id=None), _review_comment(id=31)]
        pr.requester.graphql_query.return_value = (
            {},
            _details_response(threads=[{"id": "PRRT_1", "comments": {"nodes": [{"databaseId": 30}]}}]),
        )
        records = collect_snapshot("owner/repo", pr).review_comments
        assert records[0]["thread_id"] == "PRRT_1"
        assert "thread_id" not in records[1]

    def test_force_push_shas_and_branch(self):
        pr = _make_pr()
        pr.as_issue.return_value.get_events.return_value = [
            _event(event="head_ref_force_pushed", hour=13, raw_data={}, commit_id="f00ba4d1e2")
        ]
        pr.requester.graphql_query.return_value = (
            {},
            _details_response(
                items=[
                    {
                        "__typename": "HeadRefForcePushedEvent",
                        "createdAt": "2024-03-04T13:00:00Z",
                        "beforeCommit": {"oid": "0ldc0mm1t"},
                        "afterCommit": {"oid": "f00ba4d1e2"},
                        "ref": {"name": "feature/login"},
                    }
                ]
            ),
        )
        snapshot = collect_snapshot("owner/repo", pr)
        assert snapshot.timeline[0]["before"] == "0ldc0mm1t"
        assert snapshot.timeline[0]["ref"] == "feature/login"

        push = [i for i in analyze(snapshot).timeline if i.type == "force_pushed"][0]
        assert push.title == "Force pushed to f00ba4d"
        assert push.description == "Before: 0ldc0mm • After: f00ba4d • Branch: feature/login"

    def test_base_ref_names(self):
        pr = _make_pr()
        pr.as_issue.return_value.get_events.return_value = [_event(event="base_ref_changed", hour=13, raw_data={})]
        pr.requester.graphql_query.return_value = (
            {},
            _details_response(
                items=[
                    {
                        "__typename": "BaseRefChangedEvent",
                        "createdAt": "2024-03-04T13:00:00Z",
                        "previousRefName": "develop",
                        "currentRefName": "main",
                    }
                ]
            ),
        )
        snapshot = collect_snapshot("owner/repo", pr)
        assert snapshot.timeline[0]["previous_ref"] == "develop"
        assert snapshot.timeline[0]["current_ref"] == "main"

        change = [i for i in analyze(snapshot).timeline if i.type == "base_ref_changed"][0]
        assert change.title == "Base branch changed from develop to main"

    def test_details_matched_by_event_and_time(self):
        pr = _make_pr()
        pr.as_issue.return_value.get_events.return_value = [_event(event="base_ref_changed", hour=13, raw_data={})]
        pr.requester.graphql_query.return_value = (
            {},
            _details_response(
                items=[
                    {
                        "__typename": "BaseRefChangedEvent",
                        "createdAt": "2024-03-04T14:00:00Z",
                        "previousRefName": "develop",
                        "currentRefName": "main",
                    }
                ]
            ),
        )
        record = collect_snapshot("owner/repo", pr).timeline[0]
        assert "previous_ref" not in record

    def test_query_failure_still_collects(self):
        pr = _make_pr()
        pr.get_review_comments.return_value = [_review_comment()]
        pr.requester.graphql_query.side_effect = GithubException(502, {"message": "Bad gateway"}, None)

        snapshot = collect_snapshot("owner/repo", pr)

        assert "thread_id" not in snapshot.review_comments[0]
        assert snapshot.timeline[0]["requested_reviewer"] == "bob"


class TestRepoHelpers:
    def test_get_repo_uses_token(self, mocker):
        mock_github = mocker.patch("prcycle_core.gh.pull_request.Github")
        get_repo("owner/repo", token="tok")
        mock_github.assert_called_once_with("tok")
        mock_github.return_value.get_repo.assert_called_once_with("owner/repo")

    def test_get_pull(self):
        repo = MagicMock()
        get_pull(repo, 7)
        repo.get_pull.assert_called_once_with(7)

    def test_get_pull_requests_sorted_by_update(self):
        repo = MagicMock()
        get_pull_requests(repo, state="closed")
        repo.get_pulls.assert_called_once_with(state="closed", sort="updated", direction="desc")
