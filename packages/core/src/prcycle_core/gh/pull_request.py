from __future__ import annotations

import logging
from datetime import datetime, timezone

from github import Github, GithubException

from prcycle_core.events import PrSnapshot, parse_timestamp

logger = logging.getLogger(__name__)

# The REST API exposes neither review thread ids nor the shas and branch
# names behind force-push and base-change events, so they come from GraphQL.
_DETAILS_QUERY = """
query PullRequestDetails($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      reviewThreads(first: 100) {
        nodes {
          id
          comments(first: 100) {
            nodes { databaseId }
          }
        }
      }
      timelineItems(first: 100, itemTypes: [HEAD_REF_FORCE_PUSHED_EVENT, BASE_REF_CHANGED_EVENT]) {
        nodes {
          __typename
          ... on HeadRefForcePushedEvent {
            createdAt
            beforeCommit { oid }
            afterCommit { oid }
            ref { name }
          }
          ... on BaseRefChangedEvent {
            createdAt
            previousRefName
            currentRefName
          }
        }
      }
    }
  }
}
"""

_GRAPHQL_EVENTS = {
    "HeadRefForcePushedEvent": "head_ref_force_pushed",
    "BaseRefChangedEvent": "base_ref_changed",
}


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state, sort="updated", direction="desc")


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _login(user) -> str | None:
    return getattr(user, "login", None) if user is not None else None


def _oid(commit: dict | None) -> str | None:
    return (commit or {}).get("oid")


def _event_fields(item: dict) -> dict:
    if item["__typename"] == "HeadRefForcePushedEvent":
        fields = {
            "before": _oid(item.get("beforeCommit")),
            "after": _oid(item.get("afterCommit")),
            "ref": (item.get("ref") or {}).get("name"),
        }
    else:
        fields = {"previous_ref": item.get("previousRefName"), "current_ref": item.get("currentRefName")}
    return {k: v for k, v in fields.items() if v}


def fetch_details(repo_name: str, pr) -> tuple[dict, dict]:
    """Return (thread ids by review comment id, extra fields by (event, created_at)).

    A failed query is logged and yields empty mappings; the snapshot is
    still complete enough to analyze without them.
    """
    owner, _, name = repo_name.partition("/")
    try:
        _, data = pr.requester.graphql_query(_DETAILS_QUERY, {"owner": owner, "repo": name, "number": pr.number})
    except GithubException as e:
        logger.warning("Could not fetch review threads and event details for %s#%d: %s", repo_name, pr.number, e)
        return {}, {}
    node = ((data.get("data") or {}).get("repository") or {}).get("pullRequest") or {}

    thread_ids: dict[int, str] = {}
    for thread in (node.get("reviewThreads") or {}).get("nodes") or []:
        for comment in (thread.get("comments") or {}).get("nodes") or []:
            if comment.get("databaseId") is not None:
                thread_ids[comment["databaseId"]] = thread["id"]

    event_details: dict[tuple[str, str], dict] = {}
    for item in (node.get("timelineItems") or {}).get("nodes") or []:
        event = _GRAPHQL_EVENTS.get(item.get("__typename"))
        if event is None:
            continue
        try:
            created_at = _iso(parse_timestamp(item.get("createdAt")))
        except ValueError:
            continue
        event_details[(event, created_at)] = _event_fields(item)

    logger.debug(
        "%s#%d: %d threaded comment(s), %d detailed event(s)", repo_name, pr.number, len(thread_ids), len(event_details)
    )
    return thread_ids, event_details


def _commit_record(commit) -> dict:
    git_commit = commit.commit
    committer = git_commit.committer
    # Prefer the GitHub account; fall back to the git committer name.
    actor = _login(commit.committer) or _login(commit.author) or getattr(committer, "name", None)
    return {
        "sha": commit.sha,
        "message": git_commit.message,
        "date": _iso(getattr(committer, "date", None)),
        "author": actor,
        "parents": len(commit.parents or []),
    }


def _review_record(review) -> dict:
    return {
        "id": review.id,
        "state": review.state,
        "submitted_at": _iso(review.submitted_at),
        "user": _login(review.user),
        "body": review.body,
        "html_url": review.html_url,
    }


def _comment_record(comment, thread_ids: dict | None = None) -> dict:
    record = {
        "id": comment.id,
        "created_at": _iso(comment.created_at),
        "user": _login(comment.user),
        "body": comment.body,
        "html_url": comment.html_url,
    }
    if thread_ids is not None:
        record["in_reply_to_id"] = getattr(comment, "in_reply_to_id", None)
        if comment.id in thread_ids:
            record["thread_id"] = thread_ids[comment.id]
    return record


def _event_record(event, event_details: dict) -> dict:
    raw = event.raw_data or {}
    record = {
        "id": event.id,
        "event": event.event,
        "created_at": _iso(event.created_at),
        "actor": _login(event.actor),
    }
    reviewer = raw.get("requested_reviewer") or {}
    team = raw.get("requested_team") or {}
    if reviewer.get("login"):
        record["requested_reviewer"] = reviewer["login"]
    if team.get("name"):
        record["requested_team"] = team["name"]
    if event.commit_id:
        record["commit_id"] = event.commit_id
    record.update(event_details.get((record["event"], record["created_at"]), {}))
    return record


def collect_snapshot(repo_name: str, pr) -> PrSnapshot:
    """Fetch everything the engine needs for one PyGithub PullRequest.

    The result is plain data (ISO-8601 strings, dicts) so it can be stored
    as-is and re-analyzed later without another API call.
    """
    logger.debug("Collecting %s#%d", repo_name, pr.number)
    thread_ids, event_details = fetch_details(repo_name, pr)
    commits = tuple(_commit_record(c) for c in pr.get_commits())
    reviews = tuple(_review_record(r) for r in pr.get_reviews())
    review_comments = tuple(_comment_record(c, thread_ids) for c in pr.get_review_comments())
    comments = tuple(_comment_record(c) for c in pr.get_issue_comments())
    timeline = tuple(_event_record(e, event_details) for e in pr.as_issue().get_events())

    return PrSnapshot(
        repo=repo_name,
        number=pr.number,
        title=pr.title or "",
        author=_login(pr.user),
        url=pr.html_url or "",
        state=pr.state or "open",
        base_branch=pr.base.ref if pr.base else None,
        head_branch=pr.head.ref if pr.head else None,
        labels=tuple({"name": label.name, "color": label.color} for label in pr.labels),
        is_draft=bool(pr.draft),
        created_at=_iso(pr.created_at),
        updated_at=_iso(pr.updated_at),
        merged_at=_iso(pr.merged_at),
        closed_at=_iso(pr.closed_at),
        merged_by=_login(pr.merged_by),
        merge_commit_sha=pr.merge_commit_sha,
        changed_files=pr.changed_files,
        additions=pr.additions,
        deletions=pr.deletions,
        scraped_at=datetime.now(timezone.utc).isoformat(),
        commits=commits,
        reviews=reviews,
        review_comments=review_comments,
        comments=comments,
        timeline=timeline,
    )
