"""Build the display timeline from a normalized event sequence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from prcycle_core.correlation import ActorWindowCorrelation, ThreadCorrelation
from prcycle_core.events import EventKind, RawEvent

if TYPE_CHECKING:
    from prcycle_core.events import PrSnapshot

logger = logging.getLogger(__name__)

_GROUPED_KINDS = (EventKind.COMMENT, EventKind.REVIEW_COMMENT)


@dataclass(frozen=True)
class TimelineItem:
    id: str
    type: str
    title: str
    time: datetime
    actor: str | None = None
    url: str | None = None
    description: str | None = None
    parent_id: str | None = None
    indent_level: int = 0

    def to_dict(self) -> dict:
        data = {"id": self.id, "type": self.type, "title": self.title, "time": self.time.isoformat()}
        if self.actor is not None:
            data["actor"] = self.actor
        if self.url is not None:
            data["url"] = self.url
        if self.description is not None:
            data["description"] = self.description
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        data["indentLevel"] = self.indent_level
        return data


@dataclass
class _Node:
    item: TimelineItem
    children: list[_Node] = field(default_factory=list)


def is_bot_reviewer(login: str | None) -> bool:
    if not login:
        return False
    name = login.lower()
    return name == "github-actions[bot]" or "copilot" in name


class _Titler:
    """Produces titles, URLs and descriptions; tracks 'first' markers per PR."""

    def __init__(self, snapshot: PrSnapshot | None):
        self.pr_url = snapshot.url if snapshot else ""
        self.repo = snapshot.repo if snapshot else ""
        self.first_seen: set[EventKind] = set()
        self.force_pushes = 0

    def _first(self, kind: EventKind) -> bool:
        if kind in self.first_seen:
            return False
        self.first_seen.add(kind)
        return True

    def _commit_url(self, sha: str | None) -> str | None:
        if sha and self.repo:
            return f"https://github.com/{self.repo}/commit/{sha}"
        return None

    def _anchor_url(self, anchor: str, ident: str | None) -> str | None:
        if not self.pr_url:
            return None
        return f"{self.pr_url}#{anchor}{ident}" if ident else self.pr_url

    def describe(self, event: RawEvent) -> tuple[str, str | None, str | None]:
        """Return (title, url, description) for one event."""
        p = event.payload
        kind = event.kind

        if kind is EventKind.COMMIT:
            title = p.get("message") or "Commit"
            if self._first(kind):
                title = f"First commit: {title}" if p.get("message") else "First commit"
            return title, self._commit_url(p.get("sha")), None

        if kind is EventKind.OPENED:
            title = "Reopened this pull request" if p.get("reopened") else "Opened this pull request"
            return title, self.pr_url or None, None

        if kind is EventKind.READY_FOR_REVIEW:
            return "Marked this pull request as ready for review", self._anchor_url("event-", event.id), None

        if kind is EventKind.REVIEW_REQUESTED:
            reviewer = p.get("requested_reviewer") or p.get("requested_team")
            title = f"Requested a review from {reviewer}" if reviewer else "Requested a review"
            return title, self._anchor_url("event-", event.id), None

        if kind is EventKind.COMMENT:
            title = "First comment" if self._first(kind) else "Comment"
            return title, p.get("html_url") or self._anchor_url("issuecomment-", event.id), None

        if kind is EventKind.REVIEW_COMMENT:
            is_first = self._first(kind)
            if is_first:
                title = "First review comment"
            elif is_bot_reviewer(event.actor):
                title = "Copilot AI reviewed"
            else:
                title = "Review comment"
            if p.get("source") == "review":
                url = p.get("html_url") or self._anchor_url("pullrequestreview-", event.id)
            else:
                url = p.get("html_url") or self._anchor_url("discussion_r", event.id)
            return title, url, None

        if kind is EventKind.APPROVED:
            if self._first(kind):
                title = "First approval"
            elif is_bot_reviewer(event.actor):
                title = "Copilot AI reviewed"
            else:
                title = "Approved"
            return title, p.get("html_url") or self._anchor_url("pullrequestreview-", event.id), None

        if kind is EventKind.FORCE_PUSHED:
            self.force_pushes += 1
            after = p.get("commit_id") or p.get("after")
            before = p.get("before")
            if after:
                title = f"Force pushed to {after[:7]}"
                details = []
                if before:
                    details.append(f"Before: {before[:7]}")
                details.append(f"After: {after[:7]}")
                if p.get("ref"):
                    details.append(f"Branch: {p['ref']}")
                return title, self._commit_url(after) or self._anchor_url("event-", event.id), " • ".join(details)
            return f"Force pushed ({self.force_pushes})", self._anchor_url("event-", event.id), None

        if kind is EventKind.BASE_REF_CHANGED:
            previous = p.get("previous_ref") or "unknown"
            current = p.get("current_ref") or "unknown"
            return (
                f"Base branch changed from {previous} to {current}",
                self._anchor_url("event-", event.id),
                f"Previous: {previous} → Current: {current}",
            )

        if kind is EventKind.MERGED:
            return "Merged", self._commit_url(p.get("merge_commit_sha")) or self.pr_url or None, None

        if kind is EventKind.CLOSED:
            return "Closed", self.pr_url or None, None

        raise ValueError(f"Unhandled event kind: {kind!r}")


def build_timeline(
    events: tuple[RawEvent, ...] | list[RawEvent],
    snapshot: PrSnapshot | None = None,
    correlation: ThreadCorrelation | None = None,
) -> list[TimelineItem]:
    """Project a sorted event sequence onto display-ready timeline items.

    A review_requested event opens a group; comments and review comments
    that the correlation strategy attributes to it are nested underneath
    (indent 1) until an approval or the next review request closes the
    group. Replies (in_reply_to_id) nest under the comment they answer, and
    review comments sharing a thread_id nest under the first comment of that
    thread. Children are emitted directly after their parent. Events that
    cannot be correlated stay at the top level; nothing is dropped.
    """
    correlation = correlation or ActorWindowCorrelation()
    titler = _Titler(snapshot)

    roots: list[_Node] = []
    comment_nodes: dict[str, _Node] = {}
    thread_roots: dict[str, _Node] = {}
    group: tuple[RawEvent, _Node] | None = None

    for index, event in enumerate(events):
        parent: _Node | None = None
        if event.kind in _GROUPED_KINDS:
            reply_to = event.payload.get("in_reply_to_id")
            thread = event.payload.get("thread_id")
            if reply_to is not None and str(reply_to) in comment_nodes:
                parent = comment_nodes[str(reply_to)]
            elif thread is not None and str(thread) in thread_roots:
                parent = thread_roots[str(thread)]
            elif group is not None and correlation.belongs(group[0], event):
                parent = group[1]

        title, url, description = titler.describe(event)
        item = TimelineItem(
            id=f"{event.kind.value}-{event.id}" if event.id else f"{event.kind.value}-{index}",
            type=event.kind.value,
            title=title,
            time=event.timestamp,
            actor=event.actor,
            url=url,
            description=description,
            parent_id=parent.item.id if parent else None,
            indent_level=parent.item.indent_level + 1 if parent else 0,
        )
        node = _Node(item)
        (parent.children if parent else roots).append(node)

        if event.kind is EventKind.REVIEW_REQUESTED:
            group = (event, node)
        elif event.kind is EventKind.APPROVED:
            group = None
        if event.kind is EventKind.REVIEW_COMMENT and event.payload.get("source") == "review_comment":
            if event.id:
                comment_nodes[event.id] = node
            thread = event.payload.get("thread_id")
            if thread is not None:
                thread_roots.setdefault(str(thread), node)

    items: list[TimelineItem] = []

    def emit(node: _Node) -> None:
        items.append(node.item)
        for child in node.children:
            emit(child)

    for root in roots:
        emit(root)

    nested = sum(1 for i in items if i.parent_id)
    logger.debug("Built timeline with %d item(s), %d nested", len(items), nested)
    return items
