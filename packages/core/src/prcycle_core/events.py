"""Pull request event and snapshot models.

A PrSnapshot is what the collector scraped for one PR on one day: metadata
plus the raw GitHub record lists, timestamps still as ISO-8601 strings.
The normalizer turns those records into RawEvent values, which everything
downstream (timeline, validator, metrics) consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from prcycle_core.errors import InvalidInputError


class EventKind(Enum):
    COMMIT = "commit"
    OPENED = "opened"
    REVIEW_REQUESTED = "review_requested"
    COMMENT = "comment"
    REVIEW_COMMENT = "review_comment"
    APPROVED = "approved"
    FORCE_PUSHED = "force_pushed"
    BASE_REF_CHANGED = "base_ref_changed"
    READY_FOR_REVIEW = "ready_for_review"
    MERGED = "merged"
    CLOSED = "closed"


# Tie-break order for events sharing a timestamp.
KIND_PRIORITY: dict[EventKind, int] = {kind: rank for rank, kind in enumerate(EventKind)}


def parse_timestamp(value) -> datetime:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Raises ValueError for anything else, including None and blank strings.
    Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"not a timestamp: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class RawEvent:
    """A single historical fact about a pull request."""

    kind: EventKind
    timestamp: datetime
    actor: str | None = None
    id: str | None = None
    payload: dict = field(default_factory=dict)

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.timestamp, KIND_PRIORITY[self.kind])


_RECORD_LISTS = ("commits", "reviews", "review_comments", "comments", "timeline")


@dataclass(frozen=True)
class PrSnapshot:
    """Scraped state of one pull request.

    Owned by the store; the engine only reads it. Record lists keep the
    GitHub REST field names (see the collector for the exact shapes).
    """

    repo: str
    number: int
    title: str = ""
    author: str | None = None
    url: str = ""
    state: str = "open"  # "open" | "closed"
    base_branch: str | None = None
    head_branch: str | None = None
    labels: tuple[dict, ...] = ()
    is_draft: bool = False
    created_at: str | None = None
    updated_at: str | None = None
    merged_at: str | None = None
    closed_at: str | None = None
    merged_by: str | None = None
    merge_commit_sha: str | None = None
    changed_files: int | None = None
    additions: int | None = None
    deletions: int | None = None
    scraped_at: str | None = None
    commits: tuple[dict, ...] = ()
    reviews: tuple[dict, ...] = ()
    review_comments: tuple[dict, ...] = ()
    comments: tuple[dict, ...] = ()
    timeline: tuple[dict, ...] = ()

    @property
    def status(self) -> str:
        if self.merged_at:
            return "Merged"
        if self.is_draft:
            return "Draft"
        if self.state == "closed":
            return "Closed"
        return "Open"

    @property
    def was_created_as_draft(self) -> bool:
        # A ready_for_review event can only happen to a PR that started as a draft.
        return any(r.get("event") == "ready_for_review" for r in self.timeline)

    @property
    def is_empty(self) -> bool:
        return not self.created_at and not any(getattr(self, name) for name in _RECORD_LISTS)

    def to_dict(self) -> dict:
        return {
            "repo": self.repo,
            "number": self.number,
            "title": self.title,
            "author": self.author,
            "url": self.url,
            "state": self.state,
            "base_branch": self.base_branch,
            "head_branch": self.head_branch,
            "labels": [dict(label) for label in self.labels],
            "is_draft": self.is_draft,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "merged_at": self.merged_at,
            "closed_at": self.closed_at,
            "merged_by": self.merged_by,
            "merge_commit_sha": self.merge_commit_sha,
            "changed_files": self.changed_files,
            "additions": self.additions,
            "deletions": self.deletions,
            "scraped_at": self.scraped_at,
            **{name: [dict(r) for r in getattr(self, name)] for name in _RECORD_LISTS},
        }

    @classmethod
    def from_dict(cls, data) -> PrSnapshot:
        """Rebuild a snapshot from its to_dict() form.

        Raises InvalidInputError when the data cannot describe a PR at all.
        """
        if not isinstance(data, dict):
            raise InvalidInputError(f"Snapshot must be a mapping, got {type(data).__name__}")
        try:
            number = int(data["number"])
        except (KeyError, TypeError, ValueError):
            raise InvalidInputError("Snapshot has no valid PR number")

        def records(name: str) -> tuple[dict, ...]:
            return tuple(dict(r) for r in (data.get(name) or []) if isinstance(r, dict))

        return cls(
            repo=data.get("repo") or "",
            number=number,
            title=data.get("title") or "",
            author=data.get("author"),
            url=data.get("url") or "",
            state=data.get("state") or "open",
            base_branch=data.get("base_branch"),
            head_branch=data.get("head_branch"),
            labels=records("labels"),
            is_draft=bool(data.get("is_draft", False)),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            merged_at=data.get("merged_at"),
            closed_at=data.get("closed_at"),
            merged_by=data.get("merged_by"),
            merge_commit_sha=data.get("merge_commit_sha"),
            changed_files=data.get("changed_files"),
            additions=data.get("additions"),
            deletions=data.get("deletions"),
            scraped_at=data.get("scraped_at"),
            commits=records("commits"),
            reviews=records("reviews"),
            review_comments=records("review_comments"),
            comments=records("comments"),
            timeline=records("timeline"),
        )
