"""Turn a PrSnapshot's heterogeneous record lists into one sorted event tuple."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from prcycle_core.errors import MalformedEventError
from prcycle_core.events import EventKind, PrSnapshot, RawEvent, parse_timestamp

logger = logging.getLogger(__name__)

_TIMELINE_KINDS = {
    "review_requested": EventKind.REVIEW_REQUESTED,
    "ready_for_review": EventKind.READY_FOR_REVIEW,
    "head_ref_force_pushed": EventKind.FORCE_PUSHED,
    "force_pushed": EventKind.FORCE_PUSHED,
    "base_ref_changed": EventKind.BASE_REF_CHANGED,
    "merged": EventKind.MERGED,
    "closed": EventKind.CLOSED,
    "opened": EventKind.OPENED,
    "reopened": EventKind.OPENED,
}

# Extra timeline fields worth carrying into the event payload.
_TIMELINE_EXTRAS = ("requested_reviewer", "requested_team", "commit_id", "before", "after", "ref", "previous_ref", "current_ref")

_MAX_MESSAGE_CHARS = 100


@dataclass(frozen=True)
class NormalizedEvents:
    events: tuple[RawEvent, ...] = ()
    notes: tuple[str, ...] = ()
    skipped: int = 0

    def of_kind(self, kind: EventKind) -> list[RawEvent]:
        return [e for e in self.events if e.kind is kind]


def _record_id(source: str, record: dict):
    return record.get("sha") if source == "commit" else record.get("id")


def _timestamp(source: str, record: dict, time_field: str):
    value = record.get(time_field)
    try:
        return parse_timestamp(value)
    except ValueError:
        raise MalformedEventError(source, _record_id(source, record), f"unparseable {time_field} {value!r}")


def _text(source: str, record: dict, key: str) -> str | None:
    """Return a text field as-is; any other non-null type makes the record malformed."""
    value = record.get(key)
    if value is None or isinstance(value, str):
        return value
    raise MalformedEventError(source, _record_id(source, record), f"{key} must be text, got {type(value).__name__}")


@dataclass
class _Collector:
    events: list[RawEvent] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    skipped: int = 0

    def drop(self, error: MalformedEventError) -> None:
        logger.warning("Dropping event: %s", error)
        self.notes.append(str(error))

    def add(
        self,
        source: str,
        record: dict,
        kind: EventKind,
        time_field: str,
        actor_field: str,
        build_payload: Callable[[], dict],
    ) -> bool:
        record_id = _record_id(source, record)
        try:
            timestamp = _timestamp(source, record, time_field)
            actor = _text(source, record, actor_field)
            payload = build_payload()
        except MalformedEventError as e:
            self.drop(e)
            return False
        self.events.append(
            RawEvent(
                kind=kind,
                timestamp=timestamp,
                actor=actor,
                id=str(record_id) if record_id is not None else None,
                payload=payload,
            )
        )
        return True


def is_merge_commit(record: dict) -> bool:
    message = record.get("message")
    parents = record.get("parents") or 0
    if isinstance(parents, list):
        parents = len(parents)
    if isinstance(message, str) and message.lower().startswith("merge"):
        return True
    return isinstance(parents, int) and parents > 1


def _first_line(message: str | None) -> str:
    return (message or "").split("\n", 1)[0].strip()[:_MAX_MESSAGE_CHARS]


def _commits(snapshot: PrSnapshot, out: _Collector) -> None:
    for record in snapshot.commits:
        out.add(
            "commit",
            record,
            EventKind.COMMIT,
            "date",
            "author",
            lambda: {
                "sha": _text("commit", record, "sha"),
                "message": _first_line(_text("commit", record, "message")),
                "is_merge": is_merge_commit(record),
            },
        )


def _reviews(snapshot: PrSnapshot, out: _Collector) -> None:
    for record in snapshot.reviews:
        try:
            state = (_text("review", record, "state") or "").upper()
            body = (_text("review", record, "body") or "").strip()
        except MalformedEventError as e:
            out.drop(e)
            continue
        if state == "APPROVED":
            kind = EventKind.APPROVED
        elif state == "CHANGES_REQUESTED" or (state == "COMMENTED" and body):
            kind = EventKind.REVIEW_COMMENT
        else:
            # DISMISSED, PENDING and empty COMMENTED reviews carry no timeline signal.
            out.skipped += 1
            continue
        out.add(
            "review",
            record,
            kind,
            "submitted_at",
            "user",
            lambda: {"state": state, "html_url": _text("review", record, "html_url"), "source": "review"},
        )


def _review_comments(snapshot: PrSnapshot, out: _Collector) -> None:
    for record in snapshot.review_comments:
        out.add(
            "review_comment",
            record,
            EventKind.REVIEW_COMMENT,
            "created_at",
            "user",
            lambda: {
                "in_reply_to_id": record.get("in_reply_to_id"),
                "thread_id": record.get("thread_id"),
                "html_url": _text("review_comment", record, "html_url"),
                "source": "review_comment",
            },
        )


def _issue_comments(snapshot: PrSnapshot, out: _Collector) -> None:
    for record in snapshot.comments:
        try:
            body = _text("comment", record, "body")
        except MalformedEventError as e:
            out.drop(e)
            continue
        if not (body or "").strip():
            out.skipped += 1
            continue
        out.add(
            "comment", record, EventKind.COMMENT, "created_at", "user", lambda: {"html_url": _text("comment", record, "html_url")}
        )


def _timeline_payload(record: dict) -> dict:
    payload = {}
    for key in _TIMELINE_EXTRAS:
        value = _text("timeline", record, key)
        if value is not None:
            payload[key] = value
    if record.get("event") == "reopened":
        payload["reopened"] = True
    return payload


def _timeline(snapshot: PrSnapshot, out: _Collector) -> set[EventKind]:
    seen: set[EventKind] = set()
    for record in snapshot.timeline:
        name = record.get("event")
        if not isinstance(name, str) or not name:
            out.drop(MalformedEventError("timeline", record.get("id"), f"unknown event kind {name!r}"))
            continue
        kind = _TIMELINE_KINDS.get(name)
        if kind is None:
            logger.debug("Skipping timeline event %r (not part of the cycle-time model)", name)
            out.skipped += 1
            continue
        if out.add("timeline", record, kind, "created_at", "actor", lambda: _timeline_payload(record)):
            seen.add(kind)
    return seen


def _merge_payload(record: dict) -> dict:
    sha = _text("pull_request", record, "sha")
    return {"merge_commit_sha": sha} if sha else {}


def _metadata(snapshot: PrSnapshot, out: _Collector, seen: set[EventKind]) -> None:
    """Synthesize opened/merged/closed from PR metadata when the timeline lacks them."""
    meta = {"id": f"pr-{snapshot.number}"}
    if snapshot.created_at is not None and not any(
        e.kind is EventKind.OPENED and not e.payload.get("reopened") for e in out.events
    ):
        out.add(
            "pull_request",
            {**meta, "created_at": snapshot.created_at, "actor": snapshot.author},
            EventKind.OPENED,
            "created_at",
            "actor",
            dict,
        )
    if snapshot.merged_at and EventKind.MERGED not in seen:
        record = {**meta, "merged_at": snapshot.merged_at, "actor": snapshot.merged_by, "sha": snapshot.merge_commit_sha}
        out.add("pull_request", record, EventKind.MERGED, "merged_at", "actor", lambda: _merge_payload(record))
    if snapshot.closed_at and not snapshot.merged_at and EventKind.CLOSED not in seen:
        out.add("pull_request", {**meta, "closed_at": snapshot.closed_at}, EventKind.CLOSED, "closed_at", "actor", dict)


def normalize(snapshot: PrSnapshot) -> NormalizedEvents:
    """Merge all record lists of a snapshot into one chronologically sorted tuple.

    Records with missing or unparseable timestamps, or with a non-text
    value in a text field, are dropped and noted, never fatal. Ties are
    broken by KIND_PRIORITY, then input order.
    """
    out = _Collector()
    _commits(snapshot, out)
    _reviews(snapshot, out)
    _review_comments(snapshot, out)
    _issue_comments(snapshot, out)
    seen = _timeline(snapshot, out)
    _metadata(snapshot, out, seen)

    events = tuple(sorted(out.events, key=lambda e: e.sort_key))
    logger.debug(
        "PR #%d: normalized %d event(s), dropped %d, skipped %d",
        snapshot.number,
        len(events),
        len(out.notes),
        out.skipped,
    )
    return NormalizedEvents(events=events, notes=tuple(out.notes), skipped=out.skipped)
