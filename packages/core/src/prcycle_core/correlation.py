"""Thread correlation strategies for the timeline builder.

Deciding whether a comment belongs to an open review request is a
heuristic. The builder only ever asks one question, belongs(request,
event), so a strategy can be swapped without touching ordering or
validation logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta

from prcycle_core.events import RawEvent

DEFAULT_WINDOW = timedelta(hours=72)


class ThreadCorrelation(ABC):
    @abstractmethod
    def belongs(self, request: RawEvent, event: RawEvent) -> bool:
        """Return True if event should be nested under the review request."""


class FlatCorrelation(ThreadCorrelation):
    """Never groups; the timeline stays a flat list."""

    def belongs(self, request: RawEvent, event: RawEvent) -> bool:
        return False


class ActorWindowCorrelation(ThreadCorrelation):
    """Group comments by the requested reviewer within a time window.

    An explicit thread_id on both events wins. Otherwise the comment's
    actor must be the reviewer that was requested, and the comment must land
    within `window` after the request. Missing correlation data means no
    grouping rather than a guess.
    """

    def __init__(self, window: timedelta = DEFAULT_WINDOW):
        self.window = window

    def belongs(self, request: RawEvent, event: RawEvent) -> bool:
        request_thread = request.payload.get("thread_id")
        event_thread = event.payload.get("thread_id")
        if request_thread is not None and event_thread is not None:
            return request_thread == event_thread

        reviewer = request.payload.get("requested_reviewer")
        if not reviewer or not event.actor:
            return False
        elapsed = event.timestamp - request.timestamp
        return event.actor == reviewer and timedelta(0) <= elapsed <= self.window


def correlation_from_settings(name: str, window_hours: float) -> ThreadCorrelation:
    if name == "flat":
        return FlatCorrelation()
    if name == "actor_window":
        return ActorWindowCorrelation(window=timedelta(hours=window_hours))
    raise ValueError(f"Unknown thread correlation strategy: {name!r}. Choose 'actor_window' or 'flat'.")
