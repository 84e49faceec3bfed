"""Exception taxonomy for the timeline engine.

Only InvalidInputError ever escapes analyze(). The others are raised and
caught inside the engine: a MalformedEventError drops one event and leaves a
note, a MissingAnchorError turns into an absent (None) duration.
"""

from __future__ import annotations


class PrCycleError(Exception):
    """Base class for all prcycle errors."""


class MalformedEventError(PrCycleError):
    """A raw record has an unparseable timestamp or kind and was dropped."""

    def __init__(self, source: str, record_id: object, reason: str):
        self.source = source
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"{source} {record_id if record_id is not None else '?'}: {reason}")


class MissingAnchorError(PrCycleError):
    """A metric anchor timestamp is not present in the event sequence."""

    def __init__(self, anchor: str):
        self.anchor = anchor
        super().__init__(f"Missing anchor: {anchor}")


class InvalidInputError(PrCycleError):
    """The snapshot is empty or unreadable, so nothing can be reconstructed."""
