"""
sephirots.engine.reactions — Reaction Summaries & Toggle Consumption
======================================================================

Two halves of the cosmic reaction feature that need no I/O:

* :func:`summarize_reactions` folds raw reaction rows into per-emoji
  counts with a "you reacted" flag.
* :class:`ReactionToggleState` is what a client holds per reaction button.
  It refuses a second request while one is in flight and takes its count
  and reacted flag **only** from the server's response.  It never
  increments locally, so a retried request can't double-count.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

CONSTELLATION_MIN_TYPES = 3


class ToggleInFlightError(RuntimeError):
    """A toggle was started while another request for the same button is pending."""


@dataclass(frozen=True, slots=True)
class EmojiSummary:
    emoji_type: str
    count: int
    user_reacted: bool


def summarize_reactions(
    rows: Iterable, user_id: int | None = None,
) -> dict[str, EmojiSummary]:
    """Count rows per ``emoji_type`` and flag the ones *user_id* made.

    *rows* are objects with ``emoji_type`` and ``user_id`` attributes.
    Keys keep first-seen order.
    """
    counts: dict[str, int] = {}
    mine: set[str] = set()
    for row in rows:
        counts[row.emoji_type] = counts.get(row.emoji_type, 0) + 1
        if user_id is not None and row.user_id == user_id:
            mine.add(row.emoji_type)
    return {
        emoji: EmojiSummary(emoji_type=emoji, count=count, user_reacted=emoji in mine)
        for emoji, count in counts.items()
    }


def shows_constellation(summary: Mapping[str, EmojiSummary]) -> bool:
    """True when at least three distinct emoji types have reactions."""
    return sum(1 for s in summary.values() if s.count > 0) >= CONSTELLATION_MIN_TYPES


class ReactionToggleState:
    """Client-side state of one (content, emoji) reaction button.

    Usage::

        state = ReactionToggleState(count=3, has_reacted=False)
        state.begin()                       # disable the button
        try:
            resp = post_toggle(...)
        except HTTPError:
            state.fail()
        else:
            state.apply_response(resp)      # {"added": True, "count": 4}
    """

    __slots__ = ("count", "has_reacted", "in_flight")

    def __init__(self, count: int = 0, has_reacted: bool = False) -> None:
        self.count = count
        self.has_reacted = has_reacted
        self.in_flight = False

    def begin(self) -> None:
        if self.in_flight:
            raise ToggleInFlightError("A reaction toggle is already in flight")
        self.in_flight = True

    def apply_response(self, response: Mapping[str, object]) -> None:
        """Adopt the server's authoritative ``count`` and reacted state."""
        if "count" not in response:
            raise ValueError(f"Toggle response missing 'count': {dict(response)!r}")
        self.count = int(response["count"])
        if response.get("added"):
            self.has_reacted = True
        elif response.get("removed"):
            self.has_reacted = False
        self.in_flight = False

    def fail(self) -> None:
        self.in_flight = False

    def __repr__(self) -> str:
        return (
            f"<ReactionToggleState count={self.count} "
            f"reacted={self.has_reacted} in_flight={self.in_flight}>"
        )
