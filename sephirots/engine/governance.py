"""
sephirots.engine.governance — Tally & Threshold Rules
=======================================================

Pure tally-and-threshold logic for proposals, amendments and polls.
A vote only ever moves an *open* item; once ``votes_for`` (or
``votes_against``) reaches the required count the item is decided.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from sephirots.database.models import AmendmentStatus, ProposalStatus


def _aware(dt: datetime) -> datetime:
    """Treat naive timestamps (SQLite) as UTC."""
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def resolve_proposal_status(
    votes_for: int, votes_against: int, votes_required: int, status: str,
) -> ProposalStatus:
    """Status after a tally change.  Only ``active`` proposals transition."""
    current = ProposalStatus(status)
    if current is not ProposalStatus.ACTIVE:
        return current
    if votes_for >= votes_required:
        return ProposalStatus.PASSED
    if votes_against >= votes_required:
        return ProposalStatus.REJECTED
    return current


def resolve_amendment_status(
    votes_for: int, votes_against: int, votes_required: int, status: str,
) -> AmendmentStatus:
    """Same threshold rule as proposals, for ``proposed`` amendments."""
    current = AmendmentStatus(status)
    if current is not AmendmentStatus.PROPOSED:
        return current
    if votes_for >= votes_required:
        return AmendmentStatus.APPROVED
    if votes_against >= votes_required:
        return AmendmentStatus.REJECTED
    return current


def is_voting_open(status: str, ends_at: datetime | None, now: datetime) -> bool:
    """True while the proposal is active and its window hasn't closed."""
    if status != ProposalStatus.ACTIVE:
        return False
    if ends_at is None:
        return True
    return _aware(now) < _aware(ends_at)


def awards_author(old_status: str, new_status: str) -> bool:
    """True when a status change should pay the proposal author.

    Paid once, on the first move into ``passed`` or ``implemented``.
    """
    rewarded = (ProposalStatus.PASSED, ProposalStatus.IMPLEMENTED)
    return new_status in rewarded and old_status not in rewarded


@dataclass(frozen=True, slots=True)
class OptionResult:
    option_id: int
    text: str
    vote_count: int
    percentage: int


def poll_percentages(options: Sequence) -> list[OptionResult]:
    """Per-option share of the total, rounded to whole percent.

    *options* are objects with ``id``, ``text`` and ``vote_count``.  A poll
    with no votes reports 0% for every option.
    """
    total = sum(o.vote_count or 0 for o in options)
    return [
        OptionResult(
            option_id=o.id,
            text=o.text,
            vote_count=o.vote_count or 0,
            percentage=round((o.vote_count or 0) / total * 100) if total else 0,
        )
        for o in options
    ]
