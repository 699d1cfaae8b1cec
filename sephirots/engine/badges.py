"""
sephirots.engine.badges — Badge Tier Ranking
==============================================

Ranks badge prestige tiers and orders a user's collection for display.
Tiers are compared by a fixed numeric rank (bronze < silver < gold <
platinum < founder).  Unrecognised tier strings are skipped with a warning
instead of raising, so one bad row never breaks a profile page.

This module is pure calculation — no database I/O, no HTTP I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from sephirots.database.models import BadgeTier, SpecialEffect

logger = logging.getLogger(__name__)

TIER_RANK: dict[BadgeTier, int] = {
    BadgeTier.BRONZE: 1,
    BadgeTier.SILVER: 2,
    BadgeTier.GOLD: 3,
    BadgeTier.PLATINUM: 4,
    BadgeTier.FOUNDER: 5,
}

# Sort key for tiers the rank table doesn't know about
_UNKNOWN_RANK = 0


class BadgeLike(Protocol):
    """Anything with the badge fields the engine reads (ORM row or dataclass)."""

    name: str
    tier: str
    level: int


def _parse_tier(tier: str) -> BadgeTier | None:
    try:
        return BadgeTier(tier)
    except ValueError:
        return None


def tier_rank(tier: str) -> int:
    """Return the numeric rank of *tier*.

    Raises
    ------
    ValueError
        If *tier* is not a known :class:`BadgeTier`.
    """
    return TIER_RANK[BadgeTier(tier)]


def highest_tier(badges: Iterable[BadgeLike]) -> BadgeTier:
    """Return the highest-ranked tier in *badges*.

    An empty collection (or one containing only unknown tiers) yields
    ``bronze``.
    """
    best = BadgeTier.BRONZE
    for badge in badges:
        tier = _parse_tier(badge.tier)
        if tier is None:
            logger.warning(
                "Skipping badge %r with unknown tier %r", badge.name, badge.tier,
            )
            continue
        if TIER_RANK[tier] > TIER_RANK[best]:
            best = tier
    return best


def sort_badges(badges: Iterable[BadgeLike]) -> list:
    """Order *badges* for the collection view.

    Tier descending (founder first), then level descending.  Unknown tiers
    sort last.  The sort is stable so equal badges keep their input order.
    """
    def key(badge: BadgeLike) -> tuple[int, int]:
        tier = _parse_tier(badge.tier)
        rank = TIER_RANK[tier] if tier is not None else _UNKNOWN_RANK
        return (-rank, -(badge.level or 0))

    return sorted(badges, key=key)


def resolve_special_effect(badge) -> SpecialEffect:
    """Return the badge's rendering effect from its explicit field.

    Missing or unrecognised values fall back to :attr:`SpecialEffect.NONE`.
    """
    raw = getattr(badge, "special_effect", None)
    if raw is None:
        return SpecialEffect.NONE
    try:
        return SpecialEffect(raw)
    except ValueError:
        logger.warning("Badge %r has unknown special effect %r", badge.name, raw)
        return SpecialEffect.NONE


def progress_percentage(current: int, maximum: int) -> int:
    """Percentage toward an unearned badge, clamped to [0, 100].

    A maximum of zero (or less) yields 0.
    """
    if maximum <= 0:
        return 0
    pct = round(current / maximum * 100)
    return max(0, min(100, pct))
