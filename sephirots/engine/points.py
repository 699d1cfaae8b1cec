"""
sephirots.engine.points — Affordability & Points-Tier Progression
===================================================================

Two pure questions about a user's point balance:

1. Can they redeem a reward?  (``points >= cost``)
2. Where do they sit in the points-tier table, and how far to the next band?

The tier table is an ascending list of thresholds, e.g.
``[0, 1000, 5000, 10000, 25000]``.  It is admin-tunable through the
``points.tier_thresholds`` setting.  Points tiers are unrelated to badge
prestige tiers.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

DEFAULT_TIER_THRESHOLDS: tuple[int, ...] = (0, 1000, 5000, 10000, 25000)


def can_afford(points: int, cost: int) -> bool:
    return points >= cost


def points_needed(points: int, cost: int) -> int:
    """How many more points are required to afford *cost* (0 if affordable)."""
    return max(0, cost - points)


@dataclass(frozen=True, slots=True)
class TierProgress:
    """Position of a balance within the tier table.

    ``next_threshold`` is ``None`` at or beyond the final threshold, in
    which case ``percentage`` is 100 and ``points_to_next`` is 0.
    """

    tier_index: int
    current_threshold: int
    next_threshold: int | None
    percentage: float
    points_to_next: int


def validate_thresholds(thresholds: Sequence[int]) -> tuple[int, ...]:
    """Return *thresholds* as a tuple, or raise if it isn't strictly ascending.

    Raises
    ------
    ValueError
        If the table is empty or not strictly ascending.
    """
    table = tuple(int(t) for t in thresholds)
    if not table:
        raise ValueError("Tier threshold table must not be empty")
    for lower, upper in zip(table, table[1:]):
        if upper <= lower:
            raise ValueError(
                f"Tier thresholds must be strictly ascending: {list(table)}"
            )
    return table


def tier_progress(
    points: int, thresholds: Sequence[int] = DEFAULT_TIER_THRESHOLDS,
) -> TierProgress:
    """Classify *points* against *thresholds*.

    The tier index is the number of thresholds ≤ points, minus one, clamped
    to ≥ 0.  Progress within the tier is
    ``(points - current) / (next - current) * 100`` clamped to [0, 100].
    """
    table = validate_thresholds(thresholds)

    index = max(0, sum(1 for t in table if t <= points) - 1)
    current = table[index]

    if index >= len(table) - 1:
        return TierProgress(
            tier_index=index,
            current_threshold=current,
            next_threshold=None,
            percentage=100.0,
            points_to_next=0,
        )

    upper = table[index + 1]
    pct = (points - current) / (upper - current) * 100
    return TierProgress(
        tier_index=index,
        current_threshold=current,
        next_threshold=upper,
        percentage=max(0.0, min(100.0, pct)),
        points_to_next=max(0, upper - points),
    )
