"""
sephirots.engine.quests — Quest Progress Evaluation
=====================================================

Quest requirements are stored as JSON (``{"profile_completed": true,
"comments_posted": 5}``).  This module parses them into typed goals and
evaluates a user's progress map against them.

Satisfaction is **binary per requirement** and **continuous in aggregate**:
a count goal of 10 with progress 9 is simply unsatisfied, while the quest
percentage is the fraction of satisfied requirements.  Both the displayed
percentage and reward-claim eligibility derive from the same evaluation.

This module is pure calculation — no database I/O, no HTTP I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from sephirots.database.models import QuestStatus

logger = logging.getLogger(__name__)


class InvalidRequirementError(ValueError):
    """A requirement target is neither a boolean nor a number."""


# ---------------------------------------------------------------------------
# Goals — tagged union
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BooleanGoal:
    """Satisfied when the current value equals *target* exactly."""

    target: bool

    def is_satisfied(self, current: object) -> bool:
        return current == self.target


@dataclass(frozen=True, slots=True)
class CountGoal:
    """Satisfied when the current count reaches *target*.

    Missing progress counts as 0.
    """

    target: int | float

    def is_satisfied(self, current: object) -> bool:
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            current = 0
        return current >= self.target


Goal = BooleanGoal | CountGoal


def parse_goal(key: str, value: object) -> Goal:
    """Build a typed goal from one JSON requirement value.

    ``bool`` is checked before ``int`` because ``bool`` subclasses ``int``.
    """
    if isinstance(value, bool):
        return BooleanGoal(target=value)
    if isinstance(value, (int, float)):
        return CountGoal(target=value)
    raise InvalidRequirementError(
        f"Requirement {key!r} has unsupported target {value!r} "
        f"(expected bool or number, got {type(value).__name__})"
    )


def parse_requirements(requirements: Mapping[str, object]) -> dict[str, Goal]:
    """Parse a requirements mapping into ``{key: Goal}`` preserving order."""
    return {key: parse_goal(key, value) for key, value in requirements.items()}


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RequirementProgress:
    key: str
    goal: Goal
    current: object
    satisfied: bool


@dataclass(frozen=True, slots=True)
class QuestProgress:
    """Evaluated state of one quest for one user."""

    items: tuple[RequirementProgress, ...]
    satisfied_count: int
    total: int
    percentage: float
    is_complete: bool


def evaluate_quest(
    requirements: Mapping[str, object] | Mapping[str, Goal],
    progress: Mapping[str, object] | None,
) -> QuestProgress:
    """Compare *progress* against *requirements* key by key.

    Parameters
    ----------
    requirements:
        Raw JSON requirements or already-parsed goals.
    progress:
        Current values for the same keys.  Missing keys count as unset
        (0 for counts, ``None`` for booleans).

    A quest with no requirements evaluates to 0% and is never complete.
    """
    progress = progress or {}
    goals = {
        key: value if isinstance(value, (BooleanGoal, CountGoal)) else parse_goal(key, value)
        for key, value in requirements.items()
    }

    items = tuple(
        RequirementProgress(
            key=key,
            goal=goal,
            current=progress.get(key),
            satisfied=goal.is_satisfied(progress.get(key)),
        )
        for key, goal in goals.items()
    )
    total = len(items)
    satisfied = sum(1 for item in items if item.satisfied)

    if total == 0:
        return QuestProgress(
            items=(), satisfied_count=0, total=0, percentage=0.0, is_complete=False,
        )

    percentage = satisfied / total * 100
    return QuestProgress(
        items=items,
        satisfied_count=satisfied,
        total=total,
        percentage=percentage,
        is_complete=percentage >= 100,
    )


def can_claim(quest_progress: QuestProgress, status: str) -> bool:
    """True when the quest is complete and has not been claimed or expired."""
    if status in (QuestStatus.COMPLETED, QuestStatus.EXPIRED):
        return False
    return quest_progress.is_complete


def derive_status(quest_progress: QuestProgress, current_status: str) -> QuestStatus:
    """Status a stored user-quest should move to after a progress update.

    Terminal statuses (``completed``/``expired``) never change here;
    completion only happens through an explicit claim.
    """
    if current_status in (QuestStatus.COMPLETED, QuestStatus.EXPIRED):
        return QuestStatus(current_status)
    if quest_progress.satisfied_count == 0 and not any(
        item.current not in (None, 0, False) for item in quest_progress.items
    ):
        return QuestStatus.NOT_STARTED
    return QuestStatus.IN_PROGRESS
