"""
sephirots.services.activity_service — Server-Recorded Member Activity
=======================================================================

The single entry point services call after a member does something that
counts toward quests or badges.  Counters only move here, inside the
transaction of the action that earned them, so members can never report
their own progress.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from sephirots.constants import ACTIVITY_KEYS
from sephirots.services.badge_service import record_progress
from sephirots.services.quest_service import advance_quests

logger = logging.getLogger(__name__)


def record_activity(
    session: Session, user_id: int, key: str, amount: int = 1, *, now: datetime | None = None,
) -> list[str]:
    """Advance quests and badge progress for *key*.

    Returns the names of badges earned by this activity.

    Raises
    ------
    ValueError
        If *key* is not a known activity.
    """
    if key not in ACTIVITY_KEYS:
        raise ValueError(f"Unknown activity {key!r}")
    quests = advance_quests(session, user_id, key, amount, now=now)
    earned = record_progress(session, user_id, key, amount)
    logger.debug(
        "Activity %s (+%d) for user %s: %d quests, badges=%s",
        key, amount, user_id, quests, earned,
    )
    return earned
