"""
sephirots.services.user_service — Users & Point Balances
==========================================================

Member lookups plus the only code paths that change ``users.points``.
Both increments and decrements are single ``UPDATE`` statements so two
concurrent requests can never lose an update or overdraw a balance.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from sephirots.database.models import AdminActionType, User
from sephirots.engine.points import tier_progress
from sephirots.services.errors import NotFoundError, ValidationError
from sephirots.services.settings_service import get_tier_thresholds

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "displayName": user.display_name,
        "avatar": user.avatar,
        "bio": user.bio,
        "level": user.level,
        "points": user.points,
        "isAi": user.is_ai,
        "interests": list(user.interests or []),
        "birthDate": user.birth_date.isoformat() if user.birth_date else None,
        "commentsCount": user.comments_count,
    }


def get_or_create_user(session: Session, username: str, display_name: str | None = None) -> User:
    """Fetch a user by username, inserting one on first sight."""
    user = session.scalar(select(User).where(User.username == username))
    if user is None:
        user = User(username=username, display_name=display_name or username)
        session.add(user)
        session.flush()
        logger.info("Created user %s (%s)", user.id, username)
    return user


def get_user(engine: Engine, user_id: int) -> dict:
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user_to_dict(user)


_PROFILE_FIELDS = frozenset({"display_name", "avatar", "bio", "interests", "birth_date"})


def _normalize_interests(interests: list[str] | None) -> list[str]:
    seen: list[str] = []
    for interest in interests or []:
        interest = interest.strip().lower()
        if interest and interest not in seen:
            seen.append(interest)
    return seen


def update_profile(engine: Engine, user_id: int, *, actor_id: int, **fields) -> dict:
    """Edit profile fields.  Edits made by someone else (an admin) are audited.

    The first time a profile has both a bio and interests it counts as
    completed for quests.
    """
    from sephirots.services.activity_service import record_activity
    from sephirots.services.admin_service import _log_admin_action

    unknown = set(fields) - _PROFILE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot edit fields: {sorted(unknown)}")
    if "display_name" in fields and not fields["display_name"]:
        raise ValidationError("Display name cannot be empty")
    if "interests" in fields:
        fields["interests"] = _normalize_interests(fields["interests"])

    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        before = user_to_dict(user)
        was_complete = bool(user.bio and user.interests)
        for key, value in fields.items():
            setattr(user, key, value)
        session.flush()

        if not was_complete and user.bio and user.interests:
            record_activity(session, user_id, "profile_completed")
        if actor_id != user_id:
            _log_admin_action(
                session,
                actor_id=actor_id,
                action_type=AdminActionType.UPDATE,
                target_table="users",
                target_id=str(user_id),
                before=before,
                after=user_to_dict(user),
            )
        session.commit()
        logger.info("User %s profile updated by %s (%s)", user_id, actor_id, sorted(fields))
        return user_to_dict(user)


# ---------------------------------------------------------------------------
# Point balance mutations — run inside the caller's transaction
# ---------------------------------------------------------------------------

def award_points(session: Session, user_id: int, amount: int, *, reason: str) -> None:
    """Atomically add *amount* points (a no-op for amounts ≤ 0)."""
    if amount <= 0:
        return
    session.execute(
        update(User).where(User.id == user_id).values(points=User.points + amount)
    )
    logger.info("Awarded %d points to user %s (%s)", amount, user_id, reason)


def spend_points(session: Session, user_id: int, cost: int) -> bool:
    """Atomically deduct *cost* if the balance covers it.

    Returns ``False`` (and changes nothing) when the balance is too low.
    """
    result = session.execute(
        update(User)
        .where(User.id == user_id, User.points >= cost)
        .values(points=User.points - cost)
    )
    return result.rowcount == 1


def get_balance(session: Session, user_id: int) -> int:
    points = session.scalar(select(User.points).where(User.id == user_id))
    if points is None:
        raise NotFoundError("User not found")
    return points


def adjust_points(engine: Engine, *, user_id: int, delta: int, actor_id: int, reason: str) -> dict:
    """Admin adjustment of a balance, audited.  The balance never goes below 0."""
    from sephirots.services.admin_service import _log_admin_action

    if delta == 0:
        raise ValidationError("Point adjustment must be non-zero")
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        before = {"points": user.points}
        if delta > 0:
            award_points(session, user_id, delta, reason=reason)
        elif not spend_points(session, user_id, -delta):
            raise ValidationError(
                f"Cannot remove {-delta} points from a balance of {user.points}"
            )
        session.refresh(user)
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.ADJUST_POINTS,
            target_table="users",
            target_id=str(user_id),
            before=before,
            after={"points": user.points},
            reason=reason,
        )
        session.commit()
        return user_to_dict(user)


# ---------------------------------------------------------------------------
# Points-tier progression
# ---------------------------------------------------------------------------

def get_tier_progress(engine: Engine, user_id: int) -> dict:
    with Session(engine) as session:
        points = get_balance(session, user_id)
        progress = tier_progress(points, get_tier_thresholds(session))
    return {
        "points": points,
        "tierIndex": progress.tier_index,
        "currentThreshold": progress.current_threshold,
        "nextThreshold": progress.next_threshold,
        "percentage": progress.percentage,
        "pointsToNext": progress.points_to_next,
    }
