"""
sephirots.services.badge_service — Badge Catalog, Collections & Awards
========================================================================

Reads the badge catalog and users' collections, and awards badges.
Badges with a ``progress_key`` are also earned automatically:
:func:`record_progress` advances the member's counter and awards the badge
once it reaches ``progress_target``.
Awards are idempotent: the ``(user_id, badge_id)`` primary key is enforced
by the database and a duplicate insert inside a SAVEPOINT just means the
user already had the badge.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sephirots.constants import TIER_COLORS_HEX, TIER_LABELS
from sephirots.database.models import Badge, BadgeProgress, User, UserBadge
from sephirots.engine.badges import (
    highest_tier,
    progress_percentage,
    resolve_special_effect,
    sort_badges,
)
from sephirots.services.errors import ConflictError, NotFoundError
from sephirots.services.user_service import award_points

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def badge_to_dict(badge: Badge, user_badge: UserBadge | None = None) -> dict:
    data = {
        "id": badge.id,
        "name": badge.name,
        "description": badge.description,
        "icon": badge.icon,
        "requirement": badge.requirement,
        "category": badge.category,
        "tier": badge.tier,
        "tierLabel": TIER_LABELS.get(badge.tier, badge.tier),
        "tierColor": TIER_COLORS_HEX.get(badge.tier),
        "level": badge.level,
        "points": badge.points,
        "symbolism": badge.symbolism,
        "isLimited": badge.is_limited,
        "maxSupply": badge.max_supply,
        "specialEffect": resolve_special_effect(badge).value,
        "progressKey": badge.progress_key,
        "progressTarget": badge.progress_target,
    }
    if user_badge is not None:
        data["earnedAt"] = user_badge.earned_at.isoformat() if user_badge.earned_at else None
        data["enhanced"] = user_badge.enhanced
    return data


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def list_badges(engine: Engine) -> list[dict]:
    with Session(engine) as session:
        badges = session.scalars(select(Badge).order_by(Badge.id)).all()
        return [badge_to_dict(b) for b in sort_badges(badges)]


def _earned(session: Session, user_id: int) -> list[tuple[Badge, UserBadge]]:
    if session.get(User, user_id) is None:
        raise NotFoundError("User not found")
    rows = session.execute(
        select(Badge, UserBadge)
        .join(UserBadge, UserBadge.badge_id == Badge.id)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at)
    ).all()
    return [(b, ub) for b, ub in rows]


def get_user_badges(engine: Engine, user_id: int) -> list[dict]:
    with Session(engine) as session:
        return [badge_to_dict(b, ub) for b, ub in _earned(session, user_id)]


def get_badge_summary(engine: Engine, user_id: int) -> dict:
    """Highest tier plus the collection in display order."""
    with Session(engine) as session:
        earned = _earned(session, user_id)
        by_badge = {b.id: ub for b, ub in earned}
        badges = [b for b, _ in earned]
        top = highest_tier(badges)
        return {
            "highestTier": top.value,
            "highestTierLabel": TIER_LABELS[top.value],
            "count": len(badges),
            "badges": [badge_to_dict(b, by_badge[b.id]) for b in sort_badges(badges)],
        }


def get_badge_progress(engine: Engine, user_id: int) -> list[dict]:
    with Session(engine) as session:
        rows = session.scalars(
            select(BadgeProgress)
            .where(BadgeProgress.user_id == user_id)
            .order_by(BadgeProgress.badge_id)
        ).all()
        return [
            {
                "userId": row.user_id,
                "badgeId": row.badge_id,
                "currentProgress": row.current_progress,
                "maxProgress": row.max_progress,
                "progressPercentage": progress_percentage(
                    row.current_progress, row.max_progress,
                ),
            }
            for row in rows
        ]


# ---------------------------------------------------------------------------
# Awards — run inside the caller's transaction
# ---------------------------------------------------------------------------

def award_badge(
    session: Session, user_id: int, badge_id: int, *, issued_by: int | None = None,
) -> bool:
    """Give *badge_id* to *user_id* and credit the badge's points.

    Returns ``False`` if the user already holds the badge.

    Raises
    ------
    NotFoundError
        If the badge doesn't exist.
    ConflictError
        If a limited badge has reached its max supply.
    """
    badge = session.get(Badge, badge_id)
    if badge is None:
        raise NotFoundError("Badge not found")

    if session.get(User, user_id) is None:
        raise NotFoundError("User not found")
    if session.get(UserBadge, (user_id, badge_id)) is not None:
        return False

    if badge.is_limited and badge.max_supply is not None:
        issued = session.scalar(
            select(func.count()).select_from(UserBadge).where(UserBadge.badge_id == badge_id)
        )
        if issued >= badge.max_supply:
            raise ConflictError(f"{badge.name} has reached its supply limit")

    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(UserBadge(user_id=user_id, badge_id=badge_id, issued_by=issued_by))
            session.flush()
    except IntegrityError:
        return False

    session.execute(
        delete(BadgeProgress)
        .where(BadgeProgress.user_id == user_id, BadgeProgress.badge_id == badge_id)
    )
    award_points(session, user_id, badge.points, reason=f"badge:{badge.name}")
    logger.info("User %s earned badge %r (%s)", user_id, badge.name, badge.tier)
    return True


def award_badge_by_name(
    session: Session, user_id: int, name: str, *, issued_by: int | None = None,
) -> bool:
    badge_id = session.scalar(select(Badge.id).where(Badge.name == name))
    if badge_id is None:
        raise NotFoundError(f"Badge {name!r} not found")
    return award_badge(session, user_id, badge_id, issued_by=issued_by)


def _progress_row(session: Session, user_id: int, badge: Badge) -> BadgeProgress:
    row = session.get(BadgeProgress, (user_id, badge.id))
    if row is not None:
        return row
    try:
        with session.begin_nested():   # SAVEPOINT
            row = BadgeProgress(
                user_id=user_id, badge_id=badge.id,
                current_progress=0, max_progress=badge.progress_target,
            )
            session.add(row)
            session.flush()
    except IntegrityError:
        row = session.get(BadgeProgress, (user_id, badge.id))
    return row


def record_progress(session: Session, user_id: int, key: str, amount: int = 1) -> list[str]:
    """Advance every unearned badge counted by *key*.

    Badges whose counter reaches the target are awarded here.  Returns the
    names of badges awarded by this call.
    """
    badges = session.scalars(
        select(Badge)
        .where(Badge.progress_key == key, Badge.progress_target.is_not(None))
        .order_by(Badge.id)
    ).all()
    awarded: list[str] = []
    for badge in badges:
        if session.get(UserBadge, (user_id, badge.id)) is not None:
            continue
        row = _progress_row(session, user_id, badge)
        session.execute(
            update(BadgeProgress)
            .where(BadgeProgress.user_id == user_id, BadgeProgress.badge_id == badge.id)
            .values(
                current_progress=BadgeProgress.current_progress + amount,
                max_progress=badge.progress_target,
            )
            .execution_options(synchronize_session=False)
        )
        session.refresh(row)
        if row.current_progress < badge.progress_target:
            continue
        try:
            if award_badge(session, user_id, badge.id):
                awarded.append(badge.name)
        except ConflictError:
            logger.warning("Badge %r reached by user %s is out of supply", badge.name, user_id)
    return awarded
