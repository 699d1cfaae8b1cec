"""
sephirots.services.quest_service — Quest Progress & Claims
============================================================

Stores per-user quest progress and pays out rewards on claim.  Completion
is always decided by :func:`sephirots.engine.quests.evaluate_quest`, so the
percentage a member sees and whether they can claim come from the same
evaluation.

Progress is written by the server only: member actions advance it through
:func:`advance_quests`, and admins can correct it with an audited
:func:`update_progress`.  A claim flips the status with one conditional
``UPDATE`` so each quest pays out at most once per member.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sephirots.constants import QUEST_TYPE_LABELS
from sephirots.database.models import AdminActionType, Quest, QuestStatus, User, UserQuest
from sephirots.engine.quests import (
    InvalidRequirementError,
    can_claim,
    derive_status,
    evaluate_quest,
)
from sephirots.services.admin_service import _log_admin_action
from sephirots.services.badge_service import award_badge
from sephirots.services.errors import ConflictError, NotFoundError, ValidationError
from sephirots.services.user_service import award_points

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _normalize_dt(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is tz-aware (SQLite returns naive datetimes)."""
    if dt is None:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def _is_expired(quest: Quest, now: datetime) -> bool:
    expires_at = _normalize_dt(quest.expires_at)
    return expires_at is not None and expires_at <= now


def _quest_to_dict(quest: Quest, user_quest: UserQuest | None, now: datetime) -> dict:
    progress = dict(user_quest.progress or {}) if user_quest else {}
    status = user_quest.status if user_quest else QuestStatus.NOT_STARTED.value
    if status != QuestStatus.COMPLETED and _is_expired(quest, now):
        status = QuestStatus.EXPIRED.value

    evaluation = evaluate_quest(quest.requirements or {}, progress)
    return {
        "id": quest.id,
        "title": quest.title,
        "description": quest.description,
        "type": quest.type,
        "typeLabel": QUEST_TYPE_LABELS.get(quest.type, quest.type),
        "points": quest.points,
        "badgeRewardId": quest.badge_reward_id,
        "requirements": dict(quest.requirements or {}),
        "progress": progress,
        "status": status,
        "expiresAt": quest.expires_at.isoformat() if quest.expires_at else None,
        "percentage": evaluation.percentage,
        "satisfied": {item.key: item.satisfied for item in evaluation.items},
        "canClaim": can_claim(evaluation, status),
    }


def list_quests(engine: Engine, user_id: int, *, now: datetime | None = None) -> list[dict]:
    """Active quests with the user's progress evaluated."""
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        quests = session.scalars(
            select(Quest).where(Quest.active.is_(True)).order_by(Quest.id)
        ).all()
        mine = {
            uq.quest_id: uq
            for uq in session.scalars(select(UserQuest).where(UserQuest.user_id == user_id))
        }
        return [_quest_to_dict(q, mine.get(q.id), now) for q in quests]


_TERMINAL = (QuestStatus.COMPLETED.value, QuestStatus.EXPIRED.value)


def _load(session: Session, user_id: int, quest_id: int) -> tuple[Quest, UserQuest | None]:
    quest = session.get(Quest, quest_id)
    if quest is None or not quest.active:
        raise NotFoundError("Quest not found")
    if session.get(User, user_id) is None:
        raise NotFoundError("User not found")
    return quest, session.get(UserQuest, (user_id, quest_id))


def _user_quest_row(session: Session, user_id: int, quest_id: int) -> UserQuest:
    """Fetch the progress row, inserting it under a SAVEPOINT on first use."""
    user_quest = session.get(UserQuest, (user_id, quest_id))
    if user_quest is not None:
        return user_quest
    try:
        with session.begin_nested():   # SAVEPOINT
            user_quest = UserQuest(
                user_id=user_id, quest_id=quest_id,
                progress={}, status=QuestStatus.NOT_STARTED.value,
            )
            session.add(user_quest)
            session.flush()
    except IntegrityError:
        # Another request created the row first
        user_quest = session.get(UserQuest, (user_id, quest_id))
    return user_quest


def _bump(requirement: object, current: object, amount: int) -> object:
    if isinstance(requirement, bool):
        return True
    if isinstance(current, bool) or not isinstance(current, (int, float)):
        current = 0
    return current + amount


def advance_quests(
    session: Session, user_id: int, key: str, amount: int = 1, *, now: datetime | None = None,
) -> int:
    """Advance *key* on every open quest that requires it.

    Count requirements go up by *amount*; boolean requirements are set to
    ``True``.  Runs inside the caller's transaction and returns the number
    of quests touched.
    """
    now = now or datetime.now(UTC)
    touched = 0
    quests = session.scalars(select(Quest).where(Quest.active.is_(True))).all()
    for quest in quests:
        requirements = quest.requirements or {}
        if key not in requirements or _is_expired(quest, now):
            continue
        user_quest = _user_quest_row(session, user_id, quest.id)
        if user_quest.status in _TERMINAL:
            continue
        progress = dict(user_quest.progress or {})
        progress[key] = _bump(requirements[key], progress.get(key), amount)
        try:
            evaluation = evaluate_quest(requirements, progress)
        except InvalidRequirementError as exc:
            logger.warning("Skipping quest %s with invalid requirements: %s", quest.id, exc)
            continue
        user_quest.progress = progress
        user_quest.status = derive_status(evaluation, user_quest.status).value
        touched += 1
    return touched


def update_progress(
    engine: Engine,
    user_id: int,
    quest_id: int,
    progress: dict,
    *,
    actor_id: int,
    now: datetime | None = None,
) -> dict:
    """Admin correction of a member's stored progress, audited.

    Only keys the quest requires are accepted.  Completed or expired quests
    reject updates.
    """
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        quest, user_quest = _load(session, user_id, quest_id)
        if user_quest is not None and user_quest.status == QuestStatus.COMPLETED:
            raise ConflictError("Quest already completed")
        if _is_expired(quest, now):
            raise ValidationError("Quest has expired")

        unknown = set(progress) - set(quest.requirements or {})
        if unknown:
            raise ValidationError(f"Unknown requirement keys: {sorted(unknown)}")

        user_quest = _user_quest_row(session, user_id, quest_id)
        before = {"progress": dict(user_quest.progress or {}), "status": user_quest.status}
        merged = {**(user_quest.progress or {}), **progress}
        try:
            evaluation = evaluate_quest(quest.requirements or {}, merged)
        except InvalidRequirementError as exc:
            raise ValidationError(str(exc)) from exc

        # Reassign so the JSON column is flagged dirty
        user_quest.progress = merged
        user_quest.status = derive_status(evaluation, user_quest.status).value
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.UPDATE,
            target_table="user_quests",
            target_id=f"{user_id}:{quest_id}",
            before=before,
            after={"progress": merged, "status": user_quest.status},
        )
        session.commit()
        return _quest_to_dict(quest, user_quest, now)


def complete_quest(
    engine: Engine, user_id: int, quest_id: int, *, now: datetime | None = None,
) -> dict:
    """Claim a complete quest: pay its points and its badge reward once.

    Returns ``{"pointsAwarded": int, "badgeAwarded": bool}``.
    """
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        quest, user_quest = _load(session, user_id, quest_id)
        status = user_quest.status if user_quest else QuestStatus.NOT_STARTED.value
        if status == QuestStatus.COMPLETED:
            raise ConflictError("Quest already completed")
        if _is_expired(quest, now):
            if user_quest is not None:
                user_quest.status = QuestStatus.EXPIRED.value
                session.commit()
            raise ValidationError("Quest has expired")

        progress = dict(user_quest.progress or {}) if user_quest else {}
        evaluation = evaluate_quest(quest.requirements or {}, progress)
        if not can_claim(evaluation, status):
            raise ValidationError(
                f"Quest requirements not met ({evaluation.satisfied_count}"
                f"/{evaluation.total})"
            )
        if user_quest is None:
            _user_quest_row(session, user_id, quest_id)

        claimed = session.execute(
            update(UserQuest)
            .where(
                UserQuest.user_id == user_id,
                UserQuest.quest_id == quest_id,
                UserQuest.status.not_in(_TERMINAL),
            )
            .values(status=QuestStatus.COMPLETED.value, completed_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            session.rollback()
            raise ConflictError("Quest already completed")

        points = quest.points
        award_points(session, user_id, points, reason=f"quest:{quest_id}")

        badge_awarded = False
        if quest.badge_reward_id is not None:
            try:
                badge_awarded = award_badge(session, user_id, quest.badge_reward_id)
            except ConflictError:
                logger.warning(
                    "Quest %s badge reward %s is out of supply", quest_id, quest.badge_reward_id,
                )

        session.commit()

    logger.info(
        "User %s completed quest %s (+%d points, badge=%s)",
        user_id, quest_id, points, badge_awarded,
    )
    return {"pointsAwarded": points, "badgeAwarded": badge_awarded}
