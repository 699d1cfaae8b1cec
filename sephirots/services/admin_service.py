"""
sephirots.services.admin_service — Audited Admin Mutations
============================================================

Every admin write follows the same pattern:
  1. Begin transaction
  2. Read "before" snapshot
  3. Apply change
  4. Write admin_log with before/after JSON
  5. Commit
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sephirots.constants import ACTIVITY_KEYS
from sephirots.database.models import AdminActionType, AdminLog, Badge, BadgeTier, SpecialEffect
from sephirots.services.badge_service import award_badge
from sephirots.services.errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic audit helpers
# ---------------------------------------------------------------------------

def _row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key, None)
        if isinstance(val, (datetime, date)):
            val = val.isoformat()
        result[col.name] = val
    return result


def _log_admin_action(
    session: Session,
    *,
    actor_id: int,
    action_type: str,
    target_table: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        actor_id=actor_id,
        action_type=action_type,
        target_table=target_table,
        target_id=target_id,
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


def _audited_create(engine, row: Any, *, table_name: str, actor_id: int) -> Any:
    """Generic audited CREATE: add -> flush -> log -> commit -> return.

    Parameters
    ----------
    row : ORM instance (already constructed, not yet added to a session).
    """
    with Session(engine, expire_on_commit=False) as session:
        session.add(row)
        session.flush()
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.CREATE,
            target_table=table_name,
            target_id=str(row.id),
            before=None,
            after=_row_to_dict(row),
        )
        session.commit()
        session.refresh(row)
        session.expunge(row)
        return row


# ---------------------------------------------------------------------------
# Badge catalog
# ---------------------------------------------------------------------------

def create_badge(
    engine,
    *,
    actor_id: int,
    name: str,
    description: str,
    icon: str,
    tier: str = BadgeTier.BRONZE,
    level: int = 1,
    points: int = 10,
    requirement: str = "",
    category: str = "general",
    symbolism: str | None = None,
    is_limited: bool = False,
    max_supply: int | None = None,
    special_effect: str = SpecialEffect.NONE,
    progress_key: str | None = None,
    progress_target: int | None = None,
) -> Badge:
    """Create a catalog badge.  Tier and special effect must be known values.

    The special effect is fixed here, at creation time; nothing downstream
    infers it from the badge name.
    """
    try:
        tier = BadgeTier(tier)
        special_effect = SpecialEffect(special_effect)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if is_limited and (max_supply is None or max_supply <= 0):
        raise ValidationError("Limited badges need a positive max supply")
    if (progress_key is None) != (progress_target is None):
        raise ValidationError("progress_key and progress_target go together")
    if progress_key is not None:
        if progress_key not in ACTIVITY_KEYS:
            raise ValidationError(f"Unknown activity {progress_key!r}")
        if progress_target <= 0:
            raise ValidationError("progress_target must be positive")

    badge = Badge(
        name=name,
        description=description,
        icon=icon,
        tier=tier,
        level=level,
        points=points,
        requirement=requirement,
        category=category,
        symbolism=symbolism,
        is_limited=is_limited,
        max_supply=max_supply if is_limited else None,
        special_effect=special_effect,
        progress_key=progress_key,
        progress_target=progress_target,
    )
    try:
        badge = _audited_create(engine, badge, table_name="badges", actor_id=actor_id)
    except IntegrityError as exc:
        raise ConflictError(f"A badge named {name!r} already exists") from exc
    logger.info("Admin %s created badge %r (%s)", actor_id, name, tier)
    return badge


def grant_badge(engine, *, badge_id: int, user_id: int, actor_id: int) -> bool:
    """Grant a badge by hand.  Returns ``False`` if the user already had it."""
    with Session(engine) as session:
        awarded = award_badge(session, user_id, badge_id, issued_by=actor_id)
        if awarded:
            _log_admin_action(
                session,
                actor_id=actor_id,
                action_type=AdminActionType.GRANT_BADGE,
                target_table="user_badges",
                target_id=f"{user_id}:{badge_id}",
                before=None,
                after={"user_id": user_id, "badge_id": badge_id},
            )
        session.commit()
    return awarded
