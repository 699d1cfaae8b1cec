"""
sephirots.services.recommendation_service — Recommendation Snapshot
=====================================================================

Loads the member, their badges, discussions and other members, converts
them to engine snapshots and runs
:func:`sephirots.engine.recommendations.generate_recommendations`.
"""

from __future__ import annotations

import random
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from sephirots.database.models import Badge, Discussion, User, UserBadge
from sephirots.engine.recommendations import (
    BadgeText,
    DiscussionSnapshot,
    MemberSnapshot,
    generate_recommendations,
)
from sephirots.services.errors import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

# Upper bound on rows scanned per request
MAX_DISCUSSIONS = 200
MAX_MEMBERS = 500


def _member(user: User) -> MemberSnapshot:
    return MemberSnapshot(
        id=user.id,
        display_name=user.display_name or user.username,
        level=user.level or 1,
        points=user.points or 0,
        comments_count=user.comments_count or 0,
        interests=tuple(user.interests or ()),
        birth_date=user.birth_date,
    )


def _recommendation_to_dict(rec) -> dict:
    data = {
        "id": rec.id,
        "type": rec.type,
        "title": rec.title,
        "description": rec.description,
        "resonanceScore": rec.resonance_score,
        "energySignature": list(rec.energy_signature),
        "action": {"type": rec.action_type},
    }
    if rec.action_path is not None:
        data["action"]["path"] = rec.action_path
    if rec.source_id is not None:
        data["sourceId"] = rec.source_id
    return data


def get_recommendations(
    engine: Engine,
    user_id: int,
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> dict:
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        badges = session.execute(
            select(Badge.name, Badge.description)
            .join(UserBadge, UserBadge.badge_id == Badge.id)
            .where(UserBadge.user_id == user_id)
        ).all()
        discussions = session.scalars(
            select(Discussion).order_by(Discussion.id.desc()).limit(MAX_DISCUSSIONS)
        ).all()
        others = session.scalars(select(User).order_by(User.id).limit(MAX_MEMBERS)).all()

        me = _member(user)
        result = generate_recommendations(
            me,
            [BadgeText(name=n, description=d or "") for n, d in badges],
            [
                DiscussionSnapshot(
                    id=d.id, title=d.title, content=d.content or "", tags=tuple(d.tags or ()),
                )
                for d in discussions
            ],
            [_member(u) for u in others if u.id != user_id],
            now,
            rng,
        )

    return {
        "dailyInsight": result.daily_insight,
        "personalRecommendations": [_recommendation_to_dict(r) for r in result.personal_recommendations],
        "synchronicities": [_recommendation_to_dict(r) for r in result.synchronicities],
        "entangledUsers": [
            {
                "userId": e.user_id,
                "username": e.username,
                "resonanceScore": e.resonance_score,
                "sharedInterests": list(e.shared_interests),
            }
            for e in result.entangled_users
        ],
    }
