"""
sephirots.services.discussion_service — Forum Discussions, Comments & Likes
=============================================================================

Starting a discussion, replying and receiving likes all feed the activity
counters.  A member likes a discussion or comment at most once; the
``content_likes`` unique key enforces it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sephirots.database.models import Comment, ContentLike, Discussion, LikeTarget, User
from sephirots.services.activity_service import record_activity
from sephirots.services.errors import ConflictError, NotFoundError, ValidationError
from sephirots.services.settings_service import get_int_setting
from sephirots.services.user_service import award_points

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DISCUSSION_CATEGORIES = frozenset({
    "community_needs", "rights_agreement", "wellbeing", "communication", "other",
})


def _comment_to_dict(c: Comment) -> dict:
    return {
        "id": c.id,
        "content": c.content,
        "userId": c.user_id,
        "discussionId": c.discussion_id,
        "likes": c.likes,
        "createdAt": c.created_at.isoformat() if c.created_at else None,
    }


def _discussion_to_dict(d: Discussion, *, with_comments: bool = False) -> dict:
    data = {
        "id": d.id,
        "title": d.title,
        "content": d.content,
        "userId": d.user_id,
        "category": d.category,
        "tags": list(d.tags or []),
        "likes": d.likes,
        "views": d.views,
        "createdAt": d.created_at.isoformat() if d.created_at else None,
    }
    if with_comments:
        data["comments"] = [_comment_to_dict(c) for c in d.comments]
    return data


def _normalize_tags(tags: list[str] | None) -> list[str]:
    seen: list[str] = []
    for tag in tags or []:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def list_discussions(engine: Engine, *, category: str | None = None) -> list[dict]:
    with Session(engine) as session:
        stmt = select(Discussion).order_by(Discussion.created_at.desc(), Discussion.id.desc())
        if category is not None:
            stmt = stmt.where(Discussion.category == category)
        return [_discussion_to_dict(d) for d in session.scalars(stmt)]


def get_discussion(engine: Engine, discussion_id: int) -> dict:
    """Fetch one discussion with its comments and count the view."""
    with Session(engine) as session:
        result = session.execute(
            update(Discussion)
            .where(Discussion.id == discussion_id)
            .values(views=Discussion.views + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError("Discussion not found")
        session.commit()
        return _discussion_to_dict(session.get(Discussion, discussion_id), with_comments=True)


def create_discussion(
    engine: Engine,
    *,
    user_id: int,
    title: str,
    content: str,
    category: str = "other",
    tags: list[str] | None = None,
) -> dict:
    if category not in DISCUSSION_CATEGORIES:
        raise ValidationError(f"Unknown discussion category {category!r}")
    with Session(engine) as session:
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        discussion = Discussion(
            title=title, content=content, user_id=user_id,
            category=category, tags=_normalize_tags(tags),
        )
        session.add(discussion)
        session.flush()
        record_activity(session, user_id, "discussions_joined")
        session.commit()
        logger.info("User %s started discussion %s", user_id, discussion.id)
        return _discussion_to_dict(discussion)


def create_comment(engine: Engine, *, user_id: int, discussion_id: int, content: str) -> dict:
    if not content.strip():
        raise ValidationError("Comment cannot be empty")
    with Session(engine) as session:
        discussion = session.get(Discussion, discussion_id)
        if discussion is None:
            raise NotFoundError("Discussion not found")
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        first_reply = discussion.user_id != user_id and session.scalar(
            select(Comment.id)
            .where(Comment.discussion_id == discussion_id, Comment.user_id == user_id)
            .limit(1)
        ) is None
        comment = Comment(content=content, user_id=user_id, discussion_id=discussion_id)
        session.add(comment)
        session.execute(
            update(User)
            .where(User.id == user_id)
            .values(comments_count=User.comments_count + 1)
            .execution_options(synchronize_session=False)
        )
        session.flush()
        record_activity(session, user_id, "comments_posted")
        if first_reply:
            record_activity(session, user_id, "discussions_joined")
        session.commit()
        return _comment_to_dict(comment)


# ---------------------------------------------------------------------------
# Likes
# ---------------------------------------------------------------------------
_LIKE_TARGETS = {
    LikeTarget.DISCUSSION: (Discussion, "points.discussion_liked"),
    LikeTarget.COMMENT: (Comment, "points.comment_liked"),
}


def _like(engine: Engine, target: LikeTarget, content_id: int, user_id: int) -> dict:
    model, points_key = _LIKE_TARGETS[target]
    label = target.value.capitalize()
    with Session(engine) as session:
        row = session.get(model, content_id)
        if row is None:
            raise NotFoundError(f"{label} not found")
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        author_id = row.user_id

        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(ContentLike(
                    user_id=user_id, content_type=target.value, content_id=content_id,
                ))
                session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"You already liked this {target.value}") from exc

        session.execute(
            update(model)
            .where(model.id == content_id)
            .values(likes=model.likes + 1)
            .execution_options(synchronize_session=False)
        )
        if author_id != user_id:
            award_points(
                session, author_id, get_int_setting(session, points_key),
                reason=f"{target.value}_liked:{content_id}",
            )
            record_activity(session, author_id, "likes_received")
        session.commit()
        session.refresh(row)
        logger.info("User %s liked %s %s", user_id, target.value, content_id)
        if target is LikeTarget.DISCUSSION:
            return _discussion_to_dict(row)
        return _comment_to_dict(row)


def like_discussion(engine: Engine, *, discussion_id: int, user_id: int) -> dict:
    """Like a discussion once.  The author earns ``points.discussion_liked``."""
    return _like(engine, LikeTarget.DISCUSSION, discussion_id, user_id)


def like_comment(engine: Engine, *, comment_id: int, user_id: int) -> dict:
    """Like a comment once.  The author earns ``points.comment_liked``."""
    return _like(engine, LikeTarget.COMMENT, comment_id, user_id)
