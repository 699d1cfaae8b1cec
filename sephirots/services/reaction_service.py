"""
sephirots.services.reaction_service — Cosmic Reaction Toggle
==============================================================

The toggle is an atomic delete-or-insert keyed on
``(user_id, content_type, content_id, emoji_type)``:

1. ``DELETE`` the key.  One row deleted → the reaction was removed.
2. Otherwise ``INSERT`` inside a SAVEPOINT.  A unique-constraint violation
   means a concurrent identical request inserted first; the outcome is the
   same ("added"), so it is not an error.
3. Re-read ``count`` from the table after the write.

Two rapid identical requests therefore net exactly one reaction, and the
client always receives an authoritative count.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sephirots.constants import REACTABLE_CONTENT_TYPES
from sephirots.database.models import (
    Comment,
    CosmicEmojiMetadata,
    CosmicReaction,
    Discussion,
)
from sephirots.engine.reactions import shows_constellation, summarize_reactions
from sephirots.services.activity_service import record_activity
from sephirots.services.errors import NotFoundError, ValidationError
from sephirots.services.user_service import award_points

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

_CONTENT_MODELS = {"discussion": Discussion, "comment": Comment}

ReactionKey = tuple[int, str, int, str]


def _emoji_to_dict(meta: CosmicEmojiMetadata) -> dict:
    return {
        "id": meta.id,
        "emojiType": meta.emoji_type,
        "displayEmoji": meta.display_emoji,
        "tooltip": meta.tooltip,
        "description": meta.description,
        "sephiroticPath": meta.sephirotic_path,
        "pointsGranted": meta.points_granted,
        "animationClass": meta.animation_class,
    }


def list_emoji_metadata(engine: Engine) -> list[dict]:
    with Session(engine) as session:
        rows = session.scalars(select(CosmicEmojiMetadata).order_by(CosmicEmojiMetadata.id))
        return [_emoji_to_dict(m) for m in rows]


def _content_author(session: Session, content_type: str, content_id: int) -> int:
    if content_type not in REACTABLE_CONTENT_TYPES:
        raise ValidationError(f"Cannot react to content type {content_type!r}")
    model = _CONTENT_MODELS[content_type]
    author_id = session.scalar(select(model.user_id).where(model.id == content_id))
    if author_id is None:
        raise NotFoundError(f"{content_type.capitalize()} not found")
    return author_id


def _delete_existing(session: Session, key: ReactionKey) -> int:
    user_id, content_type, content_id, emoji_type = key
    result = session.execute(
        delete(CosmicReaction).where(
            CosmicReaction.user_id == user_id,
            CosmicReaction.content_type == content_type,
            CosmicReaction.content_id == content_id,
            CosmicReaction.emoji_type == emoji_type,
        )
    )
    return result.rowcount


def _count(session: Session, content_type: str, content_id: int, emoji_type: str) -> int:
    return session.scalar(
        select(func.count()).select_from(CosmicReaction).where(
            CosmicReaction.content_type == content_type,
            CosmicReaction.content_id == content_id,
            CosmicReaction.emoji_type == emoji_type,
        )
    )


def toggle_reaction(
    engine: Engine, *, user_id: int, content_type: str, content_id: int, emoji_id: int,
) -> dict:
    """Toggle one reaction and return ``{"added"|"removed": True, "count": n}``.

    On a fresh add, the content's author (not the reactor) earns the
    emoji's ``points_granted``.
    """
    with Session(engine) as session:
        meta = session.get(CosmicEmojiMetadata, emoji_id)
        if meta is None:
            raise NotFoundError("Unknown cosmic emoji")
        emoji_type = meta.emoji_type
        points_granted = meta.points_granted
        author_id = _content_author(session, content_type, content_id)
        key: ReactionKey = (user_id, content_type, content_id, emoji_type)

        if _delete_existing(session, key):
            session.commit()
            count = _count(session, content_type, content_id, emoji_type)
            logger.info("User %s removed %s from %s:%s", user_id, emoji_type, content_type, content_id)
            return {"removed": True, "count": count}

        inserted = True
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(CosmicReaction(
                    user_id=user_id,
                    content_type=content_type,
                    content_id=content_id,
                    emoji_type=emoji_type,
                ))
                session.flush()
        except IntegrityError:
            # A concurrent identical toggle inserted the row first
            inserted = False

        if inserted and author_id != user_id:
            award_points(session, author_id, points_granted, reason=f"reaction:{emoji_type}")
            record_activity(session, user_id, "reactions_given")
        session.commit()
        count = _count(session, content_type, content_id, emoji_type)

    logger.info("User %s added %s to %s:%s", user_id, emoji_type, content_type, content_id)
    return {"added": True, "count": count}


def get_reactions(
    engine: Engine, content_type: str, content_id: int, user_id: int | None = None,
) -> dict:
    """Per-emoji counts for one piece of content, flagged for *user_id*."""
    if content_type not in REACTABLE_CONTENT_TYPES:
        raise ValidationError(f"Cannot react to content type {content_type!r}")
    with Session(engine) as session:
        rows = session.scalars(
            select(CosmicReaction)
            .where(
                CosmicReaction.content_type == content_type,
                CosmicReaction.content_id == content_id,
            )
            .order_by(CosmicReaction.created_at, CosmicReaction.id)
        ).all()
        metadata = {
            m.emoji_type: m for m in session.scalars(select(CosmicEmojiMetadata))
        }
        summary = summarize_reactions(rows, user_id)

        reactions = []
        for emoji_type, item in summary.items():
            entry = {
                "emojiType": emoji_type,
                "count": item.count,
                "userReacted": item.user_reacted,
            }
            meta = metadata.get(emoji_type)
            if meta is not None:
                entry.update(_emoji_to_dict(meta))
                entry["emojiId"] = entry.pop("id")
            reactions.append(entry)

    return {
        "contentType": content_type,
        "contentId": content_id,
        "reactions": reactions,
        "showConstellation": shows_constellation(summary),
    }
