"""
sephirots.api.routes.reactions — Cosmic reactions
===================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sephirots.api.deps import get_current_user, get_engine, get_optional_user, user_id_of
from sephirots.api.schemas import ReactionToggle
from sephirots.services import reaction_service

router = APIRouter(tags=["reactions"])


@router.post("/cosmic-reactions/toggle")
def toggle(
    body: ReactionToggle,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Add the reaction if absent, remove it if present."""
    return reaction_service.toggle_reaction(
        engine,
        user_id=user_id_of(user),
        content_type=body.content_type,
        content_id=body.content_id,
        emoji_id=body.emoji_id,
    )


@router.get("/cosmic-reactions/{content_type}/{content_id}")
def get_reactions(
    content_type: str,
    content_id: int,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    return reaction_service.get_reactions(
        engine, content_type, content_id, user_id_of(user) if user else None,
    )


@router.get("/cosmic-emoji-metadata")
def emoji_metadata(engine=Depends(get_engine)):
    return reaction_service.list_emoji_metadata(engine)
