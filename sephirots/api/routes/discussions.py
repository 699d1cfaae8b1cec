"""
sephirots.api.routes.discussions — Forum threads, comments, likes & recommendations
=====================================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sephirots.api.deps import get_current_user, get_engine, user_id_of
from sephirots.api.schemas import CommentCreate, DiscussionCreate
from sephirots.services import discussion_service, recommendation_service

router = APIRouter(tags=["discussions"])


@router.get("/discussions")
def list_discussions(category: str | None = Query(None), engine=Depends(get_engine)):
    return {"discussions": discussion_service.list_discussions(engine, category=category)}


@router.get("/discussions/{discussion_id}")
def get_discussion(discussion_id: int, engine=Depends(get_engine)):
    return discussion_service.get_discussion(engine, discussion_id)


@router.post("/discussions", status_code=201)
def create_discussion(
    body: DiscussionCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return discussion_service.create_discussion(
        engine, user_id=user_id_of(user), title=body.title,
        content=body.content, category=body.category, tags=body.tags,
    )


@router.post("/comments", status_code=201)
def create_comment(
    body: CommentCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return discussion_service.create_comment(
        engine, user_id=user_id_of(user),
        discussion_id=body.discussion_id, content=body.content,
    )


@router.post("/discussions/{discussion_id}/like")
def like_discussion(
    discussion_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return discussion_service.like_discussion(
        engine, discussion_id=discussion_id, user_id=user_id_of(user),
    )


@router.post("/comments/{comment_id}/like")
def like_comment(
    comment_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return discussion_service.like_comment(
        engine, comment_id=comment_id, user_id=user_id_of(user),
    )


@router.get("/recommendations")
def recommendations(user: dict = Depends(get_current_user), engine=Depends(get_engine)):
    """Daily insight, practices, discussions and resonant members for the caller."""
    return recommendation_service.get_recommendations(engine, user_id_of(user))
