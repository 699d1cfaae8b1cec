"""
sephirots.api.routes.quests — Quest board, progress corrections & claims
==========================================================================

Members read their board and claim finished quests.  Progress itself is
recorded by the server as members act; the progress endpoint is an audited
admin correction.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sephirots.api.deps import get_current_admin, get_current_user, get_engine, user_id_of
from sephirots.api.schemas import QuestProgressUpdate
from sephirots.services import quest_service

router = APIRouter(prefix="/quests", tags=["quests"])


@router.get("")
def list_quests(user: dict = Depends(get_current_user), engine=Depends(get_engine)):
    return {"quests": quest_service.list_quests(engine, user_id_of(user))}


@router.post("/{quest_id}/progress")
def update_progress(
    quest_id: int,
    body: QuestProgressUpdate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return quest_service.update_progress(
        engine, body.user_id, quest_id, body.progress, actor_id=user_id_of(admin),
    )


@router.post("/{quest_id}/complete")
def complete_quest(
    quest_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Claim a finished quest's points and badge."""
    return quest_service.complete_quest(engine, user_id_of(user), quest_id)
