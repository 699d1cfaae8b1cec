"""
sephirots.api.routes.events — Community events & attendance
=============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sephirots.api.deps import get_current_user, get_engine, user_id_of
from sephirots.api.schemas import EventCreate
from sephirots.services import event_service

router = APIRouter(prefix="/events", tags=["events"])


@router.get("")
def list_events(upcoming: bool = Query(False), engine=Depends(get_engine)):
    return {"events": event_service.list_events(engine, upcoming_only=upcoming)}


@router.post("", status_code=201)
def create_event(
    body: EventCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return event_service.create_event(
        engine, user_id=user_id_of(user), title=body.title, starts_at=body.starts_at,
        description=body.description, category=body.category,
    )


@router.post("/{event_id}/attend")
def attend_event(
    event_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Register the caller for an event (once) and award attendance points."""
    return event_service.attend_event(engine, event_id=event_id, user_id=user_id_of(user))
