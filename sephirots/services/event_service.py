"""
sephirots.services.event_service — Community Events & Attendance
==================================================================

Members announce gatherings and register to attend.  Registration is once
per member per event (``event_attendees`` primary key) and pays
``points.attend_event``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sephirots.database.models import Event, EventAttendee, User
from sephirots.services.activity_service import record_activity
from sephirots.services.errors import ConflictError, NotFoundError, ValidationError
from sephirots.services.settings_service import get_int_setting
from sephirots.services.user_service import award_points

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def event_to_dict(event: Event) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "startsAt": _aware(event.starts_at).isoformat(),
        "category": event.category,
        "createdBy": event.created_by,
        "attendees": event.attendees,
    }


def list_events(
    engine: Engine, *, upcoming_only: bool = False, now: datetime | None = None,
) -> list[dict]:
    """Events in start order, optionally only those not yet started."""
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        stmt = select(Event).order_by(Event.starts_at, Event.id)
        if upcoming_only:
            stmt = stmt.where(Event.starts_at >= now)
        return [event_to_dict(e) for e in session.scalars(stmt)]


def create_event(
    engine: Engine,
    *,
    user_id: int,
    title: str,
    starts_at: datetime,
    description: str = "",
    category: str = "gathering",
    now: datetime | None = None,
) -> dict:
    now = now or datetime.now(UTC)
    if _aware(starts_at) <= now:
        raise ValidationError("Events must start in the future")
    with Session(engine) as session:
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        event = Event(
            title=title, description=description, starts_at=starts_at,
            category=category, created_by=user_id,
        )
        session.add(event)
        session.commit()
        logger.info("User %s announced event %s %r", user_id, event.id, title)
        return event_to_dict(event)


def attend_event(engine: Engine, *, event_id: int, user_id: int) -> dict:
    """Register *user_id* for an event once and award attendance points."""
    with Session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")

        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(EventAttendee(event_id=event_id, user_id=user_id))
                session.flush()
        except IntegrityError as exc:
            raise ConflictError("You are already attending this event") from exc

        session.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(attendees=Event.attendees + 1)
            .execution_options(synchronize_session=False)
        )
        award_points(
            session, user_id, get_int_setting(session, "points.attend_event"),
            reason=f"event:{event_id}",
        )
        record_activity(session, user_id, "events_attended")
        session.commit()
        session.refresh(event)
        logger.info("User %s is attending event %s", user_id, event_id)
        return event_to_dict(event)
