"""
sephirots.services.poll_service — Community Polls
===================================================

Quarterly community polls with one vote per member.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sephirots.database.models import Poll, PollOption, PollStatus, PollVote, User
from sephirots.engine.governance import poll_percentages
from sephirots.services.errors import ConflictError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2


def _aware(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def _quarter_year(now: datetime) -> str:
    return f"Q{(now.month - 1) // 3 + 1}-{now.year}"


def _poll_to_dict(poll: Poll, my_vote: PollVote | None) -> dict:
    results = poll_percentages(poll.options)
    return {
        "id": poll.id,
        "title": poll.title,
        "description": poll.description,
        "category": poll.category,
        "status": poll.status,
        "createdBy": poll.created_by,
        "options": [
            {
                "id": r.option_id,
                "text": r.text,
                "voteCount": r.vote_count,
                "percentage": r.percentage,
            }
            for r in results
        ],
        "totalVotes": sum(r.vote_count for r in results),
        "hasVoted": my_vote is not None,
        "userVoteOptionId": my_vote.option_id if my_vote else None,
        "endsAt": poll.ends_at.isoformat() if poll.ends_at else None,
        "quarterYear": poll.quarter_year,
    }


def list_polls(engine: Engine, *, status: str | None = None, user_id: int | None = None) -> list[dict]:
    with Session(engine) as session:
        stmt = select(Poll).order_by(Poll.created_at.desc(), Poll.id.desc())
        if status is not None:
            stmt = stmt.where(Poll.status == status)
        polls = session.scalars(stmt).all()

        mine: dict[int, PollVote] = {}
        if user_id is not None:
            mine = {
                v.poll_id: v
                for v in session.scalars(select(PollVote).where(PollVote.user_id == user_id))
            }
        return [_poll_to_dict(p, mine.get(p.id)) for p in polls]


def create_poll(
    engine: Engine,
    *,
    user_id: int,
    title: str,
    options: list[str],
    description: str = "",
    category: str = "general",
    ends_at: datetime | None = None,
    now: datetime | None = None,
) -> dict:
    now = now or datetime.now(UTC)
    cleaned = [o.strip() for o in options if o and o.strip()]
    if len(cleaned) < MIN_OPTIONS:
        raise ValidationError(f"A poll needs at least {MIN_OPTIONS} options")
    if len(set(cleaned)) != len(cleaned):
        raise ValidationError("Poll options must be unique")
    if ends_at is not None and _aware(ends_at) <= now:
        raise ValidationError("A poll must end in the future")

    with Session(engine) as session:
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        poll = Poll(
            title=title,
            description=description,
            category=category,
            created_by=user_id,
            ends_at=ends_at,
            quarter_year=_quarter_year(now),
            options=[PollOption(text=text, position=i) for i, text in enumerate(cleaned)],
        )
        session.add(poll)
        session.commit()
        logger.info("User %s created poll %s %r", user_id, poll.id, title)
        return _poll_to_dict(poll, None)


def vote_on_poll(
    engine: Engine, *, poll_id: int, user_id: int, option_id: int, now: datetime | None = None,
) -> dict:
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        poll = session.get(Poll, poll_id)
        if poll is None:
            raise NotFoundError("Poll not found")
        if poll.status != PollStatus.ACTIVE:
            raise ValidationError("This poll is closed")
        ends_at = _aware(poll.ends_at)
        if ends_at is not None and ends_at <= now:
            raise ValidationError("This poll has ended")
        if not any(o.id == option_id for o in poll.options):
            raise ValidationError("Option does not belong to this poll")

        try:
            with session.begin_nested():   # SAVEPOINT
                vote = PollVote(poll_id=poll_id, option_id=option_id, user_id=user_id)
                session.add(vote)
                session.flush()
        except IntegrityError as exc:
            raise ConflictError("You have already voted in this poll") from exc

        session.execute(
            update(PollOption)
            .where(PollOption.id == option_id)
            .values(vote_count=PollOption.vote_count + 1)
            .execution_options(synchronize_session=False)
        )
        session.commit()
        logger.info("User %s voted on poll %s", user_id, poll_id)
        session.refresh(poll)
        return _poll_to_dict(poll, vote)
