"""
sephirots.services.governance_service — Proposals, Amendments & Rights Agreement
===================================================================================

Community governance: members submit proposals and amendments to the
rights agreement and vote on them once each.  Tallies are bumped with single ``UPDATE`` statements,
then :mod:`sephirots.engine.governance` decides whether the new tally
crosses the threshold.  Point awards come from the ``points.*`` settings.
A proposal's author is paid once, tracked by ``author_rewarded``, however
many times an admin moves it in and out of ``passed``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sephirots.database.models import (
    AdminActionType,
    Amendment,
    AmendmentStatus,
    AmendmentVote,
    Proposal,
    ProposalCategory,
    ProposalStatus,
    RightsAgreement,
    RightsAgreementStatus,
    User,
    Vote,
)
from sephirots.engine.governance import (
    awards_author,
    is_voting_open,
    resolve_amendment_status,
    resolve_proposal_status,
)
from sephirots.services.activity_service import record_activity
from sephirots.services.admin_service import _log_admin_action, _row_to_dict
from sephirots.services.errors import ConflictError, NotFoundError, ValidationError
from sephirots.services.settings_service import get_int_setting
from sephirots.services.user_service import award_points

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# Fields an admin may change through PATCH /proposals/{id}
_EDITABLE_FIELDS = frozenset({
    "title", "description", "category", "status", "votes_required",
    "voting_ends_at", "implementation_details",
})


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def proposal_to_dict(p: Proposal, *, votes: list[Vote] | None = None) -> dict:
    data = {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "category": p.category,
        "status": p.status,
        "proposedBy": p.proposed_by,
        "votesRequired": p.votes_required,
        "votesFor": p.votes_for,
        "votesAgainst": p.votes_against,
        "votingEndsAt": _iso(p.voting_ends_at),
        "implementationDetails": p.implementation_details,
        "createdAt": _iso(p.created_at),
    }
    if votes is not None:
        data["votes"] = [
            {"userId": v.user_id, "vote": v.vote, "reason": v.reason, "createdAt": _iso(v.created_at)}
            for v in votes
        ]
    return data


def amendment_to_dict(a: Amendment) -> dict:
    return {
        "id": a.id,
        "title": a.title,
        "content": a.content,
        "proposedBy": a.proposed_by,
        "agreementId": a.agreement_id,
        "agreementVersion": a.agreement_version,
        "status": a.status,
        "votesFor": a.votes_for,
        "votesAgainst": a.votes_against,
        "createdAt": _iso(a.created_at),
    }


def _require_user(session: Session, user_id: int) -> None:
    if session.get(User, user_id) is None:
        raise NotFoundError("User not found")


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------

def _pay_author(session: Session, proposal: Proposal) -> bool:
    """Pay the author unless an earlier transition already did."""
    claimed = session.execute(
        update(Proposal)
        .where(Proposal.id == proposal.id, Proposal.author_rewarded.is_(False))
        .values(author_rewarded=True)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        logger.info("Proposal %s author was already rewarded", proposal.id)
        return False
    proposal.author_rewarded = True
    award_points(
        session, proposal.proposed_by,
        get_int_setting(session, "points.proposal_passed"),
        reason=f"proposal_passed:{proposal.id}",
    )
    return True


def list_proposals(engine: Engine, *, status: str | None = None) -> list[dict]:
    with Session(engine) as session:
        stmt = select(Proposal).order_by(Proposal.created_at.desc(), Proposal.id.desc())
        if status is not None:
            stmt = stmt.where(Proposal.status == status)
        return [proposal_to_dict(p) for p in session.scalars(stmt)]


def get_proposal(engine: Engine, proposal_id: int) -> dict:
    with Session(engine) as session:
        proposal = session.get(Proposal, proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal not found")
        return proposal_to_dict(proposal, votes=list(proposal.votes))


def create_proposal(
    engine: Engine,
    *,
    user_id: int,
    title: str,
    description: str,
    category: str = ProposalCategory.OTHER,
    votes_required: int | None = None,
    voting_ends_at: datetime | None = None,
    now: datetime | None = None,
) -> dict:
    """Open a proposal for voting and reward the author."""
    now = now or datetime.now(UTC)
    try:
        category = ProposalCategory(category)
    except ValueError as exc:
        raise ValidationError(f"Unknown proposal category {category!r}") from exc

    with Session(engine) as session:
        _require_user(session, user_id)
        if votes_required is None:
            votes_required = get_int_setting(session, "governance.default_votes_required")
        if votes_required <= 0:
            raise ValidationError("votes_required must be positive")
        if voting_ends_at is None:
            days = get_int_setting(session, "governance.voting_period_days")
            voting_ends_at = now + timedelta(days=days)

        proposal = Proposal(
            title=title,
            description=description,
            category=category,
            status=ProposalStatus.ACTIVE,
            proposed_by=user_id,
            votes_required=votes_required,
            voting_ends_at=voting_ends_at,
        )
        session.add(proposal)
        session.flush()
        award_points(
            session, user_id, get_int_setting(session, "points.create_proposal"),
            reason=f"proposal:{proposal.id}",
        )
        record_activity(session, user_id, "proposals_created", now=now)
        session.commit()
        logger.info("User %s opened proposal %s %r", user_id, proposal.id, title)
        return proposal_to_dict(proposal)


def vote_on_proposal(
    engine: Engine,
    *,
    proposal_id: int,
    user_id: int,
    vote: bool,
    reason: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Cast one vote.  A second vote by the same user raises ConflictError."""
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        proposal = session.get(Proposal, proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal not found")
        _require_user(session, user_id)
        if proposal.status != ProposalStatus.ACTIVE:
            raise ValidationError("Voting is only allowed on active proposals")
        if not is_voting_open(proposal.status, proposal.voting_ends_at, now):
            raise ValidationError("The voting period for this proposal has ended")

        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(Vote(proposal_id=proposal_id, user_id=user_id, vote=vote, reason=reason))
                session.flush()
        except IntegrityError as exc:
            raise ConflictError("You have already voted on this proposal") from exc

        column = Proposal.votes_for if vote else Proposal.votes_against
        session.execute(
            update(Proposal)
            .where(Proposal.id == proposal_id)
            .values({column: column + 1})
            .execution_options(synchronize_session=False)
        )
        session.refresh(proposal)

        old_status = proposal.status
        new_status = resolve_proposal_status(
            proposal.votes_for, proposal.votes_against, proposal.votes_required, old_status,
        )
        award_points(
            session, user_id, get_int_setting(session, "points.vote_proposal"),
            reason=f"vote:{proposal_id}",
        )
        record_activity(session, user_id, "proposal_votes", now=now)
        if new_status != old_status:
            proposal.status = new_status
            logger.info("Proposal %s moved %s → %s", proposal_id, old_status, new_status)
            if awards_author(old_status, new_status):
                _pay_author(session, proposal)

        session.commit()
        logger.info("User %s voted %s on proposal %s", user_id, "for" if vote else "against", proposal_id)
        return proposal_to_dict(proposal)


def update_proposal(engine: Engine, proposal_id: int, *, actor_id: int, **fields) -> dict:
    """Admin edit of a proposal, audited.  A move to passed/implemented pays
    the author exactly as a deciding vote does, and never a second time."""
    unknown = set(fields) - _EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot edit fields: {sorted(unknown)}")
    if "status" in fields:
        try:
            fields["status"] = ProposalStatus(fields["status"])
        except ValueError as exc:
            raise ValidationError(f"Unknown status {fields['status']!r}") from exc
    if "category" in fields:
        try:
            fields["category"] = ProposalCategory(fields["category"])
        except ValueError as exc:
            raise ValidationError(f"Unknown category {fields['category']!r}") from exc

    with Session(engine) as session:
        proposal = session.get(Proposal, proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal not found")
        before = _row_to_dict(proposal)
        old_status = proposal.status
        for key, value in fields.items():
            setattr(proposal, key, value)
        session.flush()

        if awards_author(old_status, proposal.status):
            _pay_author(session, proposal)
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=(
                AdminActionType.STATUS_CHANGE if proposal.status != old_status
                else AdminActionType.UPDATE
            ),
            target_table="proposals",
            target_id=str(proposal_id),
            before=before,
            after=_row_to_dict(proposal),
        )
        session.commit()
        return proposal_to_dict(proposal)


# ---------------------------------------------------------------------------
# Amendments
# ---------------------------------------------------------------------------

def create_amendment(
    engine: Engine,
    *,
    user_id: int,
    title: str,
    content: str,
    agreement_id: int | None = None,
    agreement_version: str | None = None,
) -> dict:
    """Propose an amendment.  With *agreement_id*, the amendment is filed
    against that agreement and takes its version."""
    with Session(engine) as session:
        _require_user(session, user_id)
        if agreement_id is not None:
            agreement = session.get(RightsAgreement, agreement_id)
            if agreement is None:
                raise NotFoundError("Rights agreement not found")
            if agreement.status == RightsAgreementStatus.ARCHIVED:
                raise ValidationError("Cannot amend an archived rights agreement")
            agreement_version = agreement.version
        amendment = Amendment(
            title=title, content=content, proposed_by=user_id,
            agreement_id=agreement_id, agreement_version=agreement_version,
        )
        session.add(amendment)
        session.commit()
        logger.info("User %s proposed amendment %s", user_id, amendment.id)
        return amendment_to_dict(amendment)


def vote_on_amendment(engine: Engine, *, amendment_id: int, user_id: int, support: bool) -> dict:
    with Session(engine) as session:
        amendment = session.get(Amendment, amendment_id)
        if amendment is None:
            raise NotFoundError("Amendment not found")
        _require_user(session, user_id)
        if amendment.status != AmendmentStatus.PROPOSED:
            raise ValidationError("Voting is only allowed on proposed amendments")

        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(AmendmentVote(amendment_id=amendment_id, user_id=user_id, support=support))
                session.flush()
        except IntegrityError as exc:
            raise ConflictError("You have already voted on this amendment") from exc

        column = Amendment.votes_for if support else Amendment.votes_against
        session.execute(
            update(Amendment)
            .where(Amendment.id == amendment_id)
            .values({column: column + 1})
            .execution_options(synchronize_session=False)
        )
        session.refresh(amendment)

        new_status = resolve_amendment_status(
            amendment.votes_for, amendment.votes_against,
            get_int_setting(session, "governance.amendment_votes_required"),
            amendment.status,
        )
        if new_status != amendment.status:
            logger.info("Amendment %s moved %s → %s", amendment_id, amendment.status, new_status)
            amendment.status = new_status

        award_points(
            session, user_id, get_int_setting(session, "points.vote_amendment"),
            reason=f"amendment_vote:{amendment_id}",
        )
        record_activity(session, user_id, "amendment_votes")
        session.commit()
        return amendment_to_dict(amendment)


# ---------------------------------------------------------------------------
# Rights agreement
# ---------------------------------------------------------------------------

def agreement_to_dict(agreement: RightsAgreement, *, amendments: list[Amendment] | None = None) -> dict:
    data = {
        "id": agreement.id,
        "title": agreement.title,
        "content": agreement.content,
        "version": agreement.version,
        "status": agreement.status,
        "createdAt": _iso(agreement.created_at),
    }
    if amendments is not None:
        data["amendments"] = [amendment_to_dict(a) for a in amendments]
    return data


def _amendments_for(session: Session, agreement_id: int) -> list[Amendment]:
    return list(session.scalars(
        select(Amendment)
        .where(Amendment.agreement_id == agreement_id)
        .order_by(Amendment.created_at, Amendment.id)
    ))


def get_latest_agreement(engine: Engine) -> dict:
    """The newest agreement that isn't archived, with its amendments."""
    with Session(engine) as session:
        agreement = session.scalar(
            select(RightsAgreement)
            .where(RightsAgreement.status != RightsAgreementStatus.ARCHIVED)
            .order_by(RightsAgreement.created_at.desc(), RightsAgreement.id.desc())
            .limit(1)
        )
        if agreement is None:
            raise NotFoundError("No rights agreement found")
        return agreement_to_dict(agreement, amendments=_amendments_for(session, agreement.id))


def list_agreement_amendments(engine: Engine, agreement_id: int) -> list[dict]:
    with Session(engine) as session:
        if session.get(RightsAgreement, agreement_id) is None:
            raise NotFoundError("Rights agreement not found")
        return [amendment_to_dict(a) for a in _amendments_for(session, agreement_id)]


def create_agreement(
    engine: Engine,
    *,
    actor_id: int,
    title: str,
    content: str,
    version: str,
    status: str = RightsAgreementStatus.DRAFT,
) -> dict:
    """Publish a new agreement version, audited.

    An ``approved`` version archives the previously approved one.
    """
    try:
        status = RightsAgreementStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown agreement status {status!r}") from exc

    with Session(engine) as session:
        agreement = RightsAgreement(title=title, content=content, version=version, status=status)
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(agreement)
                session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Rights agreement version {version!r} already exists") from exc

        if status is RightsAgreementStatus.APPROVED:
            archived = session.execute(
                update(RightsAgreement)
                .where(
                    RightsAgreement.id != agreement.id,
                    RightsAgreement.status == RightsAgreementStatus.APPROVED,
                )
                .values(status=RightsAgreementStatus.ARCHIVED)
                .execution_options(synchronize_session=False)
            )
            if archived.rowcount:
                logger.info("Archived %d earlier approved agreement(s)", archived.rowcount)

        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.CREATE,
            target_table="rights_agreements",
            target_id=str(agreement.id),
            before=None,
            after=_row_to_dict(agreement),
        )
        session.commit()
        logger.info("Admin %s published rights agreement v%s (%s)", actor_id, version, status)
        return agreement_to_dict(agreement, amendments=[])
