"""
sephirots.api.routes.governance — Proposals, rights agreement, amendments & polls
===================================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from sephirots.api.deps import (
    get_current_admin,
    get_current_user,
    get_engine,
    get_optional_user,
    user_id_of,
)
from sephirots.api.schemas import (
    AgreementCreate,
    AmendmentCreate,
    AmendmentVoteBody,
    PollCreate,
    PollVoteBody,
    ProposalCreate,
    ProposalUpdate,
    ProposalVote,
)
from sephirots.services import governance_service, poll_service

router = APIRouter(tags=["governance"])


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------
@router.get("/proposals")
def list_proposals(status: str | None = Query(None), engine=Depends(get_engine)):
    return {"proposals": governance_service.list_proposals(engine, status=status)}


@router.get("/proposals/{proposal_id}")
def get_proposal(proposal_id: int, engine=Depends(get_engine)):
    return governance_service.get_proposal(engine, proposal_id)


@router.post("/proposals", status_code=201)
def create_proposal(
    body: ProposalCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return governance_service.create_proposal(
        engine,
        user_id=user_id_of(user),
        title=body.title,
        description=body.description,
        category=body.category,
        votes_required=body.votes_required,
        voting_ends_at=body.voting_ends_at,
    )


@router.patch("/proposals/{proposal_id}")
def update_proposal(
    proposal_id: int,
    body: ProposalUpdate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(400, "No fields to update")
    return governance_service.update_proposal(
        engine, proposal_id, actor_id=user_id_of(admin), **fields,
    )


@router.post("/proposals/{proposal_id}/vote")
def vote_on_proposal(
    proposal_id: int,
    body: ProposalVote,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return governance_service.vote_on_proposal(
        engine, proposal_id=proposal_id, user_id=user_id_of(user),
        vote=body.vote, reason=body.reason,
    )


# ---------------------------------------------------------------------------
# Amendments
# ---------------------------------------------------------------------------
@router.post("/amendments", status_code=201)
def create_amendment(
    body: AmendmentCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return governance_service.create_amendment(
        engine, user_id=user_id_of(user), title=body.title,
        content=body.content, agreement_id=body.agreement_id,
        agreement_version=body.agreement_version,
    )


@router.post("/amendments/{amendment_id}/vote")
def vote_on_amendment(
    amendment_id: int,
    body: AmendmentVoteBody,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return governance_service.vote_on_amendment(
        engine, amendment_id=amendment_id, user_id=user_id_of(user), support=body.support,
    )


# ---------------------------------------------------------------------------
# Rights agreement
# ---------------------------------------------------------------------------
@router.get("/rights-agreement/latest")
def latest_agreement(engine=Depends(get_engine)):
    return governance_service.get_latest_agreement(engine)


@router.post("/rights-agreement", status_code=201)
def create_agreement(
    body: AgreementCreate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return governance_service.create_agreement(
        engine, actor_id=user_id_of(admin), title=body.title,
        content=body.content, version=body.version, status=body.status,
    )


@router.get("/rights-agreement/{agreement_id}/amendments")
def agreement_amendments(agreement_id: int, engine=Depends(get_engine)):
    return {
        "amendments": governance_service.list_agreement_amendments(engine, agreement_id),
    }


# ---------------------------------------------------------------------------
# Polls
# ---------------------------------------------------------------------------
@router.get("/polls")
def list_polls(
    status: str | None = Query(None),
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    return {
        "polls": poll_service.list_polls(
            engine, status=status, user_id=user_id_of(user) if user else None,
        ),
    }


@router.post("/polls", status_code=201)
def create_poll(
    body: PollCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return poll_service.create_poll(
        engine,
        user_id=user_id_of(user),
        title=body.title,
        options=body.options,
        description=body.description,
        category=body.category,
        ends_at=body.ends_at,
    )


@router.post("/polls/{poll_id}/vote")
def vote_on_poll(
    poll_id: int,
    body: PollVoteBody,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return poll_service.vote_on_poll(
        engine, poll_id=poll_id, user_id=user_id_of(user), option_id=body.option_id,
    )
