"""
sephirots.api.routes.badges — Badge catalog, progress & admin grants
======================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sephirots.api.deps import get_current_admin, get_current_user, get_engine, user_id_of
from sephirots.api.schemas import BadgeCreate, BadgeGrant
from sephirots.services import admin_service, badge_service

router = APIRouter(tags=["badges"])


@router.get("/badges")
def list_badges(engine=Depends(get_engine)):
    return {"badges": badge_service.list_badges(engine)}


@router.get("/badge-progress")
def badge_progress(user: dict = Depends(get_current_user), engine=Depends(get_engine)):
    return {"progress": badge_service.get_badge_progress(engine, user_id_of(user))}


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
@router.post("/admin/badges", status_code=201)
def create_badge(
    body: BadgeCreate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    badge = admin_service.create_badge(
        engine, actor_id=user_id_of(admin), **body.model_dump(),
    )
    return badge_service.badge_to_dict(badge)


@router.post("/admin/badges/{badge_id}/grant")
def grant_badge(
    badge_id: int,
    body: BadgeGrant,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    awarded = admin_service.grant_badge(
        engine, badge_id=badge_id, user_id=body.user_id, actor_id=user_id_of(admin),
    )
    return {"awarded": awarded}
