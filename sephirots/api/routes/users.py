"""
sephirots.api.routes.users — Members, profiles, badges, tiers & point adjustments
===================================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from sephirots.api.deps import get_current_admin, get_current_user, get_engine, user_id_of
from sephirots.api.schemas import PointsAdjust, ProfileUpdate
from sephirots.services import badge_service, user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
def get_me(user: dict = Depends(get_current_user), engine=Depends(get_engine)):
    return user_service.get_user(engine, user_id_of(user))


@router.get("/{user_id}")
def get_user(user_id: int, engine=Depends(get_engine)):
    return user_service.get_user(engine, user_id)


@router.patch("/{user_id}")
def update_profile(
    user_id: int,
    body: ProfileUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Members edit their own profile; admins may edit anyone's."""
    actor_id = user_id_of(user)
    if actor_id != user_id and not user.get("is_admin"):
        raise HTTPException(403, "You can only edit your own profile")
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(400, "No fields to update")
    return user_service.update_profile(engine, user_id, actor_id=actor_id, **fields)


@router.get("/{user_id}/badges")
def get_user_badges(user_id: int, engine=Depends(get_engine)):
    return {"badges": badge_service.get_user_badges(engine, user_id)}


@router.get("/{user_id}/badge-summary")
def get_badge_summary(user_id: int, engine=Depends(get_engine)):
    """Highest tier plus the collection in display order."""
    return badge_service.get_badge_summary(engine, user_id)


@router.get("/{user_id}/tier")
def get_tier(user_id: int, engine=Depends(get_engine)):
    return user_service.get_tier_progress(engine, user_id)


@router.post("/{user_id}/points")
def adjust_points(
    user_id: int,
    body: PointsAdjust,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return user_service.adjust_points(
        engine, user_id=user_id, delta=body.delta,
        actor_id=user_id_of(admin), reason=body.reason,
    )
