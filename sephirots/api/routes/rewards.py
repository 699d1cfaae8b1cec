"""
sephirots.api.routes.rewards — Reward catalog & redemption
============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sephirots.api.deps import get_current_user, get_engine, get_optional_user, user_id_of
from sephirots.services import reward_service

router = APIRouter(tags=["rewards"])


@router.get("/rewards")
def list_rewards(
    category: str | None = Query(None),
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    """Catalog, with affordability flags when the caller is signed in."""
    return {
        "categories": reward_service.list_categories(),
        "rewards": reward_service.list_rewards(
            engine, category=category, user_id=user_id_of(user) if user else None,
        ),
    }


@router.post("/rewards/{reward_id}/redeem")
def redeem_reward(
    reward_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return reward_service.redeem_reward(engine, user_id_of(user), reward_id)
