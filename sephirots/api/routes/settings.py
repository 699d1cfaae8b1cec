"""
sephirots.api.routes.settings — Gameplay settings
===================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sephirots.api.deps import get_current_admin, get_engine, user_id_of
from sephirots.api.schemas import SettingUpdate
from sephirots.services import settings_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/settings")
def get_all_settings(
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return {"settings": settings_service.get_all_settings(engine)}


@router.put("/settings")
def update_settings(
    body: list[SettingUpdate],
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    items = [
        {
            "key": s.key,
            "value": s.value,
            **({"category": s.category} if s.category else {}),
            **({"description": s.description} if s.description else {}),
        }
        for s in body
    ]
    count = settings_service.bulk_upsert(engine, items, actor_id=user_id_of(admin))
    return {"updated": count}
