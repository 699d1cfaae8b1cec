"""
sephirots.api.auth — Bearer identity
======================================

Sign-in itself is out of scope for this backend; tokens are issued by an
upstream identity provider sharing ``JWT_SECRET``.  For local development
``POST /auth/dev-login`` mints a token for any username, and only exists
when ``ALLOW_DEV_LOGIN=1``.
"""

from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from sephirots.api.deps import get_current_user, get_engine, issue_token, user_id_of
from sephirots.services.user_service import get_or_create_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


class DevLoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(min_length=1, max_length=64)
    display_name: str | None = Field(default=None, alias="displayName")
    is_admin: bool = Field(default=False, alias="isAdmin")


def dev_login_enabled() -> bool:
    return os.getenv("ALLOW_DEV_LOGIN", "0").strip() == "1"


@router.post("/dev-login")
def dev_login(body: DevLoginRequest, engine=Depends(get_engine)):
    """Issue a token for *username*, creating the member on first login."""
    if not dev_login_enabled():
        raise HTTPException(404, "Not Found")
    with Session(engine) as session:
        user = get_or_create_user(session, body.username, body.display_name)
        session.commit()
        user_id, username = user.id, user.username
    logger.warning("Dev login issued for %s (admin=%s)", username, body.is_admin)
    return {
        "token": issue_token(user_id, username, is_admin=body.is_admin),
        "userId": user_id,
    }


@router.get("/me")
def me(user: dict = Depends(get_current_user)):
    """Return the current authenticated member's token claims."""
    return {
        "id": user_id_of(user),
        "username": user.get("username", "Unknown"),
        "isAdmin": bool(user.get("is_admin")),
    }
