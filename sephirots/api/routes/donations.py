"""
sephirots.api.routes.donations — Donation tiers & Stripe payments
===================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sephirots.api.deps import (
    get_config,
    get_current_admin,
    get_engine,
    get_optional_user,
    user_id_of,
)
from sephirots.api.schemas import DonationRequest
from sephirots.config import SephirotsConfig
from sephirots.services import donation_service

router = APIRouter(tags=["donations"])


@router.get("/donation-tiers")
def donation_tiers(engine=Depends(get_engine)):
    return {"tiers": donation_service.list_tiers(engine)}


@router.post("/create-checkout-session")
def create_checkout_session(
    body: DonationRequest,
    user: dict | None = Depends(get_optional_user),
    cfg: SephirotsConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    """Anonymous donations are allowed; signed-in donors earn the tier badge."""
    base = (cfg.frontend_url or "").rstrip("/")
    return donation_service.create_checkout_session(
        engine,
        user_id=user_id_of(user) if user else None,
        tier_slug=body.tier_id,
        amount_cents=body.amount_cents,
        currency=cfg.currency,
        success_url=f"{base}/donate?status=success&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base}/donate?status=cancelled",
    )


@router.post("/create-donation-intent")
def create_donation_intent(
    body: DonationRequest,
    user: dict | None = Depends(get_optional_user),
    cfg: SephirotsConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    return donation_service.create_donation_intent(
        engine,
        user_id=user_id_of(user) if user else None,
        tier_slug=body.tier_id,
        amount_cents=body.amount_cents,
        currency=cfg.currency,
    )


@router.post("/donations/{donation_id}/complete")
def complete_donation(
    donation_id: int,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return donation_service.complete_donation(engine, donation_id=donation_id)
