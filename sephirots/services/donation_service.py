"""
sephirots.services.donation_service — Donations via Stripe
============================================================

Creates pending donation records, asks Stripe for a Checkout Session or a
PaymentIntent over its REST API, and on completion awards the tier's
supporter badge.  Completion is idempotent: a donation that already
succeeded is returned unchanged, and the badge award itself is idempotent.

Requires ``STRIPE_SECRET_KEY``.  Without it every payment call raises
:class:`PaymentsUnavailableError` (HTTP 503) and nothing is written.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from sephirots.database.models import Donation, DonationStatus, User
from sephirots.engine.donations import DonationTier, find_tier, tier_for_amount
from sephirots.services.badge_service import award_badge_by_name
from sephirots.services.errors import (
    ConflictError,
    NotFoundError,
    PaymentsUnavailableError,
    ValidationError,
)
from sephirots.services.settings_service import get_donation_tiers

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

STRIPE_API = "https://api.stripe.com/v1"


def _stripe_key() -> str:
    key = os.getenv("STRIPE_SECRET_KEY", "")
    if not key:
        raise PaymentsUnavailableError("Payments are not configured on this server")
    return key


def _error_message(resp: httpx.Response) -> str:
    """Stripe's error message, or a generic one for non-JSON bodies (proxies)."""
    try:
        body = resp.json()
    except ValueError:
        return "Payment provider error"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return "Payment provider error"


def _stripe_post(path: str, data: dict, *, client: httpx.Client | None = None) -> dict:
    """POST form-encoded *data* to the Stripe API and return the JSON body."""
    key = _stripe_key()
    own_client = client is None
    if own_client:
        client = httpx.Client(timeout=10, transport=httpx.HTTPTransport(retries=1))
    try:
        resp = client.post(f"{STRIPE_API}{path}", data=data, auth=(key, ""))
    except httpx.HTTPError as exc:
        logger.error("Stripe request %s failed: %s", path, exc)
        raise PaymentsUnavailableError("Payment provider unreachable") from exc
    finally:
        if own_client:
            client.close()

    if resp.status_code != 200:
        message = _error_message(resp)
        logger.error("Stripe %s returned %s: %s", path, resp.status_code, message)
        raise PaymentsUnavailableError(message)
    try:
        return resp.json()
    except ValueError as exc:
        logger.error("Stripe %s returned a non-JSON body", path)
        raise PaymentsUnavailableError("Payment provider error") from exc


def tier_to_dict(tier: DonationTier) -> dict:
    return {
        "id": tier.slug,
        "name": tier.name,
        "badgeName": tier.badge_name,
        "suggestedAmountsCents": list(tier.suggested_amounts_cents),
        "minimumCents": tier.minimum_cents,
    }


def list_tiers(engine: Engine) -> list[dict]:
    with Session(engine) as session:
        return [tier_to_dict(t) for t in get_donation_tiers(session)]


def _resolve(session: Session, tier_slug: str, amount_cents: int | None) -> tuple[DonationTier, int]:
    tier = find_tier(tier_slug, get_donation_tiers(session))
    if tier is None:
        raise ValidationError(f"Unknown donation tier {tier_slug!r}")
    amount = tier.minimum_cents if amount_cents is None else amount_cents
    if amount < tier.minimum_cents:
        raise ValidationError(
            f"{tier.name} donations start at {tier.minimum_cents / 100:.2f}"
        )
    return tier, amount


def _create_pending(
    engine: Engine, *, user_id: int | None, tier_slug: str, amount_cents: int | None, currency: str,
) -> tuple[int, DonationTier, int]:
    with Session(engine) as session:
        tier, amount = _resolve(session, tier_slug, amount_cents)
        if user_id is not None and session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        donation = Donation(
            user_id=user_id, tier=tier.slug, amount_cents=amount, currency=currency,
        )
        session.add(donation)
        session.commit()
        return donation.id, tier, amount


def _attach_session_id(engine: Engine, donation_id: int, session_id: str) -> None:
    with Session(engine) as session:
        donation = session.get(Donation, donation_id)
        donation.checkout_session_id = session_id
        session.commit()


def create_checkout_session(
    engine: Engine,
    *,
    user_id: int | None,
    tier_slug: str,
    success_url: str,
    cancel_url: str,
    amount_cents: int | None = None,
    currency: str = "usd",
    client: httpx.Client | None = None,
) -> dict:
    """Start a hosted Stripe Checkout for a tier donation.

    Returns ``{"sessionId", "url", "donationId"}``.
    """
    _stripe_key()
    donation_id, tier, amount = _create_pending(
        engine, user_id=user_id, tier_slug=tier_slug, amount_cents=amount_cents, currency=currency,
    )
    body = _stripe_post("/checkout/sessions", {
        "mode": "payment",
        "success_url": success_url,
        "cancel_url": cancel_url,
        "line_items[0][quantity]": 1,
        "line_items[0][price_data][currency]": currency,
        "line_items[0][price_data][unit_amount]": amount,
        "line_items[0][price_data][product_data][name]": f"{tier.name} Donation",
        "metadata[donation_id]": donation_id,
        "metadata[tier]": tier.slug,
    }, client=client)

    _attach_session_id(engine, donation_id, body["id"])
    logger.info("Checkout session %s opened for donation %s (%s)", body["id"], donation_id, tier.slug)
    return {"sessionId": body["id"], "url": body.get("url"), "donationId": donation_id}


def create_donation_intent(
    engine: Engine,
    *,
    user_id: int | None,
    tier_slug: str,
    amount_cents: int | None = None,
    currency: str = "usd",
    client: httpx.Client | None = None,
) -> dict:
    """Create a PaymentIntent for an embedded payment form.

    Returns ``{"clientSecret", "donationId"}``.
    """
    _stripe_key()
    donation_id, tier, amount = _create_pending(
        engine, user_id=user_id, tier_slug=tier_slug, amount_cents=amount_cents, currency=currency,
    )
    body = _stripe_post("/payment_intents", {
        "amount": amount,
        "currency": currency,
        "metadata[donation_id]": donation_id,
        "metadata[tier]": tier.slug,
    }, client=client)

    _attach_session_id(engine, donation_id, body["id"])
    logger.info("Payment intent %s created for donation %s (%s)", body["id"], donation_id, tier.slug)
    return {"clientSecret": body["client_secret"], "donationId": donation_id}


def complete_donation(
    engine: Engine,
    *,
    donation_id: int | None = None,
    checkout_session_id: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Mark a donation succeeded and award its tier badge (idempotent)."""
    if donation_id is None and checkout_session_id is None:
        raise ValidationError("donation_id or checkout_session_id is required")
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        if donation_id is not None:
            donation = session.get(Donation, donation_id)
        else:
            donation = session.scalar(
                select(Donation).where(Donation.checkout_session_id == checkout_session_id)
            )
        if donation is None:
            raise NotFoundError("Donation not found")
        if donation.status == DonationStatus.FAILED:
            raise ConflictError("Donation failed and cannot be completed")

        badge_awarded = False
        if donation.status != DonationStatus.SUCCEEDED:
            donation.status = DonationStatus.SUCCEEDED
            donation.completed_at = now
            tiers = get_donation_tiers(session)
            tier = find_tier(donation.tier or "", tiers) or tier_for_amount(donation.amount_cents, tiers)
            if donation.user_id is not None and tier is not None:
                badge_awarded = award_badge_by_name(session, donation.user_id, tier.badge_name)
            logger.info(
                "Donation %s succeeded (%s, %d cents)",
                donation.id, donation.tier, donation.amount_cents,
            )
        session.commit()

        return {
            "id": donation.id,
            "status": donation.status,
            "tier": donation.tier,
            "amountCents": donation.amount_cents,
            "badgeAwarded": badge_awarded,
        }
