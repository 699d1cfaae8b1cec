"""
sephirots.services.settings_service — Settings Reads & Audited Writes
=======================================================================

Typed read/write access to the ``settings`` table, plus helpers that decode
the settings the engine consumes (tier thresholds, donation tiers, point
awards).
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from sephirots.database.models import AdminActionType, AdminLog, Setting
from sephirots.database.seed import DEFAULT_DONATION_TIERS, DEFAULT_SETTINGS
from sephirots.engine.donations import DonationTier, parse_tiers
from sephirots.engine.points import DEFAULT_TIER_THRESHOLDS, validate_thresholds
from sephirots.services.errors import ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_setting_value(session: Session, key: str, default=None):
    """Read a single setting's parsed value from an existing session.

    Parameters
    ----------
    session : Session
        An open SQLAlchemy session.
    key : str
        The setting key to look up.
    default
        Returned when the key does not exist.

    Returns
    -------
    The JSON-decoded value, or *default*.
    """
    row = session.get(Setting, key)
    if row is None:
        return default
    try:
        return json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        return row.value_json


def get_int_setting(session: Session, key: str) -> int:
    """Read an integer setting, falling back to its seeded default."""
    default = DEFAULT_SETTINGS[key][0]
    value = get_setting_value(session, key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Setting %s has non-integer value %r; using %r", key, value, default)
        return int(default)


def get_tier_thresholds(session: Session) -> tuple[int, ...]:
    """Points-tier table from settings, or the default table if it's invalid."""
    raw = get_setting_value(session, "points.tier_thresholds", list(DEFAULT_TIER_THRESHOLDS))
    try:
        return validate_thresholds(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Invalid points.tier_thresholds (%s); using defaults", exc)
        return DEFAULT_TIER_THRESHOLDS


def get_donation_tiers(session: Session) -> list[DonationTier]:
    raw = get_setting_value(session, "donations.tiers", DEFAULT_DONATION_TIERS)
    try:
        return parse_tiers(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Invalid donations.tiers (%s); using defaults", exc)
        return parse_tiers(DEFAULT_DONATION_TIERS)


def get_all_settings(engine) -> list[dict]:
    """Every setting, ordered by category then key, with decoded values."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Setting).order_by(Setting.category, Setting.key)
        ).all()
        return [
            {
                "key": r.key,
                "value": json.loads(r.value_json),
                "category": r.category,
                "description": r.description,
            }
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

# Settings whose values must pass engine validation before being stored
_VALIDATORS = {
    "points.tier_thresholds": validate_thresholds,
    "donations.tiers": parse_tiers,
}


def bulk_upsert(engine, settings: list[dict], *, actor_id: int) -> int:
    """Upsert many settings at once, auditing every change.

    Each dict needs ``key`` and ``value``; ``category`` and ``description``
    are optional.  Each change is recorded in ``admin_log`` with before/after
    snapshots.

    Raises
    ------
    ValidationError
        If a value fails validation for its key (nothing is written).

    Returns the number of rows touched.
    """
    for item in settings:
        validator = _VALIDATORS.get(item["key"])
        if validator is not None:
            try:
                validator(item["value"])
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"Invalid value for {item['key']}: {exc}") from exc

    count = 0
    with Session(engine) as session:
        for item in settings:
            key = item["key"]
            value_json = json.dumps(item["value"])
            existing = session.get(Setting, key)

            before_snapshot: dict | None = None
            if existing:
                before_snapshot = {
                    "key": existing.key,
                    "value": json.loads(existing.value_json) if existing.value_json else None,
                    "category": existing.category,
                    "description": existing.description,
                }
                existing.value_json = value_json
                if "category" in item:
                    existing.category = item["category"]
                if "description" in item:
                    existing.description = item["description"]
            else:
                existing = Setting(
                    key=key,
                    value_json=value_json,
                    category=item.get("category", "general"),
                    description=item.get("description"),
                )
                session.add(existing)

            after_snapshot = {
                "key": key,
                "value": item["value"],
                "category": existing.category,
                "description": existing.description,
            }
            # Only log if something actually changed
            if before_snapshot != after_snapshot:
                session.add(AdminLog(
                    actor_id=actor_id,
                    action_type=(
                        AdminActionType.UPDATE if before_snapshot else AdminActionType.CREATE
                    ),
                    target_table="settings",
                    target_id=key,
                    before_snapshot=before_snapshot,
                    after_snapshot=after_snapshot,
                ))
            count += 1
        session.commit()

    logger.info("Admin %s updated %d settings", actor_id, count)
    return count
