"""
sephirots.engine.donations — Donation Tier Table
==================================================

Donation tiers map an amount to the supporter badge it earns.  The table is
stored in the ``donations.tiers`` setting so amounts can be changed without
a deploy.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DonationTier:
    slug: str
    name: str
    badge_name: str
    suggested_amounts_cents: tuple[int, ...]

    @property
    def minimum_cents(self) -> int:
        """Smallest suggested amount; donating at least this earns the tier."""
        return min(self.suggested_amounts_cents)


def parse_tiers(raw: Iterable[dict]) -> list[DonationTier]:
    """Build tiers from the JSON setting value.

    Raises
    ------
    ValueError
        If an entry is missing a field or has no positive suggested amount.
    """
    tiers = []
    for entry in raw:
        try:
            amounts = tuple(int(a) for a in entry["suggested_amounts_cents"])
            tier = DonationTier(
                slug=str(entry["slug"]),
                name=str(entry["name"]),
                badge_name=str(entry["badge_name"]),
                suggested_amounts_cents=amounts,
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed donation tier {entry!r}: {exc}") from exc
        if not amounts or min(amounts) <= 0:
            raise ValueError(f"Donation tier {tier.slug!r} needs a positive amount")
        tiers.append(tier)
    return tiers


def find_tier(slug: str, tiers: Sequence[DonationTier]) -> DonationTier | None:
    return next((t for t in tiers if t.slug == slug), None)


def tier_for_amount(amount_cents: int, tiers: Sequence[DonationTier]) -> DonationTier | None:
    """Highest tier whose minimum is ≤ *amount_cents*, or ``None``."""
    eligible = [t for t in tiers if t.minimum_cents <= amount_cents]
    if not eligible:
        return None
    return max(eligible, key=lambda t: t.minimum_cents)
