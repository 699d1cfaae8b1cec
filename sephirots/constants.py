"""
sephirots.constants — Shared Constants
========================================

Single source of truth for presentation constants shared by the engine,
services, and API serializers.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Badge tier presentation
# ---------------------------------------------------------------------------
TIER_LABELS: dict[str, str] = {
    "bronze": "Bronze",
    "silver": "Silver",
    "gold": "Gold",
    "platinum": "Platinum",
    "founder": "Founder",
}

TIER_COLORS_HEX: dict[str, str] = {
    "bronze": "#cd7f32",
    "silver": "#c0c0c0",
    "gold": "#ffd700",
    "platinum": "#e5e4e2",
    "founder": "#7b3fbf",
}

# ---------------------------------------------------------------------------
# Quest presentation
# ---------------------------------------------------------------------------
QUEST_TYPE_LABELS: dict[str, str] = {
    "daily": "Daily",
    "weekly": "Weekly",
    "onboarding": "Getting Started",
    "achievement": "Achievement",
    "special": "Special Event",
}

# ---------------------------------------------------------------------------
# Reward catalog categories
# ---------------------------------------------------------------------------
REWARD_CATEGORIES: dict[str, tuple[str, str]] = {
    "digital": ("Digital Resources", "Digital spiritual resources to enhance your practice"),
    "physical": ("Physical Items", "Tangible spiritual tools and artifacts"),
    "experiences": ("Spiritual Experiences", "Guided spiritual experiences and sessions"),
    "community": ("Community Perks", "Special access and community benefits"),
}

# ---------------------------------------------------------------------------
# Reactable content
# ---------------------------------------------------------------------------
REACTABLE_CONTENT_TYPES: frozenset[str] = frozenset({"discussion", "comment"})

# ---------------------------------------------------------------------------
# Server-recorded activity counters (quest requirement and badge progress keys)
# ---------------------------------------------------------------------------
ACTIVITY_KEYS: frozenset[str] = frozenset({
    "profile_completed",
    "discussions_joined",
    "comments_posted",
    "reactions_given",
    "likes_received",
    "proposals_created",
    "proposal_votes",
    "amendment_votes",
    "events_attended",
})
