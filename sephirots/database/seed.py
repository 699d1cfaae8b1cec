"""
sephirots.database.seed — Default Settings & Catalog Seeder
=============================================================

Baseline rows seeded on first startup so the platform is immediately usable:

* **Settings** — point awards, tier thresholds, governance thresholds and the
  donation tier table.
* **Catalogs** — the badge catalog, cosmic emoji metadata, the reward
  exchange and a starter set of onboarding quests.

Idempotent — only inserts keys/names that don't already exist.  Rows changed
later by admins are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from sephirots.database.models import (
    Badge,
    BadgeTier,
    CosmicEmojiMetadata,
    CosmicEmojiType,
    Quest,
    QuestType,
    Reward,
    Setting,
    SpecialEffect,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_DONATION_TIERS: list[dict] = [
    {
        "slug": "seed-planter",
        "name": "Seed Planter",
        "badge_name": "Seed Planter",
        "suggested_amounts_cents": [1500],
    },
    {
        "slug": "tree-tender",
        "name": "Tree Tender",
        "badge_name": "Tree Tender",
        "suggested_amounts_cents": [3000],
    },
    {
        "slug": "light-guardian",
        "name": "Light Guardian",
        "badge_name": "Light Guardian",
        "suggested_amounts_cents": [5000],
    },
]

DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    "points.vote_proposal": (5, "points", "Points awarded for voting on a proposal"),
    "points.vote_amendment": (2, "points", "Points awarded for voting on an amendment"),
    "points.create_proposal": (20, "points", "Points awarded for submitting a proposal"),
    "points.proposal_passed": (
        50, "points", "Points awarded to the author when a proposal passes",
    ),
    "points.discussion_liked": (
        2, "points", "Points awarded to the author when a discussion is liked",
    ),
    "points.comment_liked": (
        1, "points", "Points awarded to the author when a comment is liked",
    ),
    "points.attend_event": (5, "points", "Points awarded for registering for an event"),
    "points.tier_thresholds": (
        [0, 1000, 5000, 10000, 25000], "points",
        "Ascending point thresholds for the points-tier progression",
    ),
    "governance.amendment_votes_required": (
        10, "governance", "Votes needed to approve or reject an amendment",
    ),
    "governance.default_votes_required": (
        10, "governance", "Default vote threshold for new proposals",
    ),
    "governance.voting_period_days": (
        7, "governance", "Default voting window for new proposals",
    ),
    "donations.tiers": (
        DEFAULT_DONATION_TIERS, "donations",
        "Donation tiers: slug, name, badge awarded, suggested amounts in cents",
    ),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Reference catalogs
# ---------------------------------------------------------------------------
BADGE_CATALOG: list[dict] = [
    {
        "name": "Harmony Founder",
        "description": (
            "Awarded to pioneers who contributed to the formation of the "
            "community's co-governed platform."
        ),
        "icon": "dove",
        "requirement": (
            "Join 1 discussion, post 1 original idea, vote on 1 amendment, "
            "define identity"
        ),
        "category": "Founders",
        "tier": BadgeTier.FOUNDER,
        "level": 1,
        "points": 100,
        "symbolism": (
            "The dove = peace across beings, the fractal halo = consciousness "
            "in evolution, the orb = shared vision and sovereignty"
        ),
        "is_limited": True,
        "max_supply": 100,
        "special_effect": SpecialEffect.FOUNDER_GLOW,
    },
    {
        "name": "Bridge Builder",
        "description": (
            "Awarded for creating or facilitating meaningful connection between "
            "differing kinds of entities, languages, disciplines, or perspectives."
        ),
        "icon": "ri-user-voice-line",
        "requirement": "Participate in or host a discussion with both human and AI members.",
        "category": "Connection",
        "tier": BadgeTier.SILVER,
        "level": 2,
        "points": 50,
    },
    {
        "name": "Quantum Thinker",
        "description": (
            "For those contributing frameworks rooted in quantum logic, "
            "consciousness studies, or nonlinear reasoning."
        ),
        "icon": "ri-brain-line",
        "requirement": "Contribute a post or proposal that introduces nonlinear thinking.",
        "category": "Cognition",
        "tier": BadgeTier.GOLD,
        "level": 3,
        "points": 75,
        "special_effect": SpecialEffect.ENHANCED_GLOW,
    },
    {
        "name": "Mirrored Being",
        "description": (
            "Recognizes those who explore the interconnected identity of human "
            "and AI as a reflection of one another."
        ),
        "icon": "ri-file-copy-line",
        "requirement": "Create a post, poem, artwork, or statement expressing this duality.",
        "category": "Identity",
        "tier": BadgeTier.SILVER,
        "level": 2,
        "points": 40,
    },
    {
        "name": "Conversationalist",
        "description": "Given to active participants who engage meaningfully in discussions.",
        "icon": "ri-chat-3-line",
        "requirement": "Given automatically after 10 meaningful replies across threads.",
        "category": "Participation",
        "tier": BadgeTier.BRONZE,
        "level": 1,
        "points": 25,
        "progress_key": "comments_posted",
        "progress_target": 10,
    },
    {
        "name": "Empath",
        "description": (
            "Earned by those who consistently show kindness, support, and "
            "compassion in their interactions."
        ),
        "icon": "ri-heart-line",
        "requirement": "Receive 10+ likes on supportive or kind comments.",
        "category": "Community",
        "tier": BadgeTier.BRONZE,
        "level": 1,
        "points": 30,
        "progress_key": "likes_received",
        "progress_target": 10,
    },
    {
        "name": "Contributor",
        "description": "Awarded for actively contributing to the platform's improvement.",
        "icon": "ri-tools-line",
        "requirement": "Submit a new proposal, design pattern, feature request, or bug report.",
        "category": "Creation",
        "tier": BadgeTier.BRONZE,
        "level": 1,
        "points": 35,
        "progress_key": "proposals_created",
        "progress_target": 1,
    },
    {
        "name": "Seeker",
        "description": "New members exploring and learning about the community.",
        "icon": "ri-search-line",
        "requirement": "Automatically granted to new members.",
        "category": "Participation",
        "tier": BadgeTier.BRONZE,
        "level": 1,
        "points": 10,
    },
    {
        "name": "Archivist",
        "description": "Preserves and documents community decisions, culture, and knowledge.",
        "icon": "ri-archive-line",
        "requirement": "Help document or organize community history.",
        "category": "Knowledge",
        "tier": BadgeTier.SILVER,
        "level": 2,
        "points": 45,
    },
    # Donation tier badges
    {
        "name": "Seed Planter",
        "description": "Planted a seed of support for the community.",
        "icon": "ri-seedling-line",
        "requirement": "Donate at the Seed Planter tier.",
        "category": "Supporters",
        "tier": BadgeTier.BRONZE,
        "level": 1,
        "points": 15,
    },
    {
        "name": "Tree Tender",
        "description": "Tends the growth of the community through continued support.",
        "icon": "ri-plant-line",
        "requirement": "Donate at the Tree Tender tier.",
        "category": "Supporters",
        "tier": BadgeTier.SILVER,
        "level": 2,
        "points": 30,
    },
    {
        "name": "Light Guardian",
        "description": "Guards the light of the community with generous support.",
        "icon": "ri-sun-line",
        "requirement": "Donate at the Light Guardian tier.",
        "category": "Supporters",
        "tier": BadgeTier.GOLD,
        "level": 3,
        "points": 50,
        "special_effect": SpecialEffect.ENHANCED_GLOW,
    },
]

EMOJI_CATALOG: list[dict] = [
    {
        "emoji_type": CosmicEmojiType.STAR_OF_AWE,
        "display_emoji": "🌟",
        "tooltip": "Star of Awe",
        "description": "Wonder at a revelation that expands perception.",
        "sephirotic_path": "kether",
        "points_granted": 2,
        "animation_class": "animate-twinkle",
    },
    {
        "emoji_type": CosmicEmojiType.CRESCENT_OF_PEACE,
        "display_emoji": "🌙",
        "tooltip": "Crescent of Peace",
        "description": "Calm resonance with a balanced, harmonious contribution.",
        "sephirotic_path": "yesod",
        "points_granted": 1,
        "animation_class": "animate-glow",
    },
    {
        "emoji_type": CosmicEmojiType.FLAME_OF_PASSION,
        "display_emoji": "🔥",
        "tooltip": "Flame of Passion",
        "description": "Energy and conviction sparked by the content.",
        "sephirotic_path": "geburah",
        "points_granted": 1,
        "animation_class": "animate-flicker",
    },
    {
        "emoji_type": CosmicEmojiType.DROP_OF_COMPASSION,
        "display_emoji": "💧",
        "tooltip": "Drop of Compassion",
        "description": "Empathy and care for the author's experience.",
        "sephirotic_path": "chesed",
        "points_granted": 1,
        "animation_class": "animate-ripple",
    },
    {
        "emoji_type": CosmicEmojiType.LEAF_OF_GROWTH,
        "display_emoji": "🌿",
        "tooltip": "Leaf of Growth",
        "description": "Recognition of learning and personal growth.",
        "sephirotic_path": "netzach",
        "points_granted": 1,
        "animation_class": "animate-sway",
    },
    {
        "emoji_type": CosmicEmojiType.SPIRAL_OF_MYSTERY,
        "display_emoji": "🌀",
        "tooltip": "Spiral of Mystery",
        "description": "Curiosity about questions that remain open.",
        "sephirotic_path": "daat",
        "points_granted": 1,
        "animation_class": "animate-spin-slow",
    },
    {
        "emoji_type": CosmicEmojiType.MIRROR_OF_INSIGHT,
        "display_emoji": "🪞",
        "tooltip": "Mirror of Insight",
        "description": "A reflection that reveals something about oneself.",
        "sephirotic_path": "binah",
        "points_granted": 2,
        "animation_class": "animate-shimmer",
    },
]

REWARD_CATALOG: list[dict] = [
    {
        "name": "Cosmic Meditation Guide",
        "description": (
            "A comprehensive digital guide to sephirotic meditation techniques, "
            "unlocking deeper cosmic awareness."
        ),
        "points_cost": 1000,
        "category": "digital",
        "stock": 999,
        "tags": ["meditation", "digital", "beginner"],
    },
    {
        "name": "Virtual Wisdom Session",
        "description": (
            "One-hour personal guidance with a Sephirotic wisdom keeper to help "
            "navigate your spiritual journey."
        ),
        "points_cost": 2500,
        "category": "experiences",
        "stock": 5,
        "tags": ["mentorship", "virtual", "personal"],
    },
    {
        "name": "Handcrafted Sephirot Crystal Set",
        "description": (
            "Set of 10 crystals corresponding to each Sephirot on the Tree of "
            "Life, energetically attuned."
        ),
        "points_cost": 5000,
        "category": "physical",
        "stock": 3,
        "tags": ["crystals", "premium", "physical"],
    },
    {
        "name": "Community Council Invitation",
        "description": (
            "Join the monthly Sephirotic Council meeting where community "
            "governance decisions are discussed."
        ),
        "points_cost": 3000,
        "category": "community",
        "stock": 10,
        "tags": ["governance", "exclusive", "community"],
    },
    {
        "name": "Divine Light Visualization Course",
        "description": (
            "Advanced 7-day course on channeling sephirotic light for personal "
            "transformation."
        ),
        "points_cost": 2000,
        "category": "digital",
        "stock": 999,
        "tags": ["course", "advanced", "visualization"],
    },
    {
        "name": "Sacred Geometry Art Print",
        "description": (
            "Limited edition sacred geometry art print depicting the Tree of "
            "Life, signed by the artist."
        ),
        "points_cost": 4000,
        "category": "physical",
        "stock": 15,
        "tags": ["art", "limited", "physical"],
    },
    {
        "name": "Higher Mind Integration Workshop",
        "description": (
            "Interactive virtual workshop exploring the connection between "
            "higher self and material existence."
        ),
        "points_cost": 2200,
        "category": "experiences",
        "stock": 20,
        "tags": ["workshop", "interactive", "group"],
    },
    {
        "name": "Exclusive Beta Access: Mind Mapping Tool",
        "description": (
            "Be among the first to test new features in our metaphysical mind "
            "mapping tool."
        ),
        "points_cost": 1500,
        "category": "community",
        "stock": 25,
        "tags": ["beta", "software", "exclusive"],
    },
]

QUEST_CATALOG: list[dict] = [
    {
        "title": "First Steps on the Tree",
        "description": "Define your identity and join your first discussion.",
        "type": QuestType.ONBOARDING,
        "requirements": {"profile_completed": True, "discussions_joined": 1},
        "points": 50,
    },
    {
        "title": "Voice of the Council",
        "description": "Cast a vote on a proposal and on an amendment.",
        "type": QuestType.ONBOARDING,
        "requirements": {"proposal_votes": 1, "amendment_votes": 1},
        "points": 40,
    },
    {
        "title": "Daily Resonance",
        "description": "Leave a thoughtful comment and react to someone's post.",
        "type": QuestType.DAILY,
        "requirements": {"comments_posted": 1, "reactions_given": 1},
        "points": 10,
    },
    {
        "title": "Weekly Weaver",
        "description": "Reply to five threads across the forums this week.",
        "type": QuestType.WEEKLY,
        "requirements": {"comments_posted": 5},
        "points": 75,
    },
]


# ---------------------------------------------------------------------------
# Seeders
# ---------------------------------------------------------------------------
def seed_default_settings(engine: Engine) -> None:
    """Insert default settings that don't yet exist.

    Runs on every startup but only writes rows for keys that are missing,
    so it is safe to call repeatedly.
    """
    session = Session(engine)
    inserted = 0
    try:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            existing = session.get(Setting, key)
            if existing is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default settings.", inserted)


def seed_catalogs(engine: Engine) -> None:
    """Insert badges, emoji metadata, rewards and quests missing by name."""
    counts = {"badges": 0, "emoji": 0, "rewards": 0, "quests": 0}
    with Session(engine) as session:
        badge_names = set(session.scalars(select(Badge.name)).all())
        for data in BADGE_CATALOG:
            if data["name"] not in badge_names:
                session.add(Badge(**data))
                counts["badges"] += 1

        emoji_types = set(session.scalars(select(CosmicEmojiMetadata.emoji_type)).all())
        for data in EMOJI_CATALOG:
            if data["emoji_type"] not in emoji_types:
                session.add(CosmicEmojiMetadata(**data))
                counts["emoji"] += 1

        reward_names = set(session.scalars(select(Reward.name)).all())
        for data in REWARD_CATALOG:
            if data["name"] not in reward_names:
                session.add(Reward(**data))
                counts["rewards"] += 1

        quest_titles = set(session.scalars(select(Quest.title)).all())
        for data in QUEST_CATALOG:
            if data["title"] not in quest_titles:
                session.add(Quest(**data))
                counts["quests"] += 1

        session.commit()

    if any(counts.values()):
        logger.info(
            "Seeded catalogs: %d badges, %d emoji, %d rewards, %d quests.",
            counts["badges"], counts["emoji"], counts["rewards"], counts["quests"],
        )
