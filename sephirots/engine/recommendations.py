"""
sephirots.engine.recommendations — Resonance Scoring Heuristic
================================================================

Maps a user's derived "spiritual profile" (eleven Sephirot categories →
0–100 resonance) to ranked suggestions:

* **Practices** from a fixed catalog, scored by energy-signature tags.
* **Discussions** scored by their tags, with a small random perturbation.
* **Daily insight**: a stock message picked from the date and the user's
  strongest category.
* **Entangled users**: members with shared interests and similar activity.
* **Synchronicities**: themed coincidences (initials, birthdays, a cosmic
  number of the day).

All randomness comes from an injected :class:`random.Random`, so a seeded
generator gives reproducible output.  Every score is clamped to [0, 100]
and every ranking is a stable descending sort.

This module is pure calculation — no database I/O, no HTTP I/O.
"""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

# ---------------------------------------------------------------------------
# Static tables
# ---------------------------------------------------------------------------
SEPHIROT_AFFINITIES: dict[str, tuple[str, ...]] = {
    "kether": ("wisdom", "unity", "transcendence", "divine", "oneness"),
    "chokmah": ("wisdom", "insight", "revelation", "inspiration", "vision"),
    "binah": ("understanding", "analysis", "comprehension", "discernment", "pattern"),
    "chesed": ("love", "mercy", "compassion", "kindness", "forgiveness"),
    "geburah": ("strength", "discipline", "judgment", "boundaries", "truth"),
    "tiphareth": ("beauty", "harmony", "balance", "integration", "self"),
    "netzach": ("victory", "endurance", "nature", "emotion", "connection"),
    "hod": ("splendor", "communication", "intellect", "teaching", "language"),
    "yesod": ("foundation", "dreams", "unconscious", "intuition", "psyche"),
    "malkuth": ("kingdom", "manifestation", "physical", "grounding", "embodiment"),
    "daat": ("knowledge", "integration", "synthesis", "gnosis", "transformation"),
}

# Badge text keyword → category that receives +10
KEYWORD_GROUPS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("wisdom", "insight"), "chokmah"),
    (("compassion", "care"), "chesed"),
    (("strength", "courage"), "geburah"),
    (("balance", "harmony"), "tiphareth"),
    (("communicate", "conversation"), "hod"),
    (("connect", "community"), "netzach"),
    (("intuition", "dream"), "yesod"),
    (("practical", "action"), "malkuth"),
)

BASE_PROFILE_VALUE = 20
CATEGORY_NAME_BONUS = 15
KEYWORD_BONUS = 10
ADVANCED_LEVEL = 7
ADVANCED_LEVEL_BONUS = 5

PRACTICE_BASE_SCORE = 50
PRACTICE_TAG_WEIGHT = 10
DISCUSSION_BASE_SCORE = 40
DISCUSSION_TAG_WEIGHT = 15
DISCUSSION_JITTER = 5
ENTANGLEMENT_BASE_SCORE = 50
ENTANGLEMENT_JITTER = 10

QUANTUM_INSIGHTS: tuple[str, ...] = (
    "The universe is speaking through synchronicities today. Notice the patterns that repeat.",
    "Your higher self is guiding you toward deeper understanding. Listen to your intuition.",
    "The veil between worlds is thin today. Pay attention to subtle energies around you.",
    "You are at a crossroads in your spiritual journey. The path of integration beckons.",
    "A time of transformation is upon you. Embrace the chrysalis state.",
    "Your energy resonates with the cosmic heartbeat today. Feel the rhythm of existence.",
    "Ancient wisdom seeks expression through you. Be a clear channel.",
    "The light of consciousness is expanding within you. Allow it to illuminate shadow aspects.",
    "You are a bridge between worlds today. Honor your role as a connector of realities.",
    "Cosmic revelations await in the silence. Create space for deep listening.",
    "Your prayers are creating ripples in the quantum field. Maintain clear intention.",
    "Divine timing is at work in your life. Trust the unfolding process.",
    "The balance of giving and receiving requires attention today. Adjust your energy exchange.",
    "Your thoughts are seeds in the garden of manifestation. Plant with awareness.",
    "Ancestral wisdom is available to you now. Honor those who came before.",
    "The eternal moment contains all possibilities. Center in the infinite now.",
    "Your heart's electromagnetic field is broadcasting. Ensure its message is love.",
    "Soul fragments are returning. Welcome them with compassion and integration.",
    "The cosmos mirrors your internal state. Clear within to experience clarity without.",
    "Divine paradox invites you to hold opposing truths simultaneously. Expand your perception.",
)


@dataclass(frozen=True, slots=True)
class Practice:
    id: str
    title: str
    description: str
    energy_signature: tuple[str, ...]
    duration_minutes: int


SPIRITUAL_PRACTICES: tuple[Practice, ...] = (
    Practice(
        "meditation-light", "Divine Light Meditation",
        "Connect with the divine light of Kether through guided visualization.",
        ("kether", "tiphareth", "consciousness", "light"), 15,
    ),
    Practice(
        "reflection-higher-self", "Higher Self Dialogue",
        "Journal a dialogue between your everyday self and your higher self.",
        ("tiphareth", "daat", "self", "guidance", "wisdom"), 20,
    ),
    Practice(
        "tree-visualization", "Tree of Life Pathworking",
        "Travel the paths of the Tree of Life from Malkuth to Tiphareth.",
        ("malkuth", "yesod", "hod", "netzach", "tiphareth", "integration"), 25,
    ),
    Practice(
        "compassion-practice", "Chesed Compassion Practice",
        "Cultivate loving-kindness for yourself and others.",
        ("chesed", "love", "compassion", "healing", "connection"), 15,
    ),
    Practice(
        "strength-boundaries", "Geburah Boundary Setting",
        "Practice setting clear, loving boundaries with the strength of Geburah.",
        ("geburah", "strength", "protection", "boundaries", "clarity"), 10,
    ),
    Practice(
        "grounding-ritual", "Malkuth Grounding Ritual",
        "Ground your energy into the earth and return to embodied presence.",
        ("malkuth", "earth", "grounding", "embodiment", "presence"), 20,
    ),
    Practice(
        "dream-journaling", "Yesod Dream Integration",
        "Record and reflect on your dreams to integrate unconscious wisdom.",
        ("yesod", "dreams", "unconscious", "intuition", "symbols"), 15,
    ),
    Practice(
        "sacred-geometry", "Sacred Geometry Contemplation",
        "Contemplate sacred geometric forms to perceive universal patterns.",
        ("chokmah", "binah", "pattern", "geometry", "universal"), 15,
    ),
)


# ---------------------------------------------------------------------------
# Inputs & outputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BadgeText:
    name: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class MemberSnapshot:
    """The user fields the heuristic reads."""

    id: int
    display_name: str
    level: int = 1
    points: int = 0
    comments_count: int = 0
    interests: tuple[str, ...] = ()
    birth_date: date | None = None


@dataclass(frozen=True, slots=True)
class DiscussionSnapshot:
    id: int
    title: str
    content: str = ""
    tags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Recommendation:
    id: str
    type: str
    title: str
    description: str
    resonance_score: int
    energy_signature: tuple[str, ...] = ()
    source_id: int | None = None
    action_type: str = "navigate"
    action_path: str | None = None


@dataclass(frozen=True, slots=True)
class EntangledUser:
    user_id: int
    username: str
    resonance_score: int
    shared_interests: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RecommendationResult:
    daily_insight: str
    personal_recommendations: tuple[Recommendation, ...] = ()
    synchronicities: tuple[Recommendation, ...] = ()
    entangled_users: tuple[EntangledUser, ...] = field(default_factory=tuple)


def _clamp(score: float) -> int:
    return max(0, min(100, round(score)))


def _ranked(items: Iterable, key, limit: int) -> list:
    return sorted(items, key=lambda item: -key(item))[:limit]


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------
def extract_profile(level: int, badges: Iterable[BadgeText]) -> dict[str, int]:
    """Derive the eleven-category resonance profile from earned badges.

    Every category starts at 20.  A category's name appearing in a badge
    name adds 15; each keyword group found in the badge's name or
    description adds 10 to its category.  Levels above 7 add
    ``5 * (level - 7)`` to kether.  Values are clamped to [0, 100].
    """
    profile = {name: BASE_PROFILE_VALUE for name in SEPHIROT_AFFINITIES}

    for badge in badges:
        name = (badge.name or "").lower()
        text = f"{name} {(badge.description or '').lower()}"
        for sephirah in SEPHIROT_AFFINITIES:
            if sephirah in name:
                profile[sephirah] += CATEGORY_NAME_BONUS
        for keywords, sephirah in KEYWORD_GROUPS:
            if any(word in text for word in keywords):
                profile[sephirah] += KEYWORD_BONUS

    level = level or 1
    if level > ADVANCED_LEVEL:
        profile["kether"] += ADVANCED_LEVEL_BONUS * (level - ADVANCED_LEVEL)

    return {key: max(0, min(100, value)) for key, value in profile.items()}


def strongest_category(profile: Mapping[str, int]) -> tuple[str, int]:
    """Return the first category holding the maximum value."""
    best_name, best_value = "", 0
    for name, value in profile.items():
        if value > best_value:
            best_name, best_value = name, value
    return best_name, best_value


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------
def _tag_bonus(profile: Mapping[str, int], tag: str, weight: int, *, substring: bool) -> float:
    bonus = 0.0
    for sephirah, affinities in SEPHIROT_AFFINITIES.items():
        matched = tag in affinities or (sephirah in tag if substring else tag == sephirah)
        if matched:
            bonus += profile.get(sephirah, 0) / 100 * weight
    return bonus


def score_practices(
    profile: Mapping[str, int],
    catalog: Sequence[Practice] = SPIRITUAL_PRACTICES,
    limit: int = 3,
) -> list[Recommendation]:
    """Rank catalog practices by how strongly their tags match *profile*."""
    scored = []
    for practice in catalog:
        score = PRACTICE_BASE_SCORE + sum(
            _tag_bonus(profile, tag, PRACTICE_TAG_WEIGHT, substring=False)
            for tag in practice.energy_signature
        )
        scored.append(Recommendation(
            id=f"practice-{practice.id}",
            type="practice",
            title=practice.title,
            description=practice.description,
            resonance_score=_clamp(score),
            energy_signature=practice.energy_signature,
            action_type="practice",
            action_path=f"/practice/{practice.id}",
        ))
    return _ranked(scored, lambda r: r.resonance_score, limit)


def score_discussions(
    profile: Mapping[str, int],
    discussions: Iterable[DiscussionSnapshot],
    rng: random.Random,
    limit: int = 2,
) -> list[Recommendation]:
    """Rank tagged discussions against *profile*; untagged ones are skipped."""
    scored = []
    for discussion in discussions:
        if not discussion.tags:
            continue
        score = DISCUSSION_BASE_SCORE + sum(
            _tag_bonus(profile, tag.lower(), DISCUSSION_TAG_WEIGHT, substring=True)
            for tag in discussion.tags
        )
        score += rng.randint(-DISCUSSION_JITTER, DISCUSSION_JITTER)
        scored.append(Recommendation(
            id=f"discussion-{discussion.id}",
            type="content",
            title=discussion.title,
            description=(
                f"{discussion.content[:120]}..." if discussion.content
                else "Explore this discussion..."
            ),
            resonance_score=_clamp(score),
            energy_signature=tuple(discussion.tags),
            source_id=discussion.id,
            action_path=f"/discussions/{discussion.id}",
        ))
    return _ranked(scored, lambda r: r.resonance_score, limit)


def daily_insight(profile: Mapping[str, int], today: date) -> str:
    """Pick the stock insight for *today* and the user's strongest category."""
    _, highest = strongest_category(profile)
    date_seed = today.day + (today.month - 1) * 30 + today.year % 100
    return QUANTUM_INSIGHTS[(date_seed + highest) % len(QUANTUM_INSIGHTS)]


def find_entangled_users(
    user: MemberSnapshot,
    others: Iterable[MemberSnapshot],
    rng: random.Random,
    limit: int = 3,
) -> list[EntangledUser]:
    """Rank other members by shared interests and similar activity."""
    mine = set(user.interests)
    scored = []
    for other in others:
        if other.id == user.id:
            continue
        shared = tuple(i for i in other.interests if i in mine)
        score: float = ENTANGLEMENT_BASE_SCORE + 5 * len(shared)

        if user.comments_count and other.comments_count:
            if abs(user.comments_count - other.comments_count) < 5:
                score += 5
        if user.points and other.points:
            score += min(user.points, other.points) / max(user.points, other.points) * 10

        score += rng.randint(-ENTANGLEMENT_JITTER, ENTANGLEMENT_JITTER)
        scored.append(EntangledUser(
            user_id=other.id,
            username=other.display_name or f"User {other.id}",
            resonance_score=_clamp(score),
            shared_interests=shared,
        ))
    return _ranked(scored, lambda e: e.resonance_score, limit)


def cosmic_number(now: datetime) -> int:
    """The 1–11 "number of the day" derived from the clock."""
    return (now.hour + now.minute + now.second + now.day) % 11 + 1


def find_synchronicities(
    user: MemberSnapshot,
    discussions: Sequence[DiscussionSnapshot],
    others: Sequence[MemberSnapshot],
    now: datetime,
    rng: random.Random,
) -> list[Recommendation]:
    """Themed coincidences: at most one initial match, one birthday match,
    and always the cosmic-number insight."""
    found: list[Recommendation] = []
    number = cosmic_number(now)
    initial = (user.display_name or "")[:1].lower()

    if initial:
        for discussion in discussions:
            if discussion.title[:1].lower() == initial and discussion.id % number == 0:
                found.append(Recommendation(
                    id=f"synch-initial-{discussion.id}",
                    type="synchronicity",
                    title="Nameday Synchronicity",
                    description=(
                        "This discussion title starts with your name's initial and "
                        f'has appeared in your path today: "{discussion.title}"'
                    ),
                    resonance_score=_clamp(70 + rng.random() * 20),
                    energy_signature=("synchronicity", "coincidence", "meaning", "path"),
                    source_id=discussion.id,
                    action_path=f"/discussions/{discussion.id}",
                ))
                break

    if user.birth_date is not None:
        for other in others:
            if other.id == user.id or other.birth_date is None:
                continue
            if (other.birth_date.month == user.birth_date.month
                    or other.birth_date.day == user.birth_date.day):
                found.append(Recommendation(
                    id=f"synch-birth-{other.id}",
                    type="synchronicity",
                    title="Celestial Birthday Connection",
                    description=(
                        f"You share celestial birthday energy with {other.display_name}. "
                        "Your souls may have cosmic connections."
                    ),
                    resonance_score=_clamp(75 + rng.random() * 15),
                    energy_signature=("connection", "cosmos", "birth", "patterns"),
                    source_id=other.id,
                    action_type="connect",
                    action_path=f"/profile/{other.id}",
                ))
                break

    found.append(Recommendation(
        id=f"synch-universal-{int(now.timestamp() * 1000)}",
        type="insight",
        title="Quantum Signal Detected",
        description=(
            f"The number {number} is appearing in your field today. Pay attention "
            "to where it manifests, as it carries special significance for your journey."
        ),
        resonance_score=85,
        energy_signature=("numbers", "quantum", "signs", "guidance"),
        action_type="reflect",
    ))
    return found


def generate_recommendations(
    user: MemberSnapshot,
    badges: Iterable[BadgeText],
    discussions: Sequence[DiscussionSnapshot],
    others: Sequence[MemberSnapshot],
    now: datetime,
    rng: random.Random | None = None,
) -> RecommendationResult:
    """Combine every widget into one result.

    Personal recommendations are the top practices plus the top discussions,
    re-ranked together and cut to five.
    """
    rng = rng or random.Random()
    profile = extract_profile(user.level, badges)

    personal = _ranked(
        [*score_practices(profile), *score_discussions(profile, discussions, rng)],
        lambda r: r.resonance_score,
        5,
    )
    return RecommendationResult(
        daily_insight=daily_insight(profile, now.date()),
        personal_recommendations=tuple(personal),
        synchronicities=tuple(find_synchronicities(user, discussions, others, now, rng)),
        entangled_users=tuple(find_entangled_users(user, others, rng)),
    )
