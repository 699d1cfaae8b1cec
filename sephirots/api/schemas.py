"""
sephirots.api.schemas — Request bodies
========================================

The web client sends camelCase keys; handlers read snake_case attributes.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Users & badges
# ---------------------------------------------------------------------------
class PointsAdjust(CamelModel):
    delta: int
    reason: str = Field(min_length=1)


class BadgeCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str
    icon: str
    tier: str = "bronze"
    level: int = Field(default=1, ge=1)
    points: int = Field(default=10, ge=0)
    requirement: str = ""
    category: str = "general"
    symbolism: str | None = None
    is_limited: bool = False
    max_supply: int | None = None
    special_effect: str = "none"
    progress_key: str | None = None
    progress_target: int | None = Field(default=None, gt=0)


class ProfileUpdate(CamelModel):
    display_name: str | None = Field(default=None, min_length=2, max_length=50)
    avatar: str | None = Field(default=None, max_length=500)
    bio: str | None = Field(default=None, max_length=500)
    interests: list[str] | None = Field(default=None, max_length=20)
    birth_date: date | None = None


class BadgeGrant(CamelModel):
    user_id: int


# ---------------------------------------------------------------------------
# Quests & rewards
# ---------------------------------------------------------------------------
class QuestProgressUpdate(CamelModel):
    user_id: int
    progress: dict[str, Any]


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------
class ReactionToggle(CamelModel):
    content_id: int
    content_type: str
    emoji_id: int


# ---------------------------------------------------------------------------
# Governance
# ---------------------------------------------------------------------------
class ProposalCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    category: str = "other"
    votes_required: int | None = Field(default=None, gt=0)
    voting_ends_at: datetime | None = None


class ProposalUpdate(CamelModel):
    title: str | None = None
    description: str | None = None
    category: str | None = None
    status: str | None = None
    votes_required: int | None = Field(default=None, gt=0)
    voting_ends_at: datetime | None = None
    implementation_details: str | None = None


class ProposalVote(CamelModel):
    vote: bool
    reason: str | None = None


class AmendmentCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    agreement_id: int | None = None
    agreement_version: str | None = None


class AgreementCreate(CamelModel):
    title: str = Field(min_length=1, max_length=300)
    content: str = Field(min_length=1)
    version: str = Field(min_length=1, max_length=20)
    status: str = "draft"


class AmendmentVoteBody(CamelModel):
    support: bool


class PollCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    options: list[str]
    description: str = ""
    category: str = "general"
    ends_at: datetime | None = None


class PollVoteBody(CamelModel):
    option_id: int


# ---------------------------------------------------------------------------
# Discussions
# ---------------------------------------------------------------------------
class DiscussionCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    category: str = "other"
    tags: list[str] = Field(default_factory=list)


class CommentCreate(CamelModel):
    discussion_id: int
    content: str


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
class EventCreate(CamelModel):
    title: str = Field(min_length=1, max_length=300)
    starts_at: datetime
    description: str = ""
    category: str = Field(default="gathering", max_length=50)


# ---------------------------------------------------------------------------
# Donations & settings
# ---------------------------------------------------------------------------
class DonationRequest(CamelModel):
    tier_id: str
    amount_cents: int | None = Field(default=None, gt=0)


class SettingUpdate(CamelModel):
    key: str
    value: Any
    category: str | None = None
    description: str | None = None
