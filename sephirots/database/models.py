"""
sephirots.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- users                 — Community member profiles
- discussions / comments — Forum content (reaction + recommendation targets)
- content_likes         — One like per member per discussion or comment
- badges                — Immutable badge catalog with prestige tier
- user_badges           — Earned badges
- badge_progress        — Per-user progress toward unearned badges
- quests / user_quests  — Quest templates and per-user progress
- rewards / reward_redemptions — Points exchange catalog and ledger
- proposals / votes     — Community governance
- rights_agreements     — Versioned community rights agreement
- amendments / amendment_votes — Rights agreement amendments
- events / event_attendees — Community gatherings and RSVPs
- polls / poll_options / poll_votes — Community polls
- cosmic_reactions / cosmic_emoji_metadata — Emoji reactions
- donations             — Donation checkout records
- settings              — Admin-configurable key-value store
- admin_log             — Append-only audit trail
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Sephirots ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class BadgeTier(enum.StrEnum):
    """Badge prestige tiers, listed in ascending order."""
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    FOUNDER = "founder"


class SpecialEffect(enum.StrEnum):
    """Rendering treatment assigned to a badge when it is created."""
    NONE = "none"
    FOUNDER_GLOW = "founder_glow"
    ENHANCED_GLOW = "enhanced_glow"


class QuestType(enum.StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    ONBOARDING = "onboarding"
    ACHIEVEMENT = "achievement"
    SPECIAL = "special"


class QuestStatus(enum.StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"


class ProposalStatus(enum.StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    PASSED = "passed"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"


class ProposalCategory(enum.StrEnum):
    COMMUNITY_RULES = "community_rules"
    FEATURE_REQUEST = "feature_request"
    MODERATION_POLICY = "moderation_policy"
    RESOURCE_ALLOCATION = "resource_allocation"
    PROTOCOL_CHANGE = "protocol_change"
    OTHER = "other"


class RightsAgreementStatus(enum.StrEnum):
    DRAFT = "draft"
    APPROVED = "approved"
    ARCHIVED = "archived"


class AmendmentStatus(enum.StrEnum):
    PROPOSED = "proposed"
    APPROVED = "approved"
    REJECTED = "rejected"


class LikeTarget(enum.StrEnum):
    DISCUSSION = "discussion"
    COMMENT = "comment"


class PollStatus(enum.StrEnum):
    ACTIVE = "active"
    CLOSED = "closed"


class CosmicEmojiType(enum.StrEnum):
    STAR_OF_AWE = "star_of_awe"
    CRESCENT_OF_PEACE = "crescent_of_peace"
    FLAME_OF_PASSION = "flame_of_passion"
    DROP_OF_COMPASSION = "drop_of_compassion"
    LEAF_OF_GROWTH = "leaf_of_growth"
    SPIRAL_OF_MYSTERY = "spiral_of_mystery"
    MIRROR_OF_INSIGHT = "mirror_of_insight"


class DonationStatus(enum.StrEnum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AdminActionType(enum.StrEnum):
    """Categories of admin mutations recorded in admin_log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    GRANT_BADGE = "GRANT_BADGE"
    ADJUST_POINTS = "ADJUST_POINTS"
    STATUS_CHANGE = "STATUS_CHANGE"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar: Mapped[str | None] = mapped_column(String(500), default=None)
    bio: Mapped[str | None] = mapped_column(Text, default=None)
    level: Mapped[int] = mapped_column(Integer, default=1)
    points: Mapped[int] = mapped_column(Integer, default=0)
    is_ai: Mapped[bool] = mapped_column(Boolean, default=False)
    interests: Mapped[list | None] = mapped_column(JSONB, default=list)
    birth_date: Mapped[date | None] = mapped_column(Date, default=None)
    comments_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    badges: Mapped[list[UserBadge]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_users_points_desc", "points"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.username!r} pts={self.points}>"


# ---------------------------------------------------------------------------
# Discussions & comments
# ---------------------------------------------------------------------------
class Discussion(Base):
    __tablename__ = "discussions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(30), nullable=False, default="other")
    tags: Mapped[list | None] = mapped_column(JSONB, default=list)
    likes: Mapped[int] = mapped_column(Integer, default=0)
    views: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    comments: Mapped[list[Comment]] = relationship(
        back_populates="discussion", cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )

    def __repr__(self) -> str:
        return f"<Discussion id={self.id} title={self.title!r}>"


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    discussion_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("discussions.id", ondelete="CASCADE"), nullable=False
    )
    likes: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    discussion: Mapped[Discussion] = relationship(back_populates="comments")

    def __repr__(self) -> str:
        return f"<Comment id={self.id} discussion={self.discussion_id}>"


class ContentLike(Base):
    __tablename__ = "content_likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content_type: Mapped[str] = mapped_column(String(20), nullable=False)
    content_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "content_type", "content_id", name="uq_content_likes_key",
        ),
    )

    def __repr__(self) -> str:
        return f"<ContentLike user={self.user_id} {self.content_type}:{self.content_id}>"


# ---------------------------------------------------------------------------
# Badges — immutable reference data seeded by the catalog seeder
# ---------------------------------------------------------------------------
class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(100), nullable=False)
    requirement: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    tier: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BadgeTier.BRONZE.value
    )
    level: Mapped[int] = mapped_column(Integer, default=1)
    points: Mapped[int] = mapped_column(Integer, default=10)
    symbolism: Mapped[str | None] = mapped_column(Text, default=None)
    is_limited: Mapped[bool] = mapped_column(Boolean, default=False)
    max_supply: Mapped[int | None] = mapped_column(Integer, nullable=True)
    special_effect: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SpecialEffect.NONE.value
    )
    # Activity counter that earns the badge automatically at progress_target
    progress_key: Mapped[str | None] = mapped_column(String(50), nullable=True)
    progress_target: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    earned_by: Mapped[list[UserBadge]] = relationship(back_populates="badge")

    def __repr__(self) -> str:
        return f"<Badge id={self.id} name={self.name!r} tier={self.tier}>"


class UserBadge(Base):
    __tablename__ = "user_badges"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    badge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("badges.id", ondelete="CASCADE"), primary_key=True
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    enhanced: Mapped[bool] = mapped_column(Boolean, default=False)
    issued_by: Mapped[int | None] = mapped_column(Integer, nullable=True)

    user: Mapped[User] = relationship(back_populates="badges")
    badge: Mapped[Badge] = relationship(back_populates="earned_by")

    def __repr__(self) -> str:
        return f"<UserBadge user={self.user_id} badge={self.badge_id}>"


class BadgeProgress(Base):
    __tablename__ = "badge_progress"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    badge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("badges.id", ondelete="CASCADE"), primary_key=True
    )
    current_progress: Mapped[int] = mapped_column(Integer, default=0)
    max_progress: Mapped[int] = mapped_column(Integer, default=1)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    badge: Mapped[Badge] = relationship()

    def __repr__(self) -> str:
        return (
            f"<BadgeProgress user={self.user_id} badge={self.badge_id} "
            f"{self.current_progress}/{self.max_progress}>"
        )


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------
class Quest(Base):
    __tablename__ = "quests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QuestType.DAILY.value
    )
    # Requirement name → bool target or numeric target
    requirements: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    points: Mapped[int] = mapped_column(Integer, default=0)
    badge_reward_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("badges.id", ondelete="SET NULL"), nullable=True
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    badge_reward: Mapped[Badge | None] = relationship()

    def __repr__(self) -> str:
        return f"<Quest id={self.id} title={self.title!r} type={self.type}>"


class UserQuest(Base):
    __tablename__ = "user_quests"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    quest_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quests.id", ondelete="CASCADE"), primary_key=True
    )
    progress: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QuestStatus.NOT_STARTED.value
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<UserQuest user={self.user_id} quest={self.quest_id} {self.status}>"


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------
class Reward(Base):
    __tablename__ = "rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    points_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False, default="digital")
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    stock: Mapped[int | None] = mapped_column(Integer, nullable=True)  # None = unlimited
    tags: Mapped[list | None] = mapped_column(JSONB, default=list)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<Reward id={self.id} name={self.name!r} cost={self.points_cost}>"


class RewardRedemption(Base):
    __tablename__ = "reward_redemptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reward_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("rewards.id", ondelete="CASCADE"), nullable=False
    )
    points_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_reward_redemptions_user", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<RewardRedemption user={self.user_id} reward={self.reward_id}>"


# ---------------------------------------------------------------------------
# Governance — proposals & votes
# ---------------------------------------------------------------------------
class Proposal(Base):
    __tablename__ = "proposals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ProposalCategory.OTHER.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProposalStatus.DRAFT.value
    )
    proposed_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    votes_required: Mapped[int] = mapped_column(Integer, default=10)
    votes_for: Mapped[int] = mapped_column(Integer, default=0)
    votes_against: Mapped[int] = mapped_column(Integer, default=0)
    voting_ends_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    implementation_details: Mapped[str | None] = mapped_column(Text, default=None)
    author_rewarded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    votes: Mapped[list[Vote]] = relationship(
        back_populates="proposal", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_proposals_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Proposal id={self.id} status={self.status}>"


class Vote(Base):
    __tablename__ = "votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    vote: Mapped[bool] = mapped_column(Boolean, nullable=False)  # True = for
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    proposal: Mapped[Proposal] = relationship(back_populates="votes")

    __table_args__ = (
        UniqueConstraint("proposal_id", "user_id", name="uq_votes_proposal_user"),
    )

    def __repr__(self) -> str:
        return f"<Vote proposal={self.proposal_id} user={self.user_id} for={self.vote}>"


class RightsAgreement(Base):
    __tablename__ = "rights_agreements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RightsAgreementStatus.DRAFT.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<RightsAgreement id={self.id} version={self.version!r} {self.status}>"


class Amendment(Base):
    __tablename__ = "amendments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    proposed_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    agreement_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("rights_agreements.id", ondelete="SET NULL"), nullable=True
    )
    agreement_version: Mapped[str | None] = mapped_column(String(20), default=None)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AmendmentStatus.PROPOSED.value
    )
    votes_for: Mapped[int] = mapped_column(Integer, default=0)
    votes_against: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Amendment id={self.id} status={self.status}>"


class AmendmentVote(Base):
    __tablename__ = "amendment_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    amendment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("amendments.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    support: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("amendment_id", "user_id", name="uq_amendment_votes_user"),
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="gathering")
    created_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    attendees: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_events_starts_at", "starts_at"),
    )

    def __repr__(self) -> str:
        return f"<Event id={self.id} title={self.title!r}>"


class EventAttendee(Base):
    __tablename__ = "event_attendees"

    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Polls
# ---------------------------------------------------------------------------
class Poll(Base):
    __tablename__ = "polls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PollStatus.ACTIVE.value
    )
    created_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    quarter_year: Mapped[str | None] = mapped_column(String(10), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    options: Mapped[list[PollOption]] = relationship(
        back_populates="poll", cascade="all, delete-orphan",
        order_by="PollOption.position",
    )

    def __repr__(self) -> str:
        return f"<Poll id={self.id} status={self.status}>"


class PollOption(Base):
    __tablename__ = "poll_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(String(300), nullable=False)
    vote_count: Mapped[int] = mapped_column(Integer, default=0)
    position: Mapped[int] = mapped_column(Integer, default=0)

    poll: Mapped[Poll] = relationship(back_populates="options")


class PollVote(Base):
    __tablename__ = "poll_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False
    )
    option_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("poll_options.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("poll_id", "user_id", name="uq_poll_votes_user"),
    )


# ---------------------------------------------------------------------------
# Cosmic reactions
# ---------------------------------------------------------------------------
class CosmicReaction(Base):
    __tablename__ = "cosmic_reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content_type: Mapped[str] = mapped_column(String(20), nullable=False)
    content_id: Mapped[int] = mapped_column(Integer, nullable=False)
    emoji_type: Mapped[str] = mapped_column(String(30), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        # The toggle endpoint relies on this constraint for atomicity
        UniqueConstraint(
            "user_id", "content_type", "content_id", "emoji_type",
            name="uq_cosmic_reactions_key",
        ),
        Index("ix_cosmic_reactions_content", "content_type", "content_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<CosmicReaction user={self.user_id} "
            f"{self.content_type}:{self.content_id} {self.emoji_type}>"
        )


class CosmicEmojiMetadata(Base):
    __tablename__ = "cosmic_emoji_metadata"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    emoji_type: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    display_emoji: Mapped[str] = mapped_column(String(16), nullable=False)
    tooltip: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sephirotic_path: Mapped[str] = mapped_column(String(30), nullable=False)
    points_granted: Mapped[int] = mapped_column(Integer, default=1)
    animation_class: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<CosmicEmojiMetadata id={self.id} type={self.emoji_type}>"


# ---------------------------------------------------------------------------
# Donations
# ---------------------------------------------------------------------------
class Donation(Base):
    __tablename__ = "donations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    tier: Mapped[str | None] = mapped_column(String(50), nullable=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DonationStatus.PENDING.value
    )
    checkout_session_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Donation id={self.id} tier={self.tier} status={self.status}>"


# ---------------------------------------------------------------------------
# Setting — admin-configurable key-value store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Gameplay tuning (point awards, tier thresholds, donation tiers, vote
    thresholds) lives here so admins can adjust values without redeploying.
    Values are stored as JSON strings.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"


# ---------------------------------------------------------------------------
# AdminLog — append-only audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"
