"""Initial schema: members, forum, badges, quests, rewards, governance, reactions, donations

Revision ID: 5e1a7c3b9d20
Revises:
Create Date: 2026-10-19 10:12:04.118305

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5e1a7c3b9d20'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
    )


def _user_fk(name: str = "user_id", *, primary_key: bool = False) -> sa.Column:
    return sa.Column(
        name, sa.Integer,
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False, primary_key=primary_key,
    )


def upgrade() -> None:
    """Create every table of the platform schema."""

    # --- members & forum ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("avatar", sa.String(500), nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("level", sa.Integer, server_default="1"),
        sa.Column("points", sa.Integer, server_default="0"),
        sa.Column("is_ai", sa.Boolean, server_default=sa.false()),
        sa.Column("interests", postgresql.JSONB, nullable=True),
        sa.Column("birth_date", sa.Date, nullable=True),
        sa.Column("comments_count", sa.Integer, server_default="0"),
        _created_at(),
    )
    op.create_index("ix_users_points_desc", "users", ["points"])

    op.create_table(
        "discussions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        _user_fk(),
        sa.Column("category", sa.String(30), nullable=False, server_default="other"),
        sa.Column("tags", postgresql.JSONB, nullable=True),
        sa.Column("likes", sa.Integer, server_default="0"),
        sa.Column("views", sa.Integer, server_default="0"),
        _created_at(),
    )

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("content", sa.Text, nullable=False),
        _user_fk(),
        sa.Column(
            "discussion_id", sa.Integer,
            sa.ForeignKey("discussions.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("likes", sa.Integer, server_default="0"),
        _created_at(),
    )

    # --- badges ---
    op.create_table(
        "badges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("icon", sa.String(100), nullable=False),
        sa.Column("requirement", sa.Text, nullable=False, server_default=""),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("tier", sa.String(20), nullable=False, server_default="bronze"),
        sa.Column("level", sa.Integer, server_default="1"),
        sa.Column("points", sa.Integer, server_default="10"),
        sa.Column("symbolism", sa.Text, nullable=True),
        sa.Column("is_limited", sa.Boolean, server_default=sa.false()),
        sa.Column("max_supply", sa.Integer, nullable=True),
        sa.Column("special_effect", sa.String(20), nullable=False, server_default="none"),
        _created_at(),
    )

    op.create_table(
        "user_badges",
        _user_fk(primary_key=True),
        sa.Column(
            "badge_id", sa.Integer,
            sa.ForeignKey("badges.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("earned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("enhanced", sa.Boolean, server_default=sa.false()),
        sa.Column("issued_by", sa.Integer, nullable=True),
    )

    op.create_table(
        "badge_progress",
        _user_fk(primary_key=True),
        sa.Column(
            "badge_id", sa.Integer,
            sa.ForeignKey("badges.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("current_progress", sa.Integer, server_default="0"),
        sa.Column("max_progress", sa.Integer, server_default="1"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- quests ---
    op.create_table(
        "quests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("type", sa.String(20), nullable=False, server_default="daily"),
        sa.Column("requirements", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("points", sa.Integer, server_default="0"),
        sa.Column(
            "badge_reward_id", sa.Integer,
            sa.ForeignKey("badges.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("active", sa.Boolean, server_default=sa.true()),
        _created_at(),
    )

    op.create_table(
        "user_quests",
        _user_fk(primary_key=True),
        sa.Column(
            "quest_id", sa.Integer,
            sa.ForeignKey("quests.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("progress", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("status", sa.String(20), nullable=False, server_default="not_started"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- rewards ---
    op.create_table(
        "rewards",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("points_cost", sa.Integer, nullable=False),
        sa.Column("category", sa.String(30), nullable=False, server_default="digital"),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("stock", sa.Integer, nullable=True),
        sa.Column("tags", postgresql.JSONB, nullable=True),
        sa.Column("active", sa.Boolean, server_default=sa.true()),
    )

    op.create_table(
        "reward_redemptions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column(
            "reward_id", sa.Integer,
            sa.ForeignKey("rewards.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("points_spent", sa.Integer, nullable=False),
        _created_at(),
    )
    op.create_index(
        "ix_reward_redemptions_user", "reward_redemptions", ["user_id", "created_at"],
    )

    # --- governance ---
    op.create_table(
        "proposals",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("category", sa.String(30), nullable=False, server_default="other"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        _user_fk("proposed_by"),
        sa.Column("votes_required", sa.Integer, server_default="10"),
        sa.Column("votes_for", sa.Integer, server_default="0"),
        sa.Column("votes_against", sa.Integer, server_default="0"),
        sa.Column("voting_ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("implementation_details", sa.Text, nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_proposals_status", "proposals", ["status"])

    op.create_table(
        "votes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "proposal_id", sa.Integer,
            sa.ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False,
        ),
        _user_fk(),
        sa.Column("vote", sa.Boolean, nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        _created_at(),
        sa.UniqueConstraint("proposal_id", "user_id", name="uq_votes_proposal_user"),
    )

    op.create_table(
        "amendments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        _user_fk("proposed_by"),
        sa.Column("agreement_version", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="proposed"),
        sa.Column("votes_for", sa.Integer, server_default="0"),
        sa.Column("votes_against", sa.Integer, server_default="0"),
        _created_at(),
    )

    op.create_table(
        "amendment_votes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "amendment_id", sa.Integer,
            sa.ForeignKey("amendments.id", ondelete="CASCADE"), nullable=False,
        ),
        _user_fk(),
        sa.Column("support", sa.Boolean, nullable=False),
        _created_at(),
        sa.UniqueConstraint("amendment_id", "user_id", name="uq_amendment_votes_user"),
    )

    op.create_table(
        "polls",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        _user_fk("created_by"),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("quarter_year", sa.String(10), nullable=True),
        _created_at(),
    )

    op.create_table(
        "poll_options",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "poll_id", sa.Integer,
            sa.ForeignKey("polls.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("text", sa.String(300), nullable=False),
        sa.Column("vote_count", sa.Integer, server_default="0"),
        sa.Column("position", sa.Integer, server_default="0"),
    )

    op.create_table(
        "poll_votes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "poll_id", sa.Integer,
            sa.ForeignKey("polls.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "option_id", sa.Integer,
            sa.ForeignKey("poll_options.id", ondelete="CASCADE"), nullable=False,
        ),
        _user_fk(),
        _created_at(),
        sa.UniqueConstraint("poll_id", "user_id", name="uq_poll_votes_user"),
    )

    # --- reactions ---
    op.create_table(
        "cosmic_reactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("content_type", sa.String(20), nullable=False),
        sa.Column("content_id", sa.Integer, nullable=False),
        sa.Column("emoji_type", sa.String(30), nullable=False),
        _created_at(),
        sa.UniqueConstraint(
            "user_id", "content_type", "content_id", "emoji_type",
            name="uq_cosmic_reactions_key",
        ),
    )
    op.create_index(
        "ix_cosmic_reactions_content", "cosmic_reactions", ["content_type", "content_id"],
    )

    op.create_table(
        "cosmic_emoji_metadata",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("emoji_type", sa.String(30), nullable=False, unique=True),
        sa.Column("display_emoji", sa.String(16), nullable=False),
        sa.Column("tooltip", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("sephirotic_path", sa.String(30), nullable=False),
        sa.Column("points_granted", sa.Integer, server_default="1"),
        sa.Column("animation_class", sa.String(50), nullable=False, server_default=""),
    )

    # --- donations ---
    op.create_table(
        "donations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer,
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("tier", sa.String(50), nullable=True),
        sa.Column("amount_cents", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="usd"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("checkout_session_id", sa.String(255), nullable=True, unique=True),
        _created_at(),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- settings & audit ---
    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text, nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_settings_category", "settings", ["category"])

    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.Integer, nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("before_snapshot", postgresql.JSONB, nullable=True),
        sa.Column("after_snapshot", postgresql.JSONB, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_admin_log_actor_time", "admin_log", ["actor_id", "timestamp"])
    op.create_index(
        "ix_admin_log_target", "admin_log", ["target_table", "target_id", "timestamp"],
    )


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    for table in (
        "admin_log", "settings", "donations",
        "cosmic_emoji_metadata", "cosmic_reactions",
        "poll_votes", "poll_options", "polls",
        "amendment_votes", "amendments", "votes", "proposals",
        "reward_redemptions", "rewards",
        "user_quests", "quests",
        "badge_progress", "user_badges", "badges",
        "comments", "discussions", "users",
    ):
        op.drop_table(table)
