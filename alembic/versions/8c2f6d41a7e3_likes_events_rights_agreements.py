"""Likes, events, rights agreements, activity-driven badge progress

Adds content_likes, events/event_attendees and rights_agreements; links
amendments to an agreement; gives badges an activity counter and target;
records whether a proposal's author has been paid.

Revision ID: 8c2f6d41a7e3
Revises: 5e1a7c3b9d20
Create Date: 2026-10-19 16:40:27.502113
"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '8c2f6d41a7e3'
down_revision: str | Sequence[str] | None = '5e1a7c3b9d20'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "content_likes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content_type", sa.String(20), nullable=False),
        sa.Column("content_id", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "user_id", "content_type", "content_id", name="uq_content_likes_key",
        ),
    )

    op.create_table(
        "rights_agreements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("version", sa.String(20), nullable=False, unique=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.add_column(
        "amendments",
        sa.Column(
            "agreement_id", sa.Integer,
            sa.ForeignKey(
                "rights_agreements.id", ondelete="SET NULL",
                name="amendments_agreement_id_fkey",
            ),
            nullable=True,
        ),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="gathering"),
        sa.Column(
            "created_by", sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("attendees", sa.Integer, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_events_starts_at", "events", ["starts_at"])
    op.create_table(
        "event_attendees",
        sa.Column(
            "event_id", sa.Integer,
            sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "user_id", sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.add_column("badges", sa.Column("progress_key", sa.String(50), nullable=True))
    op.add_column("badges", sa.Column("progress_target", sa.Integer, nullable=True))

    op.add_column(
        "proposals",
        sa.Column("author_rewarded", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    # Proposals that already passed were paid under the old rule
    op.execute(
        "UPDATE proposals SET author_rewarded = TRUE "
        "WHERE status IN ('passed', 'implemented')"
    )


def downgrade() -> None:
    op.drop_column("proposals", "author_rewarded")
    op.drop_column("badges", "progress_target")
    op.drop_column("badges", "progress_key")
    op.drop_table("event_attendees")
    op.drop_index("ix_events_starts_at", table_name="events")
    op.drop_table("events")
    op.drop_constraint("amendments_agreement_id_fkey", "amendments", type_="foreignkey")
    op.drop_column("amendments", "agreement_id")
    op.drop_table("rights_agreements")
    op.drop_table("content_likes")
