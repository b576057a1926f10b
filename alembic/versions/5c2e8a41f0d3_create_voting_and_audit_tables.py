"""Create voting tables and audit_log

Revision ID: 5c2e8a41f0d3
Revises:
Create Date: 2026-10-12 09:41:17.204118

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e8a41f0d3'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    """Create users, communities, members, voting_questions, votes, audit_log."""

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("wallet_address", sa.String(64), nullable=False, unique=True),
        sa.Column("username", sa.String(50), nullable=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
    )

    # --- communities ---
    op.create_table(
        "communities",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("on_chain_id", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("config", sa.Text, nullable=False, server_default="{}"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column(
            "created_by", sa.Integer,
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_communities_status", "communities", ["status"])

    # --- members ---
    op.create_table(
        "members",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "community_id", sa.Integer,
            sa.ForeignKey("communities.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column(
            "joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "approved_by", sa.Integer,
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", "community_id", name="uq_members_user_community"),
    )
    op.create_index(
        "ix_members_community_status", "members", ["community_id", "status"],
    )

    # --- voting_questions ---
    op.create_table(
        "voting_questions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("on_chain_id", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "community_id", sa.Integer,
            sa.ForeignKey("communities.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("options", sa.Text, nullable=False, server_default="[]"),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column(
            "created_by", sa.Integer,
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_voting_questions_community_status", "voting_questions",
        ["community_id", "status"],
    )

    # --- votes ---
    op.create_table(
        "votes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "question_id", sa.Integer,
            sa.ForeignKey("voting_questions.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "user_id", sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("vote_data", sa.Text, nullable=False, server_default="{}"),
        sa.Column("signature", sa.String(128), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
        sa.UniqueConstraint("question_id", "user_id", name="uq_votes_question_user"),
    )

    # --- audit_log ---
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.String(36), nullable=False),
        sa.Column("event", sa.String(100), nullable=False),
        sa.Column("level", sa.String(10), nullable=False, server_default="INFO"),
        sa.Column("category", sa.String(30), nullable=False, server_default="GENERAL"),
        sa.Column("severity", sa.String(10), nullable=False, server_default="MEDIUM"),
        sa.Column("target_table", sa.String(50), nullable=True),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("details", postgresql.JSONB, nullable=True),
        sa.Column(
            "timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_audit_log_category_time", "audit_log", ["category", "timestamp"],
    )
    op.create_index(
        "ix_audit_log_target", "audit_log",
        ["target_table", "target_id", "timestamp"],
    )


def downgrade() -> None:
    op.drop_index("ix_audit_log_target", table_name="audit_log")
    op.drop_index("ix_audit_log_category_time", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_table("votes")
    op.drop_index("ix_voting_questions_community_status", table_name="voting_questions")
    op.drop_table("voting_questions")
    op.drop_index("ix_members_community_status", table_name="members")
    op.drop_table("members")
    op.drop_index("ix_communities_status", table_name="communities")
    op.drop_table("communities")
    op.drop_table("users")
