"""
quorum.database.models — SQLAlchemy 2.0 Data Models
====================================================

Backend mirror of the on-chain voting state.

Tables:
- users            Wallet-anchored member identities
- communities      DAO communities (one per on-chain community account)
- members          Community memberships with role and approval status
- voting_questions Questions put to a community vote
- votes            Cast ballots, one per (question, user)
- audit_log        Append-only audit trail

``config``, ``options`` and ``vote_data`` are stored as serialized JSON text.
Reconciliation deserializes them before comparing against chain data.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
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
    """Shared base for all Quorum ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class RecordStatus(enum.StrEnum):
    """Lifecycle of communities, questions, votes and users."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class MemberRole(enum.StrEnum):
    MEMBER = "member"
    MODERATOR = "moderator"
    ADMIN = "admin"


class MemberStatus(enum.StrEnum):
    """Membership approval states.  ``INACTIVE`` marks a quarantined row."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    BANNED = "banned"
    INACTIVE = "inactive"


# ---------------------------------------------------------------------------
# Users: one row per wallet
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_address: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    username: Mapped[str | None] = mapped_column(String(50), default=None)
    display_name: Mapped[str | None] = mapped_column(String(100), default=None)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RecordStatus.ACTIVE.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    memberships: Mapped[list[Member]] = relationship(
        back_populates="user", foreign_keys="Member.user_id"
    )
    votes: Mapped[list[Vote]] = relationship(back_populates="user")

    def __repr__(self) -> str:
        return f"<User id={self.id} wallet={self.wallet_address!r}>"


# ---------------------------------------------------------------------------
# Communities
# ---------------------------------------------------------------------------
class Community(Base):
    __tablename__ = "communities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    on_chain_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    config: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RecordStatus.ACTIVE.value
    )
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    members: Mapped[list[Member]] = relationship(
        back_populates="community", cascade="all, delete-orphan"
    )
    questions: Mapped[list[VotingQuestion]] = relationship(
        back_populates="community", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_communities_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Community id={self.id} on_chain={self.on_chain_id!r} name={self.name!r}>"


# ---------------------------------------------------------------------------
# Members: community membership
# ---------------------------------------------------------------------------
class Member(Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    community_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("communities.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MemberRole.MEMBER.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MemberStatus.PENDING.value
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    approved_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="memberships", foreign_keys=[user_id])
    community: Mapped[Community] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "community_id", name="uq_members_user_community"),
        Index("ix_members_community_status", "community_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Member id={self.id} user={self.user_id} "
            f"community={self.community_id} role={self.role!r}>"
        )


# ---------------------------------------------------------------------------
# VotingQuestion
# ---------------------------------------------------------------------------
class VotingQuestion(Base):
    __tablename__ = "voting_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    on_chain_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    community_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("communities.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    options: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RecordStatus.ACTIVE.value
    )
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    community: Mapped[Community] = relationship(back_populates="questions")
    votes: Mapped[list[Vote]] = relationship(
        back_populates="question", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_voting_questions_community_status", "community_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<VotingQuestion id={self.id} on_chain={self.on_chain_id!r}>"


# ---------------------------------------------------------------------------
# Vote: one ballot per (question, user)
# ---------------------------------------------------------------------------
class Vote(Base):
    __tablename__ = "votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("voting_questions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    vote_data: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    signature: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RecordStatus.ACTIVE.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    question: Mapped[VotingQuestion] = relationship(back_populates="votes")
    user: Mapped[User] = relationship(back_populates="votes")

    __table_args__ = (
        UniqueConstraint("question_id", "user_id", name="uq_votes_question_user"),
    )

    def __repr__(self) -> str:
        return f"<Vote id={self.id} question={self.question_id} user={self.user_id}>"


# ---------------------------------------------------------------------------
# AuditLog: append-only audit trail
# ---------------------------------------------------------------------------
class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event: Mapped[str] = mapped_column(String(100), nullable=False)
    level: Mapped[str] = mapped_column(String(10), nullable=False, default="INFO")
    category: Mapped[str] = mapped_column(String(30), nullable=False, default="GENERAL")
    severity: Mapped[str] = mapped_column(String(10), nullable=False, default="MEDIUM")
    target_table: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_audit_log_category_time", "category", "timestamp"),
        Index("ix_audit_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog id={self.id} event={self.event!r} level={self.level}>"
