"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of quorum.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import json  # noqa: E402
from collections.abc import Mapping  # noqa: E402
from datetime import UTC, datetime  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from quorum.database.models import (  # noqa: E402
    Base,
    Community,
    Member,
    User,
    Vote,
    VotingQuestion,
)

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Quorum tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session for seeding and inspecting rows."""
    with Session(db_engine, expire_on_commit=False) as session:
        yield session
        session.rollback()


@pytest.fixture
def admin_token():
    """Generate a valid admin JWT for use in API integration tests."""
    return make_admin_token()


def make_admin_token(sub: str = "99999", username: str = "FixtureAdmin") -> str:
    """Create an admin JWT.  Usable as both a fixture and a factory function."""
    import jwt

    from quorum.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "username": username, "is_admin": True},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


@pytest.fixture
def client():
    """Create a FastAPI TestClient with raise_server_exceptions=False."""
    from fastapi.testclient import TestClient

    from quorum.api.main import app

    return TestClient(app, raise_server_exceptions=False)


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------
DEADLINE = datetime(2026, 11, 1, 12, 0, tzinfo=UTC)


def seed_voting_state(session: Session) -> dict[str, Any]:
    """Insert one user, community, membership, question and vote.

    Returns the created rows keyed by entity name.  Values match
    :func:`chain_state_for` so a fresh seed reconciles cleanly.
    """
    user = User(wallet_address="WaLLet1111", username="alice")
    session.add(user)
    session.flush()

    community = Community(
        on_chain_id="comm-1",
        name="Alpha DAO",
        description="First community",
        config=json.dumps({"quorum": 3, "public": True}),
        created_by=user.id,
    )
    session.add(community)
    session.flush()

    member = Member(
        user_id=user.id, community_id=community.id, role="admin", status="approved",
    )
    question = VotingQuestion(
        on_chain_id="q-1",
        community_id=community.id,
        title="Adopt charter?",
        description="Vote on the charter",
        options=json.dumps(["yes", "no"]),
        deadline=DEADLINE,
        created_by=user.id,
    )
    session.add_all([member, question])
    session.flush()

    vote = Vote(
        question_id=question.id,
        user_id=user.id,
        vote_data=json.dumps({"choice": "yes"}),
        signature="sig-abc",
    )
    session.add(vote)
    session.commit()
    return {
        "user": user,
        "community": community,
        "member": member,
        "question": question,
        "vote": vote,
    }


def chain_state_for(rows: Mapping[str, Any]) -> dict[str, Any]:
    """Build chain-side records that agree with :func:`seed_voting_state`."""
    return {
        "communities": {
            "comm-1": {
                "name": "Alpha DAO",
                "description": "First community",
                "config": {"public": True, "quorum": 3},
            },
        },
        "memberships": {
            ("comm-1", "WaLLet1111"): {"role": "admin", "status": "approved"},
        },
        "questions": {
            "q-1": {
                "title": "Adopt charter?",
                "description": "Vote on the charter",
                "options": ["yes", "no"],
                "deadline": int(DEADLINE.timestamp()),
                "status": "active",
            },
        },
        "votes": {
            ("q-1", "WaLLet1111"): {"vote_data": {"choice": "yes"}, "signature": "sig-abc"},
        },
        "accounts": {"WaLLet1111": {"lamports": 1_000_000}},
    }


def make_blockchain(state: Mapping[str, Any] | None = None) -> MagicMock:
    """Return a mock blockchain service backed by *state* dicts.

    Lookups return ``None`` for keys absent from *state*.  The individual
    ``AsyncMock`` methods are exposed on the returned mock so tests can
    swap in ``side_effect`` errors.
    """
    state = state or {}
    communities = state.get("communities", {})
    memberships = state.get("memberships", {})
    questions = state.get("questions", {})
    votes = state.get("votes", {})
    accounts = state.get("accounts", {})

    contracts = MagicMock()
    contracts.get_community_data = AsyncMock(side_effect=lambda cid: communities.get(cid))
    contracts.get_membership_data = AsyncMock(
        side_effect=lambda cid, wallet: memberships.get((cid, wallet))
    )
    contracts.get_question_data = AsyncMock(side_effect=lambda qid: questions.get(qid))
    contracts.get_vote_data = AsyncMock(
        side_effect=lambda qid, wallet: votes.get((qid, wallet))
    )

    connection = MagicMock()
    connection.get_account_info = AsyncMock(side_effect=lambda addr: accounts.get(addr))
    solana = MagicMock()
    solana.get_connection.return_value = connection

    blockchain = MagicMock()
    blockchain.get_contract_manager.return_value = contracts
    blockchain.get_solana_client.return_value = solana
    blockchain.contracts = contracts
    blockchain.solana = solana
    blockchain.connection = connection
    return blockchain


@pytest.fixture
def seeded(db_session: Session) -> dict[str, Any]:
    return seed_voting_state(db_session)
