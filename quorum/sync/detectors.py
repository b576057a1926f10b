"""
quorum.sync.detectors — Backend vs. Chain Conflict Detection
=============================================================

One detector per entity type.  Each detector:

    1. Loads every non-quarantined backend row (``status != 'inactive'``),
       in primary-key order, on a worker thread via ``run_db``.
    2. Queries the matching on-chain record, bounded by ``timeout``.
    3. Emits ``missing_on_blockchain`` when the chain returns ``None`` and
       ``data_mismatch`` when :func:`diff_fields` reports a difference.

Any exception (DB, transport, timeout) propagates so the calling pass can be
recorded as failed.  Rows are never skipped on error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from quorum.blockchain.client import ContractManager, SolanaClient
from quorum.database.engine import run_db
from quorum.database.models import (
    Community,
    Member,
    MemberStatus,
    RecordStatus,
    User,
    Vote,
    VotingQuestion,
)
from quorum.services.audit_service import row_to_dict
from quorum.sync.conflicts import (
    COMMUNITY_FIELDS,
    MEMBERSHIP_FIELDS,
    QUESTION_FIELDS,
    VOTE_FIELDS,
    Conflict,
    ConflictType,
    EntityType,
    diff_fields,
)
from quorum.sync.errors import BlockchainTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0


# ---------------------------------------------------------------------------
# Backend loaders (synchronous: run through run_db)
# ---------------------------------------------------------------------------

def load_communities(engine: Engine) -> list[Community]:
    with Session(engine) as session:
        return list(session.scalars(
            select(Community)
            .where(Community.status != RecordStatus.INACTIVE.value)
            .order_by(Community.id)
        ).all())


def load_memberships(engine: Engine) -> list[tuple[Member, str, str]]:
    """Return ``(member, community_on_chain_id, wallet_address)`` rows."""
    with Session(engine) as session:
        rows = session.execute(
            select(Member, Community.on_chain_id, User.wallet_address)
            .join(Community, Member.community_id == Community.id)
            .join(User, Member.user_id == User.id)
            .where(Member.status != MemberStatus.INACTIVE.value)
            .order_by(Member.id)
        ).all()
        return [(row[0], row[1], row[2]) for row in rows]


def load_questions(engine: Engine) -> list[VotingQuestion]:
    with Session(engine) as session:
        return list(session.scalars(
            select(VotingQuestion)
            .where(VotingQuestion.status != RecordStatus.INACTIVE.value)
            .order_by(VotingQuestion.id)
        ).all())


def load_votes(engine: Engine) -> list[tuple[Vote, str, str]]:
    """Return ``(vote, question_on_chain_id, wallet_address)`` rows."""
    with Session(engine) as session:
        rows = session.execute(
            select(Vote, VotingQuestion.on_chain_id, User.wallet_address)
            .join(VotingQuestion, Vote.question_id == VotingQuestion.id)
            .join(User, Vote.user_id == User.id)
            .where(Vote.status != RecordStatus.INACTIVE.value)
            .order_by(Vote.id)
        ).all()
        return [(row[0], row[1], row[2]) for row in rows]


def load_users(engine: Engine) -> list[User]:
    with Session(engine) as session:
        return list(session.scalars(
            select(User)
            .where(User.status != RecordStatus.INACTIVE.value)
            .order_by(User.id)
        ).all())


# ---------------------------------------------------------------------------
# Chain access
# ---------------------------------------------------------------------------

async def _query_chain(
    lookup: Awaitable[T],
    *,
    entity_type: EntityType,
    key: str,
    timeout: float | None,
) -> T:
    """Await *lookup*, converting a timeout into :class:`BlockchainTimeoutError`."""
    if timeout is None:
        return await lookup
    try:
        return await asyncio.wait_for(lookup, timeout)
    except TimeoutError as exc:
        raise BlockchainTimeoutError(entity_type.value, key, timeout) from exc


def _classify(
    entity_type: EntityType,
    row: Any,
    chain_data: Any,
    *,
    specs,
    **keys: str,
) -> Conflict | None:
    if chain_data is None:
        return Conflict(
            type=entity_type,
            entity_id=row.id,
            conflict_type=ConflictType.MISSING_ON_BLOCKCHAIN,
            backend_data=row_to_dict(row),
            blockchain_data=None,
            **keys,
        )
    mismatched = diff_fields(specs, row, chain_data)
    if not mismatched:
        return None
    return Conflict(
        type=entity_type,
        entity_id=row.id,
        conflict_type=ConflictType.DATA_MISMATCH,
        backend_data=row_to_dict(row),
        blockchain_data=chain_data,
        mismatched_fields=mismatched,
        **keys,
    )


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------

async def detect_community_conflicts(
    engine: Engine,
    contracts: ContractManager,
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> list[Conflict]:
    conflicts: list[Conflict] = []
    for community in await run_db(load_communities, engine):
        chain_data = await _query_chain(
            contracts.get_community_data(community.on_chain_id),
            entity_type=EntityType.COMMUNITY,
            key=community.on_chain_id,
            timeout=timeout,
        )
        conflict = _classify(
            EntityType.COMMUNITY, community, chain_data,
            specs=COMMUNITY_FIELDS, on_chain_id=community.on_chain_id,
        )
        if conflict is not None:
            conflicts.append(conflict)

    logger.debug("Community scan: %d conflicts", len(conflicts))
    return conflicts


async def detect_membership_conflicts(
    engine: Engine,
    contracts: ContractManager,
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> list[Conflict]:
    conflicts: list[Conflict] = []
    for member, community_on_chain_id, wallet in await run_db(load_memberships, engine):
        chain_data = await _query_chain(
            contracts.get_membership_data(community_on_chain_id, wallet),
            entity_type=EntityType.MEMBERSHIP,
            key=f"{community_on_chain_id}/{wallet}",
            timeout=timeout,
        )
        conflict = _classify(
            EntityType.MEMBERSHIP, member, chain_data,
            specs=MEMBERSHIP_FIELDS,
            community_on_chain_id=community_on_chain_id,
            user_address=wallet,
        )
        if conflict is not None:
            conflicts.append(conflict)

    logger.debug("Membership scan: %d conflicts", len(conflicts))
    return conflicts


async def detect_question_conflicts(
    engine: Engine,
    contracts: ContractManager,
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> list[Conflict]:
    conflicts: list[Conflict] = []
    for question in await run_db(load_questions, engine):
        chain_data = await _query_chain(
            contracts.get_question_data(question.on_chain_id),
            entity_type=EntityType.QUESTION,
            key=question.on_chain_id,
            timeout=timeout,
        )
        conflict = _classify(
            EntityType.QUESTION, question, chain_data,
            specs=QUESTION_FIELDS, on_chain_id=question.on_chain_id,
        )
        if conflict is not None:
            conflicts.append(conflict)

    logger.debug("Question scan: %d conflicts", len(conflicts))
    return conflicts


async def detect_vote_conflicts(
    engine: Engine,
    contracts: ContractManager,
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> list[Conflict]:
    conflicts: list[Conflict] = []
    for vote, question_on_chain_id, wallet in await run_db(load_votes, engine):
        chain_data = await _query_chain(
            contracts.get_vote_data(question_on_chain_id, wallet),
            entity_type=EntityType.VOTE,
            key=f"{question_on_chain_id}/{wallet}",
            timeout=timeout,
        )
        conflict = _classify(
            EntityType.VOTE, vote, chain_data,
            specs=VOTE_FIELDS,
            question_on_chain_id=question_on_chain_id,
            user_address=wallet,
        )
        if conflict is not None:
            conflicts.append(conflict)

    logger.debug("Vote scan: %d conflicts", len(conflicts))
    return conflicts


async def detect_user_conflicts(
    engine: Engine,
    solana: SolanaClient,
    *,
    network: str | None = None,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> list[Conflict]:
    """Flag users whose wallet has no account on *network*.

    Users only ever produce ``missing_on_blockchain``; there is no on-chain
    profile to compare fields against.
    """
    conflicts: list[Conflict] = []
    users = await run_db(load_users, engine)
    if not users:
        return conflicts

    connection = solana.get_connection(network)
    for user in users:
        account = await _query_chain(
            connection.get_account_info(user.wallet_address),
            entity_type=EntityType.USER,
            key=user.wallet_address,
            timeout=timeout,
        )
        if account is None:
            conflicts.append(Conflict(
                type=EntityType.USER,
                entity_id=user.id,
                conflict_type=ConflictType.MISSING_ON_BLOCKCHAIN,
                backend_data=row_to_dict(user),
                blockchain_data=None,
                wallet_address=user.wallet_address,
            ))

    logger.debug("User scan: %d conflicts", len(conflicts))
    return conflicts
