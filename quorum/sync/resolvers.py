"""
quorum.sync.resolvers — Transactional Conflict Repair
======================================================

Every resolution follows the pattern:
  1. Begin transaction
  2. Load the current row by ``entity_id`` (vanished row → no-op commit)
  3. Read "before" snapshot
  4. Apply the repair policy
  5. Write a ``conflict_resolved`` audit row with before/after snapshots
  6. Commit (roll back and re-raise on any failure)

Policy: the chain is authoritative.  ``data_mismatch`` overwrites the compared
fields from the chain snapshot; ``missing_on_blockchain`` soft-deletes the row
by setting ``status='inactive'``.  Rows are never hard-deleted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Engine, update
from sqlalchemy.orm import Session

from quorum.database.engine import get_session
from quorum.database.models import (
    Community,
    Member,
    MemberStatus,
    RecordStatus,
    User,
    Vote,
    VotingQuestion,
)
from quorum.services.audit_service import record_audit_event, row_to_dict
from quorum.sync.conflicts import (
    FIELDS_BY_ENTITY,
    Conflict,
    ConflictType,
    EntityType,
    repaired_values,
)

logger = logging.getLogger(__name__)

AUDIT_CATEGORY = "RECONCILIATION"

MODEL_BY_ENTITY: dict[EntityType, type] = {
    EntityType.COMMUNITY: Community,
    EntityType.MEMBERSHIP: Member,
    EntityType.QUESTION: VotingQuestion,
    EntityType.VOTE: Vote,
    EntityType.USER: User,
}


# ---------------------------------------------------------------------------
# Policies: each mutates *row* inside *session* and returns extra audit info
# ---------------------------------------------------------------------------

def _deactivate(session: Session, row: Any, conflict: Conflict) -> dict:
    row.status = RecordStatus.INACTIVE.value
    return {}


def _deactivate_community(session: Session, row: Community, conflict: Conflict) -> dict:
    """Mark the community inactive and cascade to all of its memberships."""
    row.status = RecordStatus.INACTIVE.value
    result = session.execute(
        update(Member)
        .where(Member.community_id == row.id)
        .values(status=MemberStatus.INACTIVE.value, updated_at=datetime.now(UTC))
    )
    return {"memberships_deactivated": result.rowcount}


def _overwrite_from_chain(session: Session, row: Any, conflict: Conflict) -> dict:
    values = repaired_values(FIELDS_BY_ENTITY[conflict.type], conflict.blockchain_data)
    for column, value in values.items():
        setattr(row, column, value)
    row.updated_at = datetime.now(UTC)
    return {"fields": sorted(values)}


Policy = Callable[[Session, Any, Conflict], dict]

POLICIES: dict[tuple[EntityType, ConflictType], Policy] = {
    (EntityType.COMMUNITY, ConflictType.MISSING_ON_BLOCKCHAIN): _deactivate_community,
    (EntityType.COMMUNITY, ConflictType.DATA_MISMATCH): _overwrite_from_chain,
    (EntityType.MEMBERSHIP, ConflictType.MISSING_ON_BLOCKCHAIN): _deactivate,
    (EntityType.MEMBERSHIP, ConflictType.DATA_MISMATCH): _overwrite_from_chain,
    (EntityType.QUESTION, ConflictType.MISSING_ON_BLOCKCHAIN): _deactivate,
    (EntityType.QUESTION, ConflictType.DATA_MISMATCH): _overwrite_from_chain,
    (EntityType.VOTE, ConflictType.MISSING_ON_BLOCKCHAIN): _deactivate,
    (EntityType.VOTE, ConflictType.DATA_MISMATCH): _overwrite_from_chain,
    (EntityType.USER, ConflictType.MISSING_ON_BLOCKCHAIN): _deactivate,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def resolve_conflict(engine: Engine, conflict: Conflict) -> bool:
    """Repair the row behind *conflict* in its own transaction.

    Returns ``True`` if a repair was applied, ``False`` for a no-op (stale
    conflict or unsupported combination).  Errors roll back and propagate.
    """
    policy = POLICIES.get((conflict.type, conflict.conflict_type))
    if policy is None:
        logger.warning(
            "No resolver for %s/%s (entity %s)",
            conflict.type, conflict.conflict_type, conflict.entity_id,
        )
        return False

    model_cls = MODEL_BY_ENTITY[conflict.type]
    with get_session(engine) as session:
        row = session.get(model_cls, conflict.entity_id)
        if row is None:
            logger.info(
                "Stale conflict: %s %s no longer exists", conflict.type, conflict.entity_id
            )
            return False

        before = row_to_dict(row)
        extra = policy(session, row, conflict)
        session.flush()
        record_audit_event(
            session,
            "conflict_resolved",
            level="INFO",
            category=AUDIT_CATEGORY,
            target_table=model_cls.__tablename__,
            target_id=str(conflict.entity_id),
            details={
                "conflict": conflict.to_dict(),
                "before": before,
                "after": row_to_dict(row),
                **extra,
            },
        )

    logger.info(
        "Resolved %s conflict (%s) for entity %s",
        conflict.type, conflict.conflict_type, conflict.entity_id,
    )
    return True
