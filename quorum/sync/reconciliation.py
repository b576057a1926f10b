"""
quorum.sync.reconciliation — State Reconciliation Orchestrator
===============================================================

Compares the backend tables against on-chain state and repairs drift.

How a pass works:
    1. Run the five detectors in order: community → membership →
       question → vote → user.
    2. Resolve every conflict in detection order, one transaction each.
    3. Record the outcome in the reconciler's statistics and write a
       ``conflict_reconciliation_completed`` / ``..._failed`` audit event.

A pass either completes or fails as a whole; there are no retries here.
The next scheduled pass picks up whatever was left unresolved.

Only one pass runs at a time per reconciler.  A pass requested while another
is in flight returns ``{"status": "skipped"}`` and leaves the counters alone.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Engine

from quorum.blockchain.client import BlockchainService
from quorum.config import DEFAULT_BLOCKCHAIN_TIMEOUT_SECONDS, DEFAULT_NETWORK
from quorum.database.engine import run_db
from quorum.services import audit_service
from quorum.sync import detectors
from quorum.sync.conflicts import Conflict, ConflictType, EntityType
from quorum.sync.resolvers import AUDIT_CATEGORY, resolve_conflict

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconciliationStats:
    """Process-lifetime counters for one reconciler."""

    total_reconciliations: int = 0
    successful_reconciliations: int = 0
    failed_reconciliations: int = 0
    conflicts_resolved: int = 0
    data_repairs: int = 0

    def snapshot(self) -> dict[str, int]:
        return {
            "totalReconciliations": self.total_reconciliations,
            "successfulReconciliations": self.successful_reconciliations,
            "failedReconciliations": self.failed_reconciliations,
            "conflictsResolved": self.conflicts_resolved,
            "dataRepairs": self.data_repairs,
        }


class StateReconciler:
    """Detects and repairs backend/chain divergence.

    Usage::

        reconciler = StateReconciler(engine, blockchain, network="devnet")
        result = await reconciler.detect_and_resolve_conflicts()
        stats = reconciler.get_reconciliation_stats()
    """

    def __init__(
        self,
        engine: Engine,
        blockchain: BlockchainService,
        *,
        network: str = DEFAULT_NETWORK,
        timeout: float | None = DEFAULT_BLOCKCHAIN_TIMEOUT_SECONDS,
    ) -> None:
        self._engine = engine
        self._blockchain = blockchain
        self._network = network
        self._timeout = timeout
        self._stats = ReconciliationStats()
        self._lock = asyncio.Lock()
        self._last_run_at: datetime | None = None
        self._last_error: str | None = None

    # -------------------------------------------------------------------
    # Detectors
    # -------------------------------------------------------------------
    async def detect_community_conflicts(self) -> list[Conflict]:
        return await detectors.detect_community_conflicts(
            self._engine, self._blockchain.get_contract_manager(), timeout=self._timeout,
        )

    async def detect_membership_conflicts(self) -> list[Conflict]:
        return await detectors.detect_membership_conflicts(
            self._engine, self._blockchain.get_contract_manager(), timeout=self._timeout,
        )

    async def detect_question_conflicts(self) -> list[Conflict]:
        return await detectors.detect_question_conflicts(
            self._engine, self._blockchain.get_contract_manager(), timeout=self._timeout,
        )

    async def detect_vote_conflicts(self) -> list[Conflict]:
        return await detectors.detect_vote_conflicts(
            self._engine, self._blockchain.get_contract_manager(), timeout=self._timeout,
        )

    async def detect_user_conflicts(self) -> list[Conflict]:
        return await detectors.detect_user_conflicts(
            self._engine,
            self._blockchain.get_solana_client(),
            network=self._network,
            timeout=self._timeout,
        )

    async def _detect_by_type(self) -> dict[EntityType, list[Conflict]]:
        # Sequential on purpose: resolution order follows this order.
        return {
            EntityType.COMMUNITY: await self.detect_community_conflicts(),
            EntityType.MEMBERSHIP: await self.detect_membership_conflicts(),
            EntityType.QUESTION: await self.detect_question_conflicts(),
            EntityType.VOTE: await self.detect_vote_conflicts(),
            EntityType.USER: await self.detect_user_conflicts(),
        }

    async def detect_all_conflicts(self) -> list[Conflict]:
        by_type = await self._detect_by_type()
        return [conflict for conflicts in by_type.values() for conflict in conflicts]

    # -------------------------------------------------------------------
    # Passes
    # -------------------------------------------------------------------
    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def detect_and_resolve_conflicts(self) -> dict[str, Any]:
        """Run one full reconciliation pass.

        Returns ``{"status", "conflicts", "repairs", "error", "timestamp"}``
        where ``status`` is ``completed``, ``failed`` or ``skipped``.
        Failures are recorded and audited, never raised.
        """
        if self._lock.locked():
            logger.warning("Reconciliation already in progress; skipping this request")
            return _result("skipped")

        async with self._lock:
            return await self._run_pass()

    async def force_reconciliation(self) -> dict[str, Any]:
        """Run a pass on demand (admin action).  Shares counters with scheduled passes."""
        logger.info("Forcing reconciliation...")
        return await self.detect_and_resolve_conflicts()

    async def _run_pass(self) -> dict[str, Any]:
        self._stats.total_reconciliations += 1
        self._last_run_at = datetime.now(UTC)
        repairs = 0
        logger.info("Starting conflict detection and resolution...")

        try:
            conflicts = await self.detect_all_conflicts()
            logger.info("Detected %d conflicts", len(conflicts))

            for conflict in conflicts:
                if await run_db(resolve_conflict, self._engine, conflict):
                    repairs += 1
                    self._stats.data_repairs += 1
        except Exception as exc:
            self._stats.failed_reconciliations += 1
            self._last_error = str(exc)
            logger.exception("Conflict detection and resolution failed")
            await run_db(
                audit_service.log_audit_event,
                self._engine,
                "conflict_reconciliation_failed",
                level="ERROR",
                category=AUDIT_CATEGORY,
                severity="HIGH",
                details={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "repairs_before_failure": repairs,
                },
            )
            return _result("failed", repairs=repairs, error=str(exc))

        self._stats.successful_reconciliations += 1
        self._stats.conflicts_resolved += len(conflicts)
        self._last_error = None
        logger.info(
            "Conflict reconciliation complete: conflicts=%d repairs=%d",
            len(conflicts), repairs,
        )
        await run_db(
            audit_service.log_audit_event,
            self._engine,
            "conflict_reconciliation_completed",
            level="INFO",
            category=AUDIT_CATEGORY,
            details={
                "conflicts_resolved": len(conflicts),
                "data_repairs": repairs,
                "reconciliation_stats": self._stats.snapshot(),
            },
        )
        return _result("completed", conflicts=len(conflicts), repairs=repairs)

    # -------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------
    def get_reconciliation_stats(self) -> dict[str, int]:
        return self._stats.snapshot()

    def get_reconciliation_status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "last_error": self._last_error,
            "stats": self._stats.snapshot(),
        }

    async def get_conflict_summary(self) -> dict[str, Any]:
        """Run every detector without resolving anything.  Errors propagate."""
        by_type = await self._detect_by_type()
        conflicts = [conflict for group in by_type.values() for conflict in group]
        return {
            "total": len(conflicts),
            "byType": {entity.value: len(group) for entity, group in by_type.items()},
            "byConflictType": {
                kind.value: sum(1 for c in conflicts if c.conflict_type is kind)
                for kind in ConflictType
            },
            "timestamp": datetime.now(UTC).isoformat(),
        }


def _result(
    status: str,
    *,
    conflicts: int = 0,
    repairs: int = 0,
    error: str | None = None,
) -> dict[str, Any]:
    return {
        "status": status,
        "conflicts": conflicts,
        "repairs": repairs,
        "error": error,
        "timestamp": datetime.now(UTC).isoformat(),
    }
