"""
quorum.api.routes.reconciliation — Admin reconciliation endpoints (JWT‑protected)
==================================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import Engine

from quorum.api.deps import AdminUser, get_engine, get_reconciler
from quorum.database.engine import run_db
from quorum.services import audit_service
from quorum.sync.reconciliation import StateReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ReconciliationStatsOut(BaseModel):
    totalReconciliations: int
    successfulReconciliations: int
    failedReconciliations: int
    conflictsResolved: int
    dataRepairs: int


class ReconciliationRunOut(BaseModel):
    status: str
    conflicts: int
    repairs: int
    error: str | None = None
    timestamp: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.get("/reconciliation/stats", response_model=ReconciliationStatsOut)
def reconciliation_stats(
    admin: AdminUser,
    reconciler: StateReconciler = Depends(get_reconciler),
):
    return reconciler.get_reconciliation_stats()


@router.get("/reconciliation/status")
def reconciliation_status(
    admin: AdminUser,
    reconciler: StateReconciler = Depends(get_reconciler),
):
    return reconciler.get_reconciliation_status()


@router.get("/reconciliation/conflicts")
async def conflict_summary(
    admin: AdminUser,
    reconciler: StateReconciler = Depends(get_reconciler),
):
    try:
        return await reconciler.get_conflict_summary()
    except Exception as exc:
        logger.exception("Conflict summary failed")
        raise HTTPException(502, f"Conflict detection failed: {exc}")


@router.post("/reconciliation/force", response_model=ReconciliationRunOut)
async def force_reconciliation(
    admin: AdminUser,
    reconciler: StateReconciler = Depends(get_reconciler),
):
    logger.info("Forced reconciliation requested by %s", admin.get("sub"))
    result = await reconciler.force_reconciliation()
    if result["status"] == "skipped":
        raise HTTPException(409, "A reconciliation pass is already running")
    return result


@router.get("/audit")
async def audit_log(
    admin: AdminUser,
    category: str | None = None,
    limit: int = Query(100, ge=1, le=audit_service.MAX_LIST_LIMIT),
    engine: Engine = Depends(get_engine),
):
    return await run_db(
        audit_service.list_audit_events, engine, category=category, limit=limit,
    )
