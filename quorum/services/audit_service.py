"""
quorum.services.audit_service — Append-only Audit Trail
========================================================

Structured audit events (event name, level, category, details) written to
the ``audit_log`` table.

Two ways in:
  * :func:`log_audit_event`: opens its own transaction.  Used for
    run-level outcomes.  A failed write is logged and swallowed; auditing
    never fails the caller.
  * :func:`record_audit_event`: appends to a caller-owned session so the
    audit row commits (or rolls back) with the change it describes.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from quorum.database.engine import get_session
from quorum.database.models import AuditLog

logger = logging.getLogger(__name__)

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
MAX_LIST_LIMIT = 500


# ---------------------------------------------------------------------------
# Snapshot helpers
# ---------------------------------------------------------------------------

def _json_safe(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        result[col.name] = _json_safe(getattr(obj, col.key, None))
    return result


# ---------------------------------------------------------------------------
# Writers
# ---------------------------------------------------------------------------

def record_audit_event(
    session: Session,
    event: str,
    *,
    level: str = "INFO",
    category: str = "GENERAL",
    severity: str = "MEDIUM",
    target_table: str | None = None,
    target_id: str | None = None,
    details: dict | None = None,
) -> str:
    """Insert a row into audit_log within the current transaction.

    Returns the generated request id.
    """
    request_id = str(uuid.uuid4())
    session.add(AuditLog(
        request_id=request_id,
        event=event,
        level=level.upper(),
        category=category,
        severity=severity,
        target_table=target_table,
        target_id=target_id,
        details=_json_safe(details or {}),
    ))
    return request_id


def log_audit_event(
    engine: Engine,
    event: str,
    *,
    level: str = "INFO",
    category: str = "GENERAL",
    severity: str = "MEDIUM",
    details: dict | None = None,
) -> str | None:
    """Write one audit row in its own transaction.

    Returns the request id, or ``None`` if the write failed.
    """
    try:
        with get_session(engine) as session:
            request_id = record_audit_event(
                session,
                event,
                level=level,
                category=category,
                severity=severity,
                details=details,
            )
    except Exception:
        logger.exception("Failed to log audit event %s", event)
        return None

    logger.log(
        logging.getLevelName(level.upper()) if level.upper() in VALID_LEVELS else logging.INFO,
        "AUDIT %s [%s] %s",
        event, category, request_id,
    )
    return request_id


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------

def list_audit_events(
    engine: Engine,
    *,
    category: str | None = None,
    limit: int = 100,
) -> list[dict]:
    """Return the most recent audit rows, newest first."""
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    with get_session(engine) as session:
        q = select(AuditLog).order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        if category:
            q = q.where(AuditLog.category == category)
        rows = session.scalars(q.limit(limit)).all()
        return [row_to_dict(row) for row in rows]
