"""
Quorum — Blockchain/Backend State Reconciliation for DAO Voting
================================================================
Keeps the voting platform's database (communities, memberships, voting
questions, votes, users) consistent with the on-chain voting program.
The chain is authoritative: mismatched rows are overwritten from chain data
and rows the chain no longer knows are soft-deleted.

Package layout::

    quorum/
    ├── config.py          # YAML → typed Python config
    ├── server.py          # python -m quorum.server (API + scheduled passes)
    ├── blockchain/
    │   └── client.py      # Protocols for the external chain service
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models
    ├── services/
    │   └── audit_service.py  # Append-only audit trail
    ├── sync/
    │   ├── conflicts.py   # Conflict descriptor + declarative field diff
    │   ├── detectors.py   # Per-entity conflict detection
    │   ├── resolvers.py   # Transactional repair policies
    │   ├── reconciliation.py  # StateReconciler orchestrator + stats
    │   ├── scheduler.py   # Periodic reconciliation loop
    │   └── errors.py
    └── api/
        ├── main.py        # FastAPI app; lifespan runs the pass loop
        ├── deps.py        # Engine / reconciler / JWT admin guard
        └── routes/        # Admin reconciliation endpoints
"""

__version__ = "0.1.0"
