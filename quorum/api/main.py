"""
quorum.api.main — FastAPI application entry point
==================================================

Run with::

    uvicorn quorum.api.main:app --port 8000 --workers 1

or ``python -m quorum.server``, which reads the port from config.yaml.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from quorum.api.deps import get_config, get_engine, get_reconciler  # noqa: E402
from quorum.api.routes.reconciliation import router as reconciliation_router  # noqa: E402
from quorum.sync.scheduler import ReconciliationScheduler  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: warm the DB engine, run the pass loop.

    The scheduler drives the same cached reconciler the admin routes use,
    so scheduled and forced passes share one in-flight guard and one set
    of counters.  Serve with a single worker process.
    """
    engine = get_engine()
    logger.info("Quorum API started (engine: %s)", engine.url.database)
    scheduler = ReconciliationScheduler(
        get_reconciler(), interval=get_config().reconcile_interval_minutes * 60,
    )
    scheduler.start()
    app.state.scheduler = scheduler
    try:
        yield
    finally:
        await scheduler.stop()
        logger.info("Quorum API shutting down")


app = FastAPI(
    title="Quorum Admin API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(reconciliation_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
