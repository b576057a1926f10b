"""
quorum.server — Entry point for ``python -m quorum.server``
============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Serve the admin API; its lifespan runs the reconciliation loop.

One process owns the reconciler, so uvicorn is pinned to a single worker.

Run with::

    uv run python -m quorum.server
"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from quorum.config import load_config
from quorum.database.engine import create_db_engine, init_db

logger = logging.getLogger("quorum")

APP_PATH = "quorum.api.main:app"


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )


def main() -> None:
    """Bootstrap the database and serve the API with scheduled passes."""
    configure_logging()

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded (platform: %s)", cfg.platform_name)

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)
    engine.dispose()

    # 4. Serve (blocks until Ctrl+C).
    logger.info(
        "Starting Quorum on port %d, passes every %d min",
        cfg.dashboard_port, cfg.reconcile_interval_minutes,
    )
    uvicorn.run(
        APP_PATH,
        host="0.0.0.0",
        port=cfg.dashboard_port,
        workers=1,
        log_config=None,
    )


if __name__ == "__main__":
    main()
