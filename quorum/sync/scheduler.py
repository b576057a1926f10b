"""
quorum.sync.scheduler — Periodic Reconciliation Loop
=====================================================

Runs :meth:`StateReconciler.detect_and_resolve_conflicts` every
``interval`` seconds (15 minutes by default) on a background task.  A pass
that raises is logged and the loop carries on; the next tick is the retry.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quorum.sync.reconciliation import StateReconciler

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 15 * 60


class ReconciliationScheduler:
    """Background task that triggers a reconciliation pass on a fixed cadence."""

    def __init__(
        self,
        reconciler: StateReconciler,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        *,
        run_immediately: bool = True,
    ) -> None:
        self.reconciler = reconciler
        self.interval = interval
        self.run_immediately = run_immediately
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> None:
        """Run one pass, logging instead of raising."""
        try:
            result = await self.reconciler.detect_and_resolve_conflicts()
            logger.info(
                "Reconciliation task %s: conflicts=%d repairs=%d",
                result["status"], result["conflicts"], result["repairs"],
            )
        except Exception:
            logger.exception("Reconciliation task failed", extra={"task": "reconciliation"})

    async def _loop(self) -> None:
        if self.run_immediately:
            await self.tick()
        while True:
            await asyncio.sleep(self.interval)
            await self.tick()

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Start the background loop (no-op if already started)."""
        if self._task is not None:
            return
        loop = loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._loop(), name="reconciliation-loop")
        logger.info("Reconciliation scheduled every %.0f s", self.interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to unwind."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
