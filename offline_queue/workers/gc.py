"""
Garbage Collector - Removes finished actions once they are old enough.

Completed and failed actions are kept around for a retention window so
clients can still read their final status, then swept. Pending and
processing actions are never touched, however old they are.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from ..core.utils import Clock, utc_now
from ..queue.action_queue import ActionQueue

logger = logging.getLogger(__name__)


class GarbageCollector:
    """
    Periodic sweep over an ActionQueue.

    sweep() does one pass synchronously; start()/stop() run it on an
    interval in a background task owned by the application lifespan.
    """

    def __init__(
        self,
        queue: ActionQueue,
        retention_seconds: int = 24 * 60 * 60,
        interval_seconds: int = 60 * 60,
        clock: Optional[Clock] = None
    ):
        self.queue = queue
        self.retention = timedelta(seconds=retention_seconds)
        self.interval = interval_seconds
        self._clock = clock or utc_now
        self._task: Optional[asyncio.Task] = None
        self.running = False

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Remove terminal actions older than the retention window.

        Args:
            now: Reference time; defaults to the collector's clock

        Returns:
            Number of actions removed
        """
        cutoff = (now or self._clock()) - self.retention
        removed = 0

        for action in self.queue.snapshot():
            if action.status.is_terminal and action.submitted_at < cutoff:
                if self.queue.purge(action.id):
                    removed += 1

        if removed:
            logger.info(f"Garbage collection removed {removed} finished action(s)")
        return removed

    async def start(self) -> None:
        """Start sweeping in the background."""
        if self._task is not None:
            return
        self.running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            f"Garbage collector started (every {self.interval}s, "
            f"retention {int(self.retention.total_seconds())}s)"
        )

    async def stop(self) -> None:
        """Stop the background task and wait for it to exit."""
        self.running = False
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Garbage collector stopped")

    async def _loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.interval)
            try:
                self.sweep()
            except Exception as e:
                # Keep the loop alive; the next tick retries
                logger.error(f"Garbage collection sweep failed: {str(e)}", exc_info=True)
