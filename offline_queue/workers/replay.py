"""
Replay Driver - Replays queued actions against their handlers.

A pass is triggered explicitly (typically when a client reports that it
is back online). The driver walks the selected actions oldest-first and
processes exactly one at a time:

1. Claim the action (pending → processing, spending one attempt)
2. Dispatch it under a hard timeout
3. Record the outcome on the queue
4. Move on, whatever happened

One slow or broken handler therefore costs at most one timeout and
never aborts the rest of the batch.
"""

import asyncio
import logging
import time
from typing import Optional

from ..core.utils import truncate_string
from ..models.schemas import (
    ActionStatus,
    ProcessError,
    ProcessRequest,
    ProcessSummary,
    QueuedAction,
)
from ..queue.action_queue import ActionQueue
from ..queue.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class ReplayDriver:
    """
    Drives processing passes over an ActionQueue.

    The driver holds no state of its own between passes; everything it
    learns is written back to the queue through transition().
    """

    def __init__(self, queue: ActionQueue, dispatcher: Dispatcher, timeout: float = 8.0):
        self.queue = queue
        self.dispatcher = dispatcher
        self.timeout = timeout

    def select(self, selector: ProcessRequest) -> list[QueuedAction]:
        """
        Resolve a selector to the actions a pass should visit.

        Explicit ids include failed actions so the caller gets a terminal
        result for them; unknown, in-flight and completed ids are skipped.
        """
        if selector.ids is not None:
            wanted = set(selector.ids)
            return [
                a for a in self.queue.snapshot()
                if a.id in wanted
                and a.status in (ActionStatus.PENDING, ActionStatus.FAILED)
            ]
        if selector.owner_id is not None:
            return [
                a for a in self.queue.by_owner(selector.owner_id)
                if a.status == ActionStatus.PENDING
            ]
        if selector.process_all:
            return self.queue.pending()
        return []

    async def process(self, selector: ProcessRequest) -> ProcessSummary:
        """
        Run one processing pass.

        Args:
            selector: Which actions to replay

        Returns:
            Aggregate summary of the pass
        """
        actions = self.select(selector)
        summary = ProcessSummary()

        if not actions:
            return summary

        start_time = time.time()
        logger.info(f"Replay pass started for {len(actions)} action(s)")

        for action in actions:
            await self._process_one(action, summary)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Replay pass finished in {duration_ms:.0f}ms: "
            f"{summary.processed} processed, {summary.succeeded} succeeded, "
            f"{summary.failed} failed ({summary.retrying} will retry)"
        )
        return summary

    async def _process_one(self, action: QueuedAction, summary: ProcessSummary) -> None:
        if not self.queue.transition(action.id, ActionStatus.PROCESSING):
            current = self.queue.get(action.id)
            if current is None or current.status != ActionStatus.FAILED:
                # Claimed by a concurrent pass, or gone
                logger.debug(f"Skipping {action.id}: no longer claimable")
                return
            summary.processed += 1
            summary.failed += 1
            summary.errors.append(ProcessError(
                queue_id=action.id,
                error=current.last_error or "Action failed",
                will_retry=False,
            ))
            return

        summary.processed += 1
        error = await self._dispatch(action)

        if error is None:
            self.queue.transition(action.id, ActionStatus.COMPLETED)
            summary.succeeded += 1
            logger.info(f"Action {action.id} ({action.action_kind}) completed")
            return

        self.queue.transition(action.id, ActionStatus.FAILED, error)
        current = self.queue.get(action.id)
        will_retry = current is not None and current.status == ActionStatus.PENDING

        summary.failed += 1
        if will_retry:
            summary.retrying += 1
        summary.errors.append(ProcessError(
            queue_id=action.id,
            error=error,
            will_retry=will_retry,
        ))
        logger.warning(
            f"Action {action.id} ({action.action_kind}) failed: {error}"
            + (" - will retry" if will_retry else " - giving up")
        )

    async def _dispatch(self, action: QueuedAction) -> Optional[str]:
        """
        Dispatch one action.

        Returns:
            None on a 2xx response, otherwise a description of the failure
        """
        try:
            result = await asyncio.wait_for(
                self.dispatcher.dispatch(
                    action.method,
                    action.target_path,
                    action.payload,
                    action.headers,
                ),
                timeout=self.timeout,
            )
        except asyncio.CancelledError:
            self.queue.transition(action.id, ActionStatus.PENDING)
            raise
        except asyncio.TimeoutError:
            return f"Dispatch timed out after {self.timeout}s"
        except Exception as e:
            return truncate_string(f"{type(e).__name__}: {e}")

        if result.ok:
            return None
        detail = f": {truncate_string(result.body)}" if result.body else ""
        return f"Handler returned {result.status_code}{detail}"
