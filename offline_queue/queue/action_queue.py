"""
Action Queue - In-memory store of client intents awaiting replay.

This module owns every queued action record. Admission, dedup, status
transitions and capacity enforcement all happen here, and nothing else
mutates a record. All operations are synchronous: within one event loop
a transition can never interleave with another, which is what keeps a
single action from being claimed by two replay passes.

State lives only in process memory; a restart discards the queue.
"""

import copy
import logging
from typing import Any, Iterable, Optional

from ..core.config import QueueConfig
from ..core.utils import Clock, generate_queue_id, utc_now
from ..models.schemas import SUPPORTED_METHODS, ActionStatus, QueuedAction, QueueStats
from .dedup import DedupKeyBuilder

logger = logging.getLogger(__name__)


class InvalidActionError(ValueError):
    """Raised when an admission request is malformed (client error)."""


class ActionQueue:
    """
    Bounded holding area for queued actions.

    The queue:
    - Returns the existing pending action for a duplicate admission
    - Evicts the oldest pending work rather than reject fresh intent
    - Enforces the pending → processing → completed/pending/failed lifecycle
    - Spends one attempt per processing claim, failing the action once
      the budget is gone

    Query methods hand out copies, so callers can read records freely
    without being able to change them.
    """

    def __init__(self, config: Optional[QueueConfig] = None, clock: Optional[Clock] = None):
        self.config = config or QueueConfig()
        self.capacity = self.config.max_size
        self.max_attempts = self.config.max_attempts
        self._clock = clock or utc_now
        self._dedup = DedupKeyBuilder(self.config.dedup_rules)
        self._actions: dict[str, QueuedAction] = {}
        self._pending_keys: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._actions)

    # ------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------

    def admit(
        self,
        action_kind: str,
        target_path: str,
        method: str,
        payload: Any,
        headers: Optional[dict[str, str]] = None,
        owner_id: Optional[str] = None
    ) -> QueuedAction:
        """
        Add an action to the queue, or return the pending duplicate.

        Args:
            action_kind: Semantic tag of the intent
            target_path: Handler path to replay against
            method: One of POST, PUT, PATCH, DELETE
            payload: Request body; must not be None
            headers: Optional headers forwarded on replay
            owner_id: Optional submitting user/session

        Returns:
            The admitted action, or the existing pending one with the
            same dedup key

        Raises:
            InvalidActionError: method unsupported or payload missing
        """
        verb = (method or "").upper()
        if verb not in SUPPORTED_METHODS:
            raise InvalidActionError(
                f"Unsupported method '{method}'; expected one of {', '.join(SUPPORTED_METHODS)}"
            )
        if payload is None:
            raise InvalidActionError("Payload is required")

        now = self._clock()
        dedup_key = self._dedup.build(action_kind, target_path, payload, now)

        existing_id = self._pending_keys.get(dedup_key)
        if existing_id is not None:
            logger.debug(f"Duplicate {action_kind} admission, returning {existing_id}")
            return self._actions[existing_id].model_copy(deep=True)

        if len(self._actions) >= self.capacity:
            self._evict()

        action_id = generate_queue_id()
        while action_id in self._actions:
            action_id = generate_queue_id()

        action = QueuedAction(
            id=action_id,
            action_kind=action_kind,
            target_path=target_path,
            method=verb,
            payload=copy.deepcopy(payload),
            headers=dict(headers) if headers else None,
            owner_id=owner_id,
            submitted_at=now,
            dedup_key=dedup_key,
        )
        self._actions[action_id] = action
        self._pending_keys[dedup_key] = action_id

        logger.info(f"Admitted {action_kind} as {action_id} ({verb} {target_path})")
        return action.model_copy(deep=True)

    def _evict(self) -> None:
        """
        Make room by dropping the oldest pending records.

        When nothing is pending, the oldest terminal records go instead.
        Records being processed are never evicted; if that is all the
        queue holds, the new action is admitted over capacity.
        """
        batch = self.config.eviction_batch
        victims = [a for a in self._ordered() if a.status == ActionStatus.PENDING][:batch]
        if not victims:
            victims = [a for a in self._ordered() if a.status.is_terminal][:batch]

        if not victims:
            logger.warning(
                f"Queue at capacity ({self.capacity}) with every action in flight; "
                "admitting over capacity"
            )
            return

        for action in victims:
            self._remove(action.id)

        logger.warning(
            f"Queue at capacity ({self.capacity}), evicted {len(victims)} "
            f"{victims[0].status.value} action(s)"
        )

    # ------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------

    def transition(
        self,
        action_id: str,
        new_status: ActionStatus,
        error: Optional[str] = None
    ) -> bool:
        """
        Move an action to a new status.

        Args:
            action_id: The action identifier
            new_status: Requested status
            error: Failure description, recorded as last_error

        Returns:
            True if the transition was applied. A failed request is
            reported as applied even when the action lands back on
            pending; read the record to see where it ended up.
        """
        action = self._actions.get(action_id)
        if action is None:
            return False

        new_status = ActionStatus(new_status)
        current = action.status

        if new_status == ActionStatus.PROCESSING:
            if current != ActionStatus.PENDING:
                return False
            if action.attempts >= self.max_attempts:
                self._release_key(action)
                action.status = ActionStatus.FAILED
                action.last_error = (
                    error or action.last_error
                    or f"Max retries ({self.max_attempts}) exceeded"
                )
                logger.warning(f"Action {action_id} out of attempts, marked failed")
                return False
            self._release_key(action)
            action.status = ActionStatus.PROCESSING
            action.attempts += 1
            logger.debug(f"Action {action_id} processing (attempt {action.attempts})")
            return True

        if current != ActionStatus.PROCESSING:
            return False

        if new_status == ActionStatus.COMPLETED:
            action.status = ActionStatus.COMPLETED
            if error:
                action.last_error = error

        elif new_status == ActionStatus.FAILED:
            if error:
                action.last_error = error
            if action.attempts < self.max_attempts:
                self._rearm(action)
            else:
                action.status = ActionStatus.FAILED

        else:
            # Release without spending a failure
            self._rearm(action)

        logger.debug(f"Action {action_id} {current.value} -> {action.status.value}")
        return True

    def _rearm(self, action: QueuedAction) -> None:
        holder = self._pending_keys.get(action.dedup_key)
        if holder is not None and holder != action.id:
            action.status = ActionStatus.FAILED
            action.last_error = f"Superseded by {holder}"
            logger.info(f"Action {action.id} superseded by pending duplicate {holder}")
            return
        action.status = ActionStatus.PENDING
        self._pending_keys[action.dedup_key] = action.id

    def _release_key(self, action: QueuedAction) -> None:
        if self._pending_keys.get(action.dedup_key) == action.id:
            del self._pending_keys[action.dedup_key]

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def _ordered(self, actions: Optional[Iterable[QueuedAction]] = None) -> list[QueuedAction]:
        # sorted() is stable, so equal timestamps keep admission order
        source = self._actions.values() if actions is None else actions
        return sorted(source, key=lambda a: a.submitted_at)

    def get(self, action_id: str) -> Optional[QueuedAction]:
        action = self._actions.get(action_id)
        return action.model_copy(deep=True) if action else None

    def by_owner(self, owner_id: str) -> list[QueuedAction]:
        """All actions submitted by an owner, oldest first."""
        owned = (a for a in self._actions.values() if a.owner_id == owner_id)
        return [a.model_copy(deep=True) for a in self._ordered(owned)]

    def pending(self) -> list[QueuedAction]:
        """All pending actions, oldest first."""
        waiting = (a for a in self._actions.values() if a.status == ActionStatus.PENDING)
        return [a.model_copy(deep=True) for a in self._ordered(waiting)]

    def snapshot(self) -> list[QueuedAction]:
        """Every record, oldest first."""
        return [a.model_copy(deep=True) for a in self._ordered()]

    def stats(self) -> QueueStats:
        counts = {status: 0 for status in ActionStatus}
        for action in self._actions.values():
            counts[action.status] += 1
        return QueueStats(
            total=len(self._actions),
            pending=counts[ActionStatus.PENDING],
            processing=counts[ActionStatus.PROCESSING],
            completed=counts[ActionStatus.COMPLETED],
            failed=counts[ActionStatus.FAILED],
            capacity=self.capacity,
        )

    # ------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------

    def purge(self, action_id: str) -> bool:
        """Remove an action regardless of its status."""
        if action_id not in self._actions:
            return False
        self._remove(action_id)
        return True

    def clear(self) -> None:
        """Drop every record."""
        self._actions.clear()
        self._pending_keys.clear()

    def _remove(self, action_id: str) -> None:
        action = self._actions.pop(action_id)
        self._release_key(action)
