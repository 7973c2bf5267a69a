"""
Queue Admission API - Boundary between inbound requests and the queue.

Validates enqueue requests before they reach the queue and builds the
status views clients poll to learn what happened to their actions.
"""

import logging
import posixpath
from typing import Optional

from ..models.schemas import (
    SUPPORTED_METHODS,
    EnqueueRequest,
    EnqueueResponse,
    QueuedAction,
    QueuedActionView,
    QueueStatusResponse,
)
from .action_queue import ActionQueue, InvalidActionError

logger = logging.getLogger(__name__)

# Routes served by this service itself; replaying into them would nest
# passes or purge records behind a running pass
RESERVED_PATH_PREFIXES = ("/queue", "/health", "/docs", "/redoc", "/openapi.json")


def is_reserved_path(path: str) -> bool:
    """True for the root path and anything under the service's own routes."""
    path = path.split("?", 1)[0].split("#", 1)[0].lower()
    path = posixpath.normpath("/" + path.lstrip("/"))
    if path == "/":
        return True
    return any(path == p or path.startswith(p + "/") for p in RESERVED_PATH_PREFIXES)


class QueueAdmissionAPI:
    """
    Translates enqueue and status requests into ActionQueue calls.

    Enqueue always answers fast: it confirms admission and says nothing
    about the eventual replay outcome. Status is the only way to learn
    the final disposition.
    """

    def __init__(self, queue: ActionQueue, status_view_limit: int = 50):
        self.queue = queue
        self.status_view_limit = status_view_limit

    def enqueue(self, request: EnqueueRequest) -> EnqueueResponse:
        """
        Validate and admit an action.

        Raises:
            InvalidActionError: a required field is missing or invalid
        """
        self._validate(request)

        action = self.queue.admit(
            action_kind=request.action_kind.strip(),
            target_path=request.target_path.strip(),
            method=request.method,
            payload=request.body,
            headers=request.headers,
            owner_id=request.owner_id,
        )

        return EnqueueResponse(
            queue_id=action.id,
            action_kind=action.action_kind,
            status=action.status,
            submitted_at=action.submitted_at,
        )

    def _validate(self, request: EnqueueRequest) -> None:
        missing = [
            name for name, value in (
                ("actionKind", request.action_kind),
                ("targetPath", request.target_path),
                ("method", request.method),
            )
            if value is None or not value.strip()
        ]
        if request.body is None:
            missing.append("body")
        if missing:
            raise InvalidActionError(f"Missing required field(s): {', '.join(missing)}")

        if request.method.strip().upper() not in SUPPORTED_METHODS:
            raise InvalidActionError(
                f"Unsupported method '{request.method}'; "
                f"expected one of {', '.join(SUPPORTED_METHODS)}"
            )

        target = request.target_path.strip()
        if not target.startswith("/"):
            raise InvalidActionError("targetPath must be an absolute path starting with '/'")
        if is_reserved_path(target):
            raise InvalidActionError(f"targetPath '{target}' is served by the queue itself")

    def status(self, owner_id: Optional[str] = None) -> QueueStatusResponse:
        """
        Queue statistics plus an action listing.

        With an owner, every action that owner submitted; otherwise the
        oldest pending actions, capped at status_view_limit.
        """
        if owner_id:
            actions = self.queue.by_owner(owner_id)
        else:
            actions = self.queue.pending()[:self.status_view_limit]

        return QueueStatusResponse(
            stats=self.queue.stats(),
            actions=[QueuedActionView.from_action(a) for a in actions]
        )

    def get(self, queue_id: str) -> Optional[QueuedAction]:
        return self.queue.get(queue_id)

    def purge(self, queue_id: str) -> bool:
        removed = self.queue.purge(queue_id)
        if removed:
            logger.info(f"Action {queue_id} purged on request")
        return removed
