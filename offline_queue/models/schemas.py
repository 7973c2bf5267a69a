"""
Pydantic models for queued actions and the API contracts around them.

Field names are snake_case in Python and camelCase on the wire, which is
what the offline-capable web client sends and expects back.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SUPPORTED_METHODS = ("POST", "PUT", "PATCH", "DELETE")


class ActionStatus(str, Enum):
    """
    Enumeration of queued action states.

    Actions move pending → processing → completed, or back to pending
    when a replay fails with attempts left, or to failed once the
    attempt budget is spent.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ActionStatus.COMPLETED, ActionStatus.FAILED)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================
# Queue Record
# ============================================================

class QueuedAction(CamelModel):
    """
    A client intent held until it can be replayed.

    Attributes:
        id: Opaque identifier assigned at admission
        action_kind: Semantic tag such as "signup" or "post-like"
        target_path: Handler path used on replay
        method: HTTP verb used on replay
        payload: Request body, forwarded verbatim
        headers: Extra headers forwarded on replay
        owner_id: Submitting user or session, used for filtering
        submitted_at: Admission time; drives ordering and retention
        attempts: Replay attempts made so far
        status: Current lifecycle state
        last_error: Most recent failure description
    """
    id: str
    action_kind: str
    target_path: str
    method: str
    payload: Any
    headers: Optional[dict[str, str]] = None
    owner_id: Optional[str] = None
    submitted_at: datetime
    attempts: int = 0
    status: ActionStatus = ActionStatus.PENDING
    last_error: Optional[str] = None
    dedup_key: str = Field(default="", exclude=True)


class QueuedActionView(CamelModel):
    """
    A queued action as shown to status readers.

    Forwarded header values often carry credentials, so only their names
    are exposed.
    """
    id: str
    action_kind: str
    target_path: str
    method: str
    payload: Any
    header_names: list[str] = Field(default_factory=list)
    owner_id: Optional[str] = None
    submitted_at: datetime
    attempts: int = 0
    status: ActionStatus = ActionStatus.PENDING
    last_error: Optional[str] = None

    @classmethod
    def from_action(cls, action: QueuedAction) -> "QueuedActionView":
        data = action.model_dump(exclude={"headers", "dedup_key"})
        return cls(**data, header_names=sorted(action.headers or {}))


# ============================================================
# Request Models
# ============================================================

class EnqueueRequest(CamelModel):
    """
    Body of an enqueue request.

    Fields are optional at the schema level so that missing values are
    reported by admission validation as a 400, not as a schema error.
    """
    action_kind: Optional[str] = Field(default=None, examples=["waitlist-signup"])
    target_path: Optional[str] = Field(default=None, examples=["/api/waitlist"])
    method: Optional[str] = Field(default=None, examples=["POST"])
    body: Any = None
    headers: Optional[dict[str, str]] = None
    owner_id: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "actionKind": "waitlist-signup",
                "targetPath": "/api/waitlist",
                "method": "POST",
                "body": {"email": "player@example.com"},
                "ownerId": "session-123",
            }
        },
    )


class ProcessRequest(CamelModel):
    """
    Selector for a replay pass: explicit ids, one owner, or everything pending.
    """
    ids: Optional[list[str]] = None
    owner_id: Optional[str] = None
    process_all: bool = Field(default=False, alias="all")


# ============================================================
# Response Models
# ============================================================

class EnqueueResponse(CamelModel):
    """Returned as soon as an action is admitted."""
    queue_id: str
    action_kind: str
    status: ActionStatus
    submitted_at: datetime


class ProcessError(CamelModel):
    """One failed action in a replay pass."""
    queue_id: str
    error: str
    will_retry: bool = False


class ProcessSummary(CamelModel):
    """
    Aggregate outcome of a replay pass.

    ``failed`` counts every failed attempt; ``retrying`` is the subset
    that went back to pending and will be picked up by a later pass.
    """
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    retrying: int = 0
    errors: list[ProcessError] = Field(default_factory=list)


class QueueStats(CamelModel):
    """Per-status counts plus configured capacity."""
    total: int
    pending: int
    processing: int
    completed: int
    failed: int
    capacity: int


class QueueStatusResponse(CamelModel):
    stats: QueueStats
    actions: list[QueuedActionView]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    service: str = "offline-action-queue"
    version: str
    queue_size: int
    gc_running: bool
    timestamp: str


class ErrorResponse(BaseModel):
    """Generic error response."""
    error: str
    detail: Optional[Any] = None
    timestamp: str
