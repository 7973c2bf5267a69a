"""
Models module containing Pydantic schemas.
"""

from .schemas import (
    SUPPORTED_METHODS,
    ActionStatus,
    QueuedAction,
    QueuedActionView,
    EnqueueRequest,
    EnqueueResponse,
    ProcessRequest,
    ProcessError,
    ProcessSummary,
    QueueStats,
    QueueStatusResponse,
    HealthResponse,
    ErrorResponse
)

__all__ = [
    "SUPPORTED_METHODS",
    "ActionStatus",
    "QueuedAction",
    "QueuedActionView",
    "EnqueueRequest",
    "EnqueueResponse",
    "ProcessRequest",
    "ProcessError",
    "ProcessSummary",
    "QueueStats",
    "QueueStatusResponse",
    "HealthResponse",
    "ErrorResponse"
]
