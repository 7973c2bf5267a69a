"""
API Routes - FastAPI endpoints for the offline action queue.

- POST /queue: Admit an action a client could not deliver while offline
- POST /queue/process: Replay a selection of queued actions
- GET /queue/status: Queue statistics and action listing
- GET /queue/{queue_id}: A single queued action
- DELETE /queue/{queue_id}: Drop a queued action

Enqueue never waits for the replay; clients poll status to learn the
final outcome of their actions.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..core.config import settings
from ..core.utils import get_timestamp
from ..models.schemas import (
    EnqueueRequest,
    EnqueueResponse,
    ErrorResponse,
    HealthResponse,
    ProcessRequest,
    ProcessSummary,
    QueuedActionView,
    QueueStatusResponse,
)
from ..queue.admission import QueueAdmissionAPI
from ..workers.replay import ReplayDriver
from .deps import QueueServices, get_admission, get_driver, get_services

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================
# Queue Endpoints
# ============================================================

@router.post(
    "/queue",
    response_model=EnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue an action for replay",
    description="""
    Queue a mutation that a client could not deliver while offline.

    A duplicate of an action that is still pending (same action kind and
    same dedup-relevant payload fields) returns the existing queue entry
    instead of creating a second one.
    """,
    responses={
        202: {"description": "Action queued"},
        400: {"model": ErrorResponse, "description": "Malformed action"}
    }
)
async def enqueue_action(
    payload: EnqueueRequest,
    admission: QueueAdmissionAPI = Depends(get_admission)
) -> EnqueueResponse:
    return admission.enqueue(payload)


@router.post(
    "/queue/process",
    response_model=ProcessSummary,
    summary="Replay queued actions",
    description="""
    Replay queued actions against their handlers, oldest first.

    Select with exactly one of:
    - **ids**: specific queue ids
    - **ownerId**: every pending action of one user/session
    - **all**: every pending action

    Each dispatch is bounded by a timeout and one failure never aborts
    the rest of the batch.
    """
)
async def process_queue(
    selector: ProcessRequest,
    driver: ReplayDriver = Depends(get_driver)
) -> ProcessSummary:
    return await driver.process(selector)


@router.get(
    "/queue/status",
    response_model=QueueStatusResponse,
    summary="Queue status",
    description="Per-status counts, plus either one owner's actions or the oldest pending ones."
)
async def queue_status(
    owner_id: Optional[str] = Query(default=None, alias="ownerId"),
    admission: QueueAdmissionAPI = Depends(get_admission)
) -> QueueStatusResponse:
    return admission.status(owner_id)


@router.get(
    "/queue/{queue_id}",
    response_model=QueuedActionView,
    summary="Get a queued action",
    responses={404: {"description": "Action not found or already collected"}}
)
async def get_action(
    queue_id: str,
    admission: QueueAdmissionAPI = Depends(get_admission)
) -> QueuedActionView:
    action = admission.get(queue_id)
    if action is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Action '{queue_id}' not found or has been collected"
        )
    return QueuedActionView.from_action(action)


@router.delete(
    "/queue/{queue_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a queued action",
    responses={404: {"description": "Action not found"}}
)
async def purge_action(
    queue_id: str,
    admission: QueueAdmissionAPI = Depends(get_admission)
) -> Response:
    if not admission.purge(queue_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Action '{queue_id}' not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================
# Utility Endpoints
# ============================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check"
)
async def health_check(services: QueueServices = Depends(get_services)) -> HealthResponse:
    return HealthResponse(
        status="healthy" if services.gc.running else "degraded",
        version=settings.api_version,
        queue_size=len(services.queue),
        gc_running=services.gc.running,
        timestamp=get_timestamp()
    )
