"""
Service wiring for the API.

One QueueServices instance is built per application and stored on
``app.state``; routes reach it through FastAPI dependencies. Nothing in
the queue lives at module level.
"""

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request

from ..core.config import Settings
from ..core.utils import Clock
from ..queue.action_queue import ActionQueue
from ..queue.admission import QueueAdmissionAPI
from ..queue.dispatcher import Dispatcher, HttpDispatcher
from ..workers.gc import GarbageCollector
from ..workers.replay import ReplayDriver


@dataclass
class QueueServices:
    queue: ActionQueue
    admission: QueueAdmissionAPI
    driver: ReplayDriver
    gc: GarbageCollector
    dispatcher: Dispatcher


def build_services(
    settings: Settings,
    app: Any = None,
    dispatcher: Optional[Dispatcher] = None,
    clock: Optional[Clock] = None
) -> QueueServices:
    """
    Build the queue and everything that operates on it.

    Without an explicit dispatcher, actions are replayed against
    DISPATCH_BASE_URL, or in-process against ``app`` when no base URL
    is configured.
    """
    if dispatcher is None:
        if settings.dispatch.base_url:
            dispatcher = HttpDispatcher(settings.dispatch.base_url, timeout=settings.dispatch.timeout)
        else:
            dispatcher = HttpDispatcher.for_app(app, timeout=settings.dispatch.timeout)

    queue = ActionQueue(settings.queue, clock=clock)
    return QueueServices(
        queue=queue,
        admission=QueueAdmissionAPI(queue, settings.queue.status_view_limit),
        driver=ReplayDriver(queue, dispatcher, timeout=settings.dispatch.timeout),
        gc=GarbageCollector(
            queue,
            retention_seconds=settings.gc.retention_seconds,
            interval_seconds=settings.gc.interval_seconds,
            clock=clock,
        ),
        dispatcher=dispatcher,
    )


def get_services(request: Request) -> QueueServices:
    return request.app.state.services


def get_admission(request: Request) -> QueueAdmissionAPI:
    return request.app.state.services.admission


def get_driver(request: Request) -> ReplayDriver:
    return request.app.state.services.driver
