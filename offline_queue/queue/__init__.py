"""
Queue module: the action store, admission boundary and dispatcher.
"""

from .action_queue import ActionQueue, InvalidActionError
from .admission import QueueAdmissionAPI
from .dedup import DedupKeyBuilder
from .dispatcher import Dispatcher, DispatchResult, HttpDispatcher

__all__ = [
    "ActionQueue",
    "InvalidActionError",
    "QueueAdmissionAPI",
    "DedupKeyBuilder",
    "Dispatcher",
    "DispatchResult",
    "HttpDispatcher",
]
