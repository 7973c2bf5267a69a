"""
Background and on-demand workers operating on the action queue.
"""

from .gc import GarbageCollector
from .replay import ReplayDriver

__all__ = ["GarbageCollector", "ReplayDriver"]
