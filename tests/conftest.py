"""
Pytest configuration and fixtures for the offline action queue tests.
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from offline_queue.core.config import QueueConfig, DEFAULT_DEDUP_RULES
from offline_queue.queue.action_queue import ActionQueue
from offline_queue.queue.admission import QueueAdmissionAPI
from offline_queue.queue.dispatcher import DispatchResult
from offline_queue.workers.gc import GarbageCollector
from offline_queue.workers.replay import ReplayDriver


class FakeClock:
    """Manually advanced clock so tests never depend on wall time."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def queue_config():
    """Small queue so capacity behaviour is easy to exercise."""
    return QueueConfig(
        max_size=20,
        max_attempts=3,
        eviction_batch=5,
        status_view_limit=10,
        dedup_rules=dict(DEFAULT_DEDUP_RULES),
    )


@pytest.fixture
def queue(queue_config, clock):
    return ActionQueue(queue_config, clock=clock)


@pytest.fixture
def admission(queue):
    return QueueAdmissionAPI(queue, status_view_limit=10)


@pytest.fixture
def mock_dispatcher():
    """Dispatcher whose handlers all answer 200."""
    dispatcher = AsyncMock()
    dispatcher.dispatch = AsyncMock(return_value=DispatchResult(status_code=200, body="ok"))
    return dispatcher


@pytest.fixture
def driver(queue, mock_dispatcher):
    return ReplayDriver(queue, mock_dispatcher, timeout=0.5)


@pytest.fixture
def collector(queue, clock):
    return GarbageCollector(queue, retention_seconds=24 * 60 * 60, interval_seconds=60, clock=clock)


@pytest.fixture
def signup_body():
    return {"email": "a@example.com", "name": "Ada"}


@pytest.fixture
def admit_like(queue):
    """Admit a post-like action with a distinct payload per call."""
    def _admit(n: int, owner_id=None):
        return queue.admit("post-like", "/api/forum/like", "POST", {"postId": n}, owner_id=owner_id)
    return _admit
