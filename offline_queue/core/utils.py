"""
Shared utility functions for the queue service.

ID generation, timestamps, and the JSON helpers used when payloads are
turned into dedup keys or log lines.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

Clock = Callable[[], datetime]


def generate_queue_id() -> str:
    """
    Generate a unique queued action identifier.

    The 'queue_' prefix makes IDs easy to spot in logs.

    Returns:
        A unique ID string in format 'queue_<hex>'
    """
    return f"queue_{uuid.uuid4().hex[:16]}"


def utc_now() -> datetime:
    """Current timezone-aware UTC time."""
    return datetime.now(timezone.utc)


def get_timestamp() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        ISO-formatted UTC timestamp string
    """
    return utc_now().isoformat()


def canonical_json(data: Any) -> str:
    """
    Serialize data to a stable JSON string.

    Keys are sorted so two payloads that differ only in key order
    produce the same string. Unserializable values fall back to str().
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def truncate_string(s: str, max_length: int = 200) -> str:
    """
    Truncate a string to a maximum length for logging and error fields.

    Args:
        s: String to truncate
        max_length: Maximum allowed length

    Returns:
        Original string if short enough, otherwise truncated with ellipsis
    """
    if len(s) <= max_length:
        return s
    return s[:max_length - 3] + "..."
