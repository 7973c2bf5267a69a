"""
Core module containing configuration and utilities.
"""

from .config import settings, Settings, DedupRule
from .utils import generate_queue_id, get_timestamp, utc_now, canonical_json

__all__ = [
    "settings",
    "Settings",
    "DedupRule",
    "generate_queue_id",
    "get_timestamp",
    "utc_now",
    "canonical_json",
]
