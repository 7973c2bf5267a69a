"""
Configuration module for the offline action queue service.

Reads environment variables into immutable config objects. Every value
has a sensible default so the service starts with no configuration at
all; deployments override only what they need.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupRule:
    """
    Describes which payload fields make two admissions "the same intent".

    Attributes:
        fields: Payload keys whose values form the key
        lowercase: Normalize string values (trim + lower) before keying
        bucket_seconds: Fold the admission time into fixed-size windows
    """
    fields: tuple[str, ...]
    lowercase: bool = False
    bucket_seconds: Optional[int] = None


DEFAULT_DEDUP_RULES: dict[str, DedupRule] = {
    "waitlist-signup": DedupRule(fields=("email",), lowercase=True),
    "signup": DedupRule(fields=("email",), lowercase=True),
    "forum-post": DedupRule(fields=("userId", "forumId"), bucket_seconds=5),
}


@dataclass(frozen=True)
class QueueConfig:
    """
    Configuration for the in-memory action queue.

    Attributes:
        max_size: Number of records held before eviction kicks in
        max_attempts: Replay attempts before an action is permanently failed
        eviction_batch: Records evicted each time capacity is hit
        status_view_limit: Cap on the global pending view in status responses
        dedup_rules: Per-action-kind dedup rules
    """
    max_size: int = 1000
    max_attempts: int = 3
    eviction_batch: int = 10
    status_view_limit: int = 50
    dedup_rules: dict[str, DedupRule] = field(
        default_factory=lambda: dict(DEFAULT_DEDUP_RULES)
    )


@dataclass(frozen=True)
class DispatchConfig:
    """
    Configuration for replaying actions against their handlers.

    Attributes:
        base_url: Where handlers live; empty means the hosting app itself
        timeout: Hard per-dispatch limit in seconds, kept under the 10s
            request ceiling of serverless hosts
    """
    base_url: str = ""
    timeout: float = 8.0


@dataclass(frozen=True)
class GCConfig:
    """
    Configuration for the terminal-record garbage collector.

    Attributes:
        retention_seconds: Minimum age before a terminal record is removed
        interval_seconds: Time between sweeps
    """
    retention_seconds: int = 24 * 60 * 60
    interval_seconds: int = 60 * 60


def parse_dedup_rules(raw: Optional[str]) -> dict[str, DedupRule]:
    """
    Parse the QUEUE_DEDUP_RULES environment value.

    The value is a JSON object mapping action kinds to rule objects, e.g.
    ``{"post-like": {"fields": ["userId", "postId"]}}``. Configured kinds
    are merged over the built-in defaults. Malformed input is logged and
    ignored so a bad deploy falls back to the defaults instead of crashing.
    """
    rules = dict(DEFAULT_DEDUP_RULES)
    if not raw:
        return rules

    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"Ignoring malformed QUEUE_DEDUP_RULES: {e}")
        return rules

    if not isinstance(data, dict):
        logger.error("Ignoring QUEUE_DEDUP_RULES: expected a JSON object")
        return rules

    for kind, spec in data.items():
        if not isinstance(spec, dict) or not spec.get("fields"):
            logger.error(f"Ignoring dedup rule for '{kind}': 'fields' is required")
            continue
        bucket = spec.get("bucketSeconds")
        rules[kind] = DedupRule(
            fields=tuple(str(f) for f in spec["fields"]),
            lowercase=bool(spec.get("lowercase", False)),
            bucket_seconds=int(bucket) if bucket else None,
        )

    return rules


class Settings:
    """
    Central settings manager that aggregates all configuration.

    Loads configuration from environment variables with fallbacks
    to default values for development.
    """

    def __init__(self):
        self.queue = QueueConfig(
            max_size=int(os.getenv("QUEUE_MAX_SIZE", "1000")),
            max_attempts=int(os.getenv("QUEUE_MAX_ATTEMPTS", "3")),
            eviction_batch=int(os.getenv("QUEUE_EVICTION_BATCH", "10")),
            status_view_limit=int(os.getenv("QUEUE_STATUS_VIEW_LIMIT", "50")),
            dedup_rules=parse_dedup_rules(os.getenv("QUEUE_DEDUP_RULES")),
        )

        self.dispatch = DispatchConfig(
            base_url=os.getenv("DISPATCH_BASE_URL", ""),
            timeout=float(os.getenv("DISPATCH_TIMEOUT", "8.0")),
        )

        self.gc = GCConfig(
            retention_seconds=int(os.getenv("GC_RETENTION_SECONDS", "86400")),
            interval_seconds=int(os.getenv("GC_INTERVAL_SECONDS", "3600")),
        )

    @property
    def server_port(self) -> int:
        """Server port from environment variable."""
        return int(os.getenv("PORT", "8000"))

    @property
    def log_level(self) -> str:
        """Root log level name."""
        return os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def api_title(self) -> str:
        """API title for OpenAPI documentation."""
        return "Offline Action Queue API"

    @property
    def api_version(self) -> str:
        """API version string."""
        return "1.0.0"

    @property
    def api_description(self) -> str:
        """API description for OpenAPI documentation."""
        return (
            "Holds mutations submitted by offline clients and replays them "
            "against their handlers once connectivity returns."
        )


settings = Settings()
