"""
Dedup key derivation for queued actions.

A dedup key identifies "the same intended effect". Which payload fields
matter depends on the action kind and comes from configuration; kinds
without a rule fall back to the whole request.
"""

import hashlib
import logging
from datetime import datetime
from typing import Any, Optional

from ..core.config import DedupRule
from ..core.utils import canonical_json

logger = logging.getLogger(__name__)


class DedupKeyBuilder:
    """
    Builds dedup keys from per-kind rules.

    For a kind with a rule whose fields are all present in the payload,
    the key is the kind plus those field values (optionally normalized
    and bucketed by admission time). Otherwise the key is the kind, the
    target path and a digest of the canonical payload.
    """

    def __init__(self, rules: Optional[dict[str, DedupRule]] = None):
        self.rules = dict(rules or {})

    def build(
        self,
        action_kind: str,
        target_path: str,
        payload: Any,
        submitted_at: datetime
    ) -> str:
        rule = self.rules.get(action_kind)
        if rule is not None and isinstance(payload, dict):
            key = self._from_rule(action_kind, rule, payload, submitted_at)
            if key is not None:
                return key
            logger.debug(
                f"Dedup rule for '{action_kind}' not applicable, "
                "falling back to full payload"
            )
        return self._fallback(action_kind, target_path, payload)

    def _from_rule(
        self,
        action_kind: str,
        rule: DedupRule,
        payload: dict[str, Any],
        submitted_at: datetime
    ) -> Optional[str]:
        parts = []
        for name in rule.fields:
            value = payload.get(name)
            if value is None or value == "":
                return None
            if rule.lowercase and isinstance(value, str):
                value = value.strip().lower()
            parts.append(str(value))

        if rule.bucket_seconds:
            bucket = int(submitted_at.timestamp()) // rule.bucket_seconds
            parts.append(str(bucket))

        return f"{action_kind}:" + "|".join(parts)

    def _fallback(self, action_kind: str, target_path: str, payload: Any) -> str:
        digest = hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
        return f"{action_kind}:{target_path}:{digest[:32]}"
