"""
Unit tests for dedup key derivation and dedup rule configuration.
"""
from datetime import datetime, timezone

from offline_queue.core.config import DEFAULT_DEDUP_RULES, DedupRule, Settings, parse_dedup_rules
from offline_queue.queue.dedup import DedupKeyBuilder

NOON = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestDedupKeyBuilder:
    """Test cases for DedupKeyBuilder.build."""

    def setup_method(self):
        self.builder = DedupKeyBuilder(DEFAULT_DEDUP_RULES)

    def test_signup_keyed_on_normalized_email(self):
        key = self.builder.build("waitlist-signup", "/api/waitlist", {"email": "  Ada@Example.COM"}, NOON)
        assert key == "waitlist-signup:ada@example.com"

    def test_signup_ignores_other_fields(self):
        a = self.builder.build("signup", "/api/waitlist", {"email": "a@example.com", "name": "A"}, NOON)
        b = self.builder.build("signup", "/api/other", {"email": "a@example.com", "name": "B"}, NOON)
        assert a == b

    def test_forum_post_bucketed(self):
        body = {"userId": "u1", "forumId": "f1"}
        bucket = int(NOON.timestamp()) // 5
        assert self.builder.build("forum-post", "/p", body, NOON) == f"forum-post:u1|f1|{bucket}"

    def test_empty_field_falls_back(self):
        key = self.builder.build("signup", "/api/waitlist", {"email": ""}, NOON)
        assert key.startswith("signup:/api/waitlist:")

    def test_non_dict_payload_falls_back(self):
        key = self.builder.build("signup", "/api/waitlist", ["a@example.com"], NOON)
        assert key.startswith("signup:/api/waitlist:")

    def test_fallback_includes_path(self):
        a = self.builder.build("post-delete", "/api/forum/posts/1", {}, NOON)
        b = self.builder.build("post-delete", "/api/forum/posts/2", {}, NOON)
        assert a != b

    def test_no_rules(self):
        builder = DedupKeyBuilder()
        a = builder.build("signup", "/api/waitlist", {"email": "a@example.com", "n": 1}, NOON)
        b = builder.build("signup", "/api/waitlist", {"email": "a@example.com", "n": 2}, NOON)
        assert a != b


class TestDedupRuleConfig:
    """Test cases for QUEUE_DEDUP_RULES parsing."""

    def test_defaults_when_unset(self):
        assert parse_dedup_rules(None) == DEFAULT_DEDUP_RULES
        assert parse_dedup_rules("") == DEFAULT_DEDUP_RULES

    def test_configured_rule_merged_over_defaults(self):
        rules = parse_dedup_rules(
            '{"post-like": {"fields": ["userId", "postId"]},'
            ' "signup": {"fields": ["phone"], "bucketSeconds": 60}}'
        )

        assert rules["post-like"] == DedupRule(fields=("userId", "postId"))
        assert rules["signup"] == DedupRule(fields=("phone",), bucket_seconds=60)
        assert rules["forum-post"] == DEFAULT_DEDUP_RULES["forum-post"]

    def test_malformed_json_ignored(self):
        assert parse_dedup_rules("{not json") == DEFAULT_DEDUP_RULES

    def test_non_object_ignored(self):
        assert parse_dedup_rules('["signup"]') == DEFAULT_DEDUP_RULES

    def test_rule_without_fields_skipped(self):
        rules = parse_dedup_rules('{"post-like": {"lowercase": true}}')
        assert "post-like" not in rules

    def test_settings_read_environment(self, monkeypatch):
        monkeypatch.setenv("QUEUE_MAX_SIZE", "5")
        monkeypatch.setenv("QUEUE_MAX_ATTEMPTS", "7")
        monkeypatch.setenv("DISPATCH_TIMEOUT", "2.5")
        monkeypatch.setenv("DISPATCH_BASE_URL", "http://handlers:3000")
        monkeypatch.setenv("QUEUE_DEDUP_RULES", '{"post-like": {"fields": ["postId"]}}')

        config = Settings()

        assert config.queue.max_size == 5
        assert config.queue.max_attempts == 7
        assert config.dispatch.timeout == 2.5
        assert config.dispatch.base_url == "http://handlers:3000"
        assert config.queue.dedup_rules["post-like"].fields == ("postId",)
        assert config.gc.retention_seconds == 86400
