"""
Tests for log payload redaction.
"""
from datetime import datetime

from workflow_node_engine.core.redaction import REDACTED, looks_like_secret, redact_sensitive_fields
from workflow_node_engine.models.execution import AIConfig


class TestRedaction:
    def test_sensitive_keys_are_redacted_case_insensitively(self):
        payload = {"API_KEY": "abc", "Password": "hunter2", "name": "ok"}

        assert redact_sensitive_fields(payload) == {"API_KEY": REDACTED, "Password": REDACTED, "name": "ok"}

    def test_nested_structures(self):
        payload = {"headers": {"Authorization": "x"}, "items": [{"token": "t", "id": 1}]}

        assert redact_sensitive_fields(payload) == {
            "headers": {"Authorization": REDACTED},
            "items": [{"token": REDACTED, "id": 1}],
        }

    def test_secret_looking_values_are_redacted(self):
        assert redact_sensitive_fields({"note": "sk-live-abcdef0123456789"}) == {"note": REDACTED}
        assert redact_sensitive_fields("Bearer abcdefghij.klmnopqrst") == REDACTED
        assert redact_sensitive_fields("Basic dXNlcjpwYXNzd29yZA==") == REDACTED
        assert redact_sensitive_fields("eyJhbGciOiJIUzI1NiJ9.eyJzdWIiOiIxIn0.c2ln") == REDACTED
        assert looks_like_secret("hello") is False

    def test_ordinary_text_is_kept(self):
        payload = {
            "text": "Basic plan pricing",
            "headline": "Bearer of good news",
            "lib": "sk-learn",
            "word": "skeleton",
        }

        assert redact_sensitive_fields(payload) == payload

    def test_models_are_dumped_before_redaction(self):
        config = AIConfig(id="cfg", provider="openai", api_key="plain-value")

        redacted = redact_sensitive_fields(config)

        assert redacted["api_key"] == REDACTED
        assert redacted["provider"] == "openai"

    def test_custom_keys(self):
        assert redact_sensitive_fields({"pin": "1234", "password": "x"}, ["pin"]) == {"pin": REDACTED, "password": "x"}

    def test_unserializable_values_are_stringified(self):
        when = datetime(2024, 1, 2, 3, 4, 5)

        assert redact_sensitive_fields({"at": when}) == {"at": str(when)}

    def test_input_is_not_mutated(self):
        payload = {"secret": "x"}

        redact_sensitive_fields(payload)

        assert payload == {"secret": "x"}
