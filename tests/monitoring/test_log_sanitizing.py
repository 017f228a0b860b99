"""Tests for log sanitizing processors."""

from app.monitoring.logging import (
    redact_secrets,
    sanitize_event_dict,
    sanitize_headers,
    sanitize_log_message,
)


class TestSanitizers:
    """Tests for message and header sanitizing."""

    def test_control_characters_are_escaped(self) -> None:
        assert sanitize_log_message("a\nb\rc\td\x00") == "a\\nb\\rc\\td"

    def test_sensitive_headers_are_redacted(self) -> None:
        headers = {"Authorization": "Bearer abc", "X-API-Key": "k", "Accept": "json"}
        result = sanitize_headers(headers)
        assert result["Authorization"] == "[REDACTED]"
        assert result["Accept"] == "json"

    def test_tokens_are_redacted(self) -> None:
        message = "rejected Bearer abc.def.ghi for apikey:secret"
        redacted = redact_secrets(message)
        assert "abc.def.ghi" not in redacted
        assert "secret" not in redacted

    def test_event_dict(self) -> None:
        event = {
            "event": "Request from apikey:secret blocked\ninjected",
            "headers": {"authorization": "Bearer abc"},
            "count": 3,
        }
        result = sanitize_event_dict(None, "info", event)
        assert result["event"] == "Request from apikey:[REDACTED] blocked\\ninjected"
        assert result["headers"] == {"authorization": "[REDACTED]"}
        assert result["count"] == 3
