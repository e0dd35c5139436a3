"""
Unit tests for logging configuration.
"""

from unittest.mock import patch

from pairgallery.logging_config import REDACTED, log_user_action, redact_sensitive


class TestRedactSensitive:
    def test_top_level_credentials_are_masked(self):
        event = redact_sensitive(None, "info", {"event": "sign_in", "password": "hunter2", "email": "a@example.com"})

        assert event == {"event": "sign_in", "password": REDACTED, "email": "a@example.com"}

    def test_nested_credentials_are_masked(self):
        event = redact_sensitive(
            None,
            "warning",
            {"event": "security_event", "context": {"Access_Token": "abc", "details": {"signature": "sig", "n": 1}}},
        )

        assert event["context"] == {"Access_Token": REDACTED, "details": {"signature": REDACTED, "n": 1}}

    def test_other_values_untouched(self):
        event = {"event": "message_sent", "message_id": "m1", "items": ["a"]}

        assert redact_sensitive(None, "info", dict(event)) == event


class TestLogHelpers:
    def test_user_action_logger(self):
        with patch("pairgallery.logging_config.get_logger") as get_logger:
            log_user_action("alex", "photo_uploaded", media_id="img1")

        get_logger.assert_called_once_with("pairgallery.user_actions")
        get_logger.return_value.info.assert_called_once_with(
            "user_action", user_id="alex", action="photo_uploaded", media_id="img1"
        )
