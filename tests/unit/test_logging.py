"""Unit tests for logging service."""

import structlog

from offer_engine.services.logging_service import configure_logging, mask_phone, redact_sensitive


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_token(self):
        event_dict = {"ultramsg_token": "abc123", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["ultramsg_token"] == "REDACTED"

    def test_redacts_auth_token(self):
        event_dict = {"twilio_auth_token": "secret", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["twilio_auth_token"] == "REDACTED"

    def test_redacts_cron_secret(self):
        event_dict = {"cron_secret": "s3cr3t", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["cron_secret"] == "REDACTED"

    def test_redacts_authorization(self):
        event_dict = {"Authorization": "Bearer abc", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["Authorization"] == "REDACTED"

    def test_masks_phone_numbers(self):
        """Phone-number keys keep only their last four digits."""
        event_dict = {"to": "+971501234567", "phone_number": "+14155238886", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["to"] == "***4567"
        assert result["phone_number"] == "***8886"

    def test_preserves_non_sensitive_fields(self):
        event_dict = {"customer_id": "cust-1", "sent": 3, "event": "offer_batch_completed"}
        result = redact_sensitive(None, None, event_dict)
        assert result == {"customer_id": "cust-1", "sent": 3, "event": "offer_batch_completed"}


class TestMaskPhone:
    def test_short_number_fully_masked(self):
        assert mask_phone("123") == "***"

    def test_formatting_ignored(self):
        assert mask_phone("+971 (50) 123-4567") == "***4567"

    def test_non_string_untouched(self):
        assert mask_phone(None) is None


class TestConfigureLogging:
    def test_configure_logging_sets_level(self):
        configure_logging("DEBUG")
        logger = structlog.get_logger("test")
        assert logger is not None

    def test_unknown_level_falls_back(self):
        configure_logging("NOT_A_LEVEL")
        assert structlog.is_configured()
