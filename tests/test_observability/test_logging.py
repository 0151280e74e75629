"""
Tests for the structlog processors added to every event.
"""

from shelflife.config import settings
from shelflife.observability.logging import REDACTED, add_app_name, redact_secrets


class TestAppName:

    def test_stamps_app_name(self, monkeypatch):
        monkeypatch.setattr(settings, "APP_NAME", "shelflife-test")
        event = add_app_name(None, "info", {"event": "sync_started"})
        assert event["app"] == "shelflife-test"

    def test_upstream_service_field_untouched(self):
        event = add_app_name(None, "info", {"event": "service_call", "service": "radarr"})
        assert event["service"] == "radarr"
        assert event["app"] == settings.APP_NAME


class TestRedactSecrets:

    def test_masks_api_keys(self):
        event = redact_secrets(None, "info", {"event": "client_built", "api_key": "abc123", "X-Api-Key": "xyz"})
        assert event["api_key"] == REDACTED
        assert event["X-Api-Key"] == REDACTED

    def test_leaves_other_fields_and_empty_keys(self):
        event = redact_secrets(None, "info", {"event": "client_built", "url": "http://radarr:7878", "api_key": None})
        assert event["url"] == "http://radarr:7878"
        assert event["api_key"] is None
