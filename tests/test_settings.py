"""
Tests for configuration, structured logging and error types.

Tests verify:
- Heartbeat timing validation
- Settings read from environment variables
- Structured log data reaches handlers and formatters
- Exceptions carry their context
"""

import json
import logging

import pytest

from shared.config.logging import (
    DevelopmentFormatter,
    LogEntry,
    StructuredFormatter,
    get_logger,
    short_id,
)
from shared.config.settings import Settings, validate_timing
from shared.utils.exceptions import ChannelClosedError, ConfigurationError, PresenceError


class TestTimingValidation:
    """Tests for validate_timing()."""

    def test_defaults_are_valid(self):
        assert validate_timing(10.0, 5.0, None) == []

    def test_zero_timeout_is_valid(self):
        assert validate_timing(1.0, 0.0, 30.0) == []

    @pytest.mark.parametrize(
        "interval,timeout,stale,field",
        [
            (0.0, 5.0, None, "ping_interval"),
            (10.0, -1.0, None, "ping_timeout"),
            (10.0, 5.0, 0.0, "stale_client_timeout"),
            (10.0, 5.0, -3.0, "stale_client_timeout"),
        ],
    )
    def test_invalid_values_reported(self, interval, timeout, stale, field):
        errors = validate_timing(interval, timeout, stale)
        assert len(errors) == 1
        assert field in errors[0]

    def test_all_problems_reported_at_once(self):
        assert len(validate_timing(-1.0, -1.0, -1.0)) == 3


class TestSettings:
    """Tests for the pydantic-settings model."""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PRESENCE_PING_INTERVAL", "2.5")
        monkeypatch.setenv("PRESENCE_STALE_CLIENT_TIMEOUT", "60")

        configured = Settings()

        assert configured.presence_ping_interval == 2.5
        assert configured.presence_stale_client_timeout == 60.0
        assert configured.validate_presence_timing() == []

    def test_validate_presence_timing(self):
        configured = Settings(presence_ping_interval=0)
        assert configured.validate_presence_timing()


class TestStructuredLogging:
    """Tests for StructuredLogger and formatters."""

    def test_keyword_data_attached_to_record(self, caplog):
        logger = get_logger("tests.structured")

        with caplog.at_level(logging.INFO, logger="tests.structured"):
            logger.info("Client connected", peer_id="a1", total_clients=2)

        record = caplog.records[-1]
        assert record.getMessage() == "Client connected"
        assert record.extra_data == {"peer_id": "a1", "total_clients": 2}

    def test_disabled_level_is_skipped(self, caplog):
        logger = get_logger("tests.structured.quiet")

        with caplog.at_level(logging.WARNING, logger="tests.structured.quiet"):
            logger.debug("noise", peer_id="a1")

        assert caplog.records == []

    def test_json_formatter_includes_data(self):
        record = logging.LogRecord("presence", logging.INFO, __file__, 1, "Client connected", (), None)
        record.extra_data = {"peer_id": "a1", "total_clients": 2}

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["message"] == "Client connected"
        assert payload["level"] == "INFO"
        assert payload["service"] == "presence-gateway"
        assert payload["peer_id"] == "a1"
        assert payload["data"] == {"total_clients": 2}

    def test_development_formatter_shortens_peer_id(self):
        record = logging.LogRecord("presence", logging.INFO, __file__, 1, "Client disconnected", (), None)
        record.extra_data = {"peer_id": "3f2a9c1b-aaaa-bbbb", "remaining_clients": 1}

        line = DevelopmentFormatter().format(record)

        assert "Client disconnected" in line
        assert "[3f2a9c1b...]" in line
        assert "remaining_clients=1" in line

    def test_short_id(self):
        assert short_id(None) == "<no-peer>"
        assert short_id("abc") == "abc"
        assert short_id("0123456789") == "01234567..."

    def test_log_entry_to_dict(self):
        entry = LogEntry(message="Client disconnected", level="info", context={"peer_id": "a1"}, source="ConnectionManager")
        assert entry.to_dict() == {
            "message": "Client disconnected",
            "level": "info",
            "source": "ConnectionManager",
            "context": {"peer_id": "a1"},
        }
        assert LogEntry(message="x", level="debug").to_dict() == {"message": "x", "level": "debug"}


class TestExceptions:
    """Tests for the error hierarchy."""

    def test_configuration_error(self):
        error = ConfigurationError(["ping_interval must be positive, got 0"])

        assert isinstance(error, PresenceError)
        assert isinstance(error, ValueError)
        assert error.errors == ["ping_interval must be positive, got 0"]
        assert "ping_interval" in str(error)

    def test_channel_closed_error_keeps_context(self):
        error = ChannelClosedError(channel="ws-1")

        assert error.detail == "Channel is closed"
        assert error.context == {"channel": "ws-1"}
