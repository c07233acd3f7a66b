"""Tests for abuse-prevention event logging."""

from datetime import UTC, datetime
from unittest.mock import patch

from freezegun import freeze_time

from contractor_crm.services.abuse_logger import AbuseEventType, log_abuse_event


class TestLogAbuseEvent:
    """Tests for log_abuse_event."""

    def test_logs_structured_warning(self) -> None:
        """Test that the event is logged as a warning with every field."""
        with (
            freeze_time("2026-03-01 12:00:00"),
            patch("contractor_crm.services.abuse_logger.logger") as mock_logger,
        ):
            event = log_abuse_event(
                AbuseEventType.RATE_LIMIT_BLOCKED,
                ip="203.0.113.7",
                path="/api/v1/crm/lead",
                dimension="ip",
                reason="Exceeded 5 requests in 60s",
            )

        mock_logger.warning.assert_called_once_with(
            "abuse_prevention",
            type="abuse_prevention",
            event_type="rate_limit_blocked",
            occurred_at="2026-03-01T12:00:00+00:00",
            ip="203.0.113.7",
            path="/api/v1/crm/lead",
            dimension="ip",
            reason="Exceeded 5 requests in 60s",
        )
        assert event.timestamp == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def test_optional_fields_omitted(self) -> None:
        """Test that dimension and reason are left out when not given."""
        with patch("contractor_crm.services.abuse_logger.logger") as mock_logger:
            log_abuse_event(AbuseEventType.BOT_VERIFICATION_FAILED, ip="unknown", path="/api/v1/crm/lead")

        kwargs = mock_logger.warning.call_args.kwargs
        assert kwargs["event_type"] == "bot_verification_failed"
        assert "dimension" not in kwargs
        assert "reason" not in kwargs
