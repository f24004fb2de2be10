"""
Tests for Job Notifications

Tests cover:
- Email content for success and failure outcomes
- SMTP delivery (STARTTLS and SSL) with a mocked smtplib
- Best-effort async wrapper never raising
"""

import pytest
from unittest.mock import MagicMock, patch

from workforce.config import Settings
from workforce.services.notifications import (
    NotificationConfigError,
    build_job_email,
    notify_job_outcome,
    send_job_completion_email,
)


@pytest.fixture
def smtp_settings():
    return Settings(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="mailer",
        smtp_password="pw",
        smtp_from="Lean Workforce <no-reply@example.com>",
    )


class TestBuildJobEmail:
    """Test message content."""

    def test_success(self, smtp_settings):
        msg = build_job_email("jane@example.com", "cv_processing", "success", settings=smtp_settings)

        assert msg["To"] == "jane@example.com"
        assert msg["Subject"] == "CV processing complete"
        assert "finished successfully" in msg.get_body(preferencelist=("plain",)).get_content()

    def test_failure_includes_error(self, smtp_settings):
        msg = build_job_email(
            "jane@example.com", "skill_map_generation", "failure", "Milestone not found", settings=smtp_settings
        )

        assert msg["Subject"] == "Skill map generation failed"
        assert "Error: Milestone not found" in msg.get_body(preferencelist=("plain",)).get_content()

    def test_has_html_alternative(self, smtp_settings):
        msg = build_job_email("jane@example.com", "fit_score_calculation", "success", settings=smtp_settings)
        assert "<strong>" in msg.get_body(preferencelist=("html",)).get_content()


class TestSendJobCompletionEmail:
    """Test SMTP delivery."""

    def test_requires_host(self):
        with pytest.raises(NotificationConfigError):
            send_job_completion_email("jane@example.com", "cv_processing", "success", settings=Settings(smtp_host=""))

    def test_starttls_delivery(self, smtp_settings):
        with patch("workforce.services.notifications.smtplib.SMTP") as mock_smtp:
            server = mock_smtp.return_value.__enter__.return_value

            send_job_completion_email("jane@example.com", "cv_processing", "success", settings=smtp_settings)

        mock_smtp.assert_called_once_with("smtp.example.com", 587)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "pw")
        sent = server.send_message.call_args.args[0]
        assert sent["Subject"] == "CV processing complete"

    def test_ssl_delivery(self, smtp_settings):
        smtp_settings.smtp_use_ssl = True
        smtp_settings.smtp_port = 465
        with patch("workforce.services.notifications.smtplib.SMTP_SSL") as mock_smtp_ssl:
            server = mock_smtp_ssl.return_value.__enter__.return_value

            send_job_completion_email("jane@example.com", "cv_processing", "failure", "boom", settings=smtp_settings)

        assert mock_smtp_ssl.call_args.args == ("smtp.example.com", 465)
        server.starttls.assert_not_called()
        server.send_message.assert_called_once()


class TestNotifyJobOutcome:
    """Test the best-effort wrapper."""

    @pytest.mark.asyncio
    async def test_no_recipient(self):
        with patch("workforce.services.notifications.send_job_completion_email") as mock_send:
            assert await notify_job_outcome(None, "cv_processing", "success") is False
        mock_send.assert_not_called()

    @pytest.mark.asyncio
    async def test_sent(self):
        with patch("workforce.services.notifications.send_job_completion_email") as mock_send:
            assert await notify_job_outcome("jane@example.com", "cv_processing", "failure", "boom") is True
        mock_send.assert_called_once_with("jane@example.com", "cv_processing", "failure", "boom")

    @pytest.mark.asyncio
    async def test_delivery_failure_is_logged_not_raised(self):
        failing = MagicMock(side_effect=OSError("connection refused"))
        with patch("workforce.services.notifications.send_job_completion_email", failing), \
                patch("workforce.services.notifications.logger") as mock_logger:
            assert await notify_job_outcome("jane@example.com", "cv_processing", "success") is False
        mock_logger.error.assert_called_once()
