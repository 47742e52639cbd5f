"""
Tests for email senders and the OTP email template.
"""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from lazla_api.exceptions import DependencyFailureError
from lazla_api.services.mailer import (
    OTP_SUBJECT,
    ConsoleEmailSender,
    SmtpEmailSender,
    get_email_sender,
    render_otp_email,
    send_otp_email,
)

from conftest import RecordingEmailSender


@pytest.fixture
def smtp_sender() -> SmtpEmailSender:
    return SmtpEmailSender(
        host="smtp.example.com",
        port=587,
        username="mailer",
        password="secret",
        from_email="no-reply@lazla.example",
        use_ssl=False,
        timeout=5,
    )


class TestRenderOtpEmail:
    """Tests for the verification email body."""

    def test_contains_code_and_expiry(self):
        html, text = render_otp_email("042917", 15)
        assert "042917" in html
        assert "042917" in text
        assert "Code expires in 15 minutes" in html
        assert "Code expires in 15 minutes" in text

    async def test_send_otp_email_uses_subject(self):
        sender = RecordingEmailSender()
        await send_otp_email(sender, "user@example.com", "123456", 15)
        assert sender.sent[0]["to"] == "user@example.com"
        assert sender.sent[0]["subject"] == OTP_SUBJECT
        assert sender.last_code("user@example.com") == "123456"


class TestSmtpEmailSender:
    """Tests for SmtpEmailSender with smtplib patched."""

    async def test_starttls_login_send(self, smtp_sender: SmtpEmailSender):
        server = MagicMock()
        server.__enter__ = MagicMock(return_value=server)
        server.__exit__ = MagicMock(return_value=False)
        with patch("lazla_api.services.mailer.smtplib.SMTP", return_value=server) as smtp_cls:
            await smtp_sender.send("user@example.com", "Hi", "<p>Hi</p>", "Hi")

        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=5)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "secret")
        from_addr, to_addrs, body = server.sendmail.call_args.args
        assert from_addr == "no-reply@lazla.example"
        assert to_addrs == ["user@example.com"]
        assert "Subject: Hi" in body

    async def test_implicit_tls(self, smtp_sender: SmtpEmailSender):
        smtp_sender.use_ssl = True
        server = MagicMock()
        server.__enter__ = MagicMock(return_value=server)
        server.__exit__ = MagicMock(return_value=False)
        with patch("lazla_api.services.mailer.smtplib.SMTP_SSL", return_value=server):
            await smtp_sender.send("user@example.com", "Hi", "<p>Hi</p>")

        server.starttls.assert_not_called()
        server.sendmail.assert_called_once()

    async def test_smtp_error_becomes_dependency_failure(self, smtp_sender: SmtpEmailSender):
        server = MagicMock()
        server.__enter__ = MagicMock(return_value=server)
        server.__exit__ = MagicMock(return_value=False)
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        with patch("lazla_api.services.mailer.smtplib.SMTP", return_value=server):
            with pytest.raises(DependencyFailureError) as exc_info:
                await smtp_sender.send("user@example.com", "Hi", "<p>Hi</p>")
        assert exc_info.value.message == "failed to send email"

    async def test_connection_error_becomes_dependency_failure(
        self, smtp_sender: SmtpEmailSender
    ):
        with patch(
            "lazla_api.services.mailer.smtplib.SMTP", side_effect=ConnectionRefusedError()
        ):
            with pytest.raises(DependencyFailureError):
                await smtp_sender.send("user@example.com", "Hi", "<p>Hi</p>")


class TestFactory:
    """Tests for get_email_sender."""

    def test_console_backend(self):
        """Test environment configures the console backend."""
        assert isinstance(get_email_sender(), ConsoleEmailSender)

    async def test_console_sender_does_not_raise(self):
        await ConsoleEmailSender().send("user@example.com", "Hi", "<p>Hi</p>")
