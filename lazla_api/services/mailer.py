"""
Email delivery - sender interface, SMTP and console implementations.

The SMTP client is blocking, so sends run in a worker thread.
"""

import asyncio
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from html import escape

from lazla_api.config import settings
from lazla_api.exceptions import DependencyFailureError
from lazla_api.observability.logging import get_logger

logger = get_logger(__name__)

OTP_SUBJECT = "Your Verification OTP"
BRAND_NAME = "Lazla"


class EmailSender(ABC):
    """Abstract base class for email senders."""

    @abstractmethod
    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> None:
        """
        Send an email.

        Raises:
            DependencyFailureError: The message could not be handed to the transport
        """


class SmtpEmailSender(EmailSender):
    """Sends mail through an authenticated SMTP relay."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        from_email: str | None = None,
        use_ssl: bool | None = None,
        timeout: int | None = None,
    ) -> None:
        self.host = host or settings.smtp_host
        self.port = port or settings.smtp_port
        self.username = username or settings.smtp_user
        self.password = password or settings.smtp_pass
        self.from_email = from_email or settings.from_email
        self.use_ssl = settings.smtp_secure if use_ssl is None else use_ssl
        self.timeout = timeout or settings.smtp_timeout_seconds

    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> None:
        message = self._build_message(to, subject, html_body, text_body)
        try:
            await asyncio.to_thread(self._deliver, to, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("email_send_failed", to=to, subject=subject, error=str(e))
            raise DependencyFailureError("email", "failed to send email") from e
        logger.info("email_sent", to=to, subject=subject)

    def _build_message(
        self, to: str, subject: str, html_body: str, text_body: str | None
    ) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = formataddr((BRAND_NAME, self.from_email))
        message["To"] = to
        if text_body:
            message.attach(MIMEText(text_body, "plain", "utf-8"))
        message.attach(MIMEText(html_body, "html", "utf-8"))
        return message

    def _deliver(self, to: str, message: MIMEMultipart) -> None:
        if self.use_ssl:
            server: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        with server:
            if not self.use_ssl:
                server.starttls()
            server.login(self.username, self.password)
            server.sendmail(self.from_email, [to], message.as_string())


class ConsoleEmailSender(EmailSender):
    """Development sender that logs instead of delivering."""

    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> None:
        logger.info("email_console_delivery", to=to, subject=subject, body_length=len(html_body))


def render_otp_email(code: str, ttl_minutes: int) -> tuple[str, str]:
    """Return (html, text) bodies for a verification code email."""
    safe_code = escape(code)
    html = f"""\
<div style="font-family: Arial, sans-serif; max-width: 480px; margin: 0 auto;">
  <h2 style="color: #222;">{BRAND_NAME} email verification</h2>
  <p>Use the code below to verify your email address:</p>
  <p style="font-size: 28px; font-weight: bold; letter-spacing: 6px;">{safe_code}</p>
  <p>Code expires in {ttl_minutes} minutes.</p>
  <p style="color: #888; font-size: 12px;">
    If you did not sign up for {BRAND_NAME}, ignore this email.
  </p>
</div>
"""
    text = (
        f"Your {BRAND_NAME} verification code is {code}. "
        f"Code expires in {ttl_minutes} minutes."
    )
    return html, text


async def send_otp_email(sender: EmailSender, to: str, code: str, ttl_minutes: int) -> None:
    """Send a verification code; raises DependencyFailureError on transport failure."""
    html, text = render_otp_email(code, ttl_minutes)
    await sender.send(to, OTP_SUBJECT, html, text)


_sender_instance: EmailSender | None = None


def get_email_sender() -> EmailSender:
    """Get configured email sender instance."""
    global _sender_instance

    if _sender_instance is None:
        if settings.email_backend == "console":
            _sender_instance = ConsoleEmailSender()
        else:
            _sender_instance = SmtpEmailSender()

    return _sender_instance
