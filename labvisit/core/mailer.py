"""SMTP email delivery."""

import asyncio
import smtplib
from email.mime.text import MIMEText

import structlog

from labvisit.config import Settings, settings

logger = structlog.get_logger(__name__)


class EmailSender:
    """Sends plain-text email through the configured SMTP server."""

    def __init__(self, config: Settings = settings):
        self.enabled = config.email_enabled
        self.smtp_host = config.smtp_host
        self.smtp_port = config.smtp_port
        self.smtp_username = config.smtp_username
        self.smtp_password = config.smtp_password
        self.use_tls = config.smtp_use_tls
        self.from_email = config.email_from

    def _build_message(self, to_email: str, subject: str, body: str) -> MIMEText:
        message = MIMEText(body, "plain", "utf-8")
        message["From"] = self.from_email
        message["To"] = to_email
        message["Subject"] = subject
        return message

    def _deliver(self, message: MIMEText) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
            if self.use_tls:
                server.starttls()
            if self.smtp_username and self.smtp_password:
                server.login(self.smtp_username, self.smtp_password)
            server.send_message(message)

    async def send(self, to_email: str, subject: str, body: str) -> bool:
        """
        Send an email.

        Args:
            to_email: Recipient address
            subject: Subject line
            body: Plain-text body

        Returns:
            True if the message was handed to the SMTP server, False if email is disabled

        Raises:
            smtplib.SMTPException: If the SMTP conversation fails
            OSError: If the server cannot be reached
        """
        if not self.enabled:
            logger.info("email_delivery_disabled", to=to_email, subject=subject)
            return False

        message = self._build_message(to_email, subject, body)
        await asyncio.to_thread(self._deliver, message)
        logger.info("email_sent", to=to_email, subject=subject)
        return True
