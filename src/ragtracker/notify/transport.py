"""E-mail transports.

When no SMTP host is configured the transport runs in log-only mode: messages
are logged and reported as sent.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

from ragtracker.config import Config
from ragtracker.errors import TransportFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    subject: str
    html: str


class Transport(ABC):
    """Delivers one message to one recipient."""

    @abstractmethod
    async def send(self, message: OutboundEmail) -> str:
        """Send a message. Returns a message id; raises TransportFailure."""


class SmtpTransport(Transport):
    def __init__(self, config: Config, *, timeout: float = 30.0) -> None:
        self.config = config
        self.timeout = timeout

    async def send(self, message: OutboundEmail) -> str:
        if not self.config.smtp_enabled:
            message_id = f"<logged-{uuid.uuid4().hex[:12]}@ragtracker>"
            logger.info(
                "SMTP not configured, logging e-mail to %s: %s", message.to, message.subject
            )
            return message_id
        return await asyncio.to_thread(self._send_sync, message)

    def _send_sync(self, message: OutboundEmail) -> str:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.config.email_from
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg["Message-ID"] = make_msgid(domain="ragtracker")
        msg.attach(MIMEText(message.html, "html", "utf-8"))

        try:
            if self.config.smtp_port == 465:
                server: smtplib.SMTP = smtplib.SMTP_SSL(
                    self.config.smtp_host, self.config.smtp_port, timeout=self.timeout
                )
            else:
                server = smtplib.SMTP(
                    self.config.smtp_host, self.config.smtp_port, timeout=self.timeout
                )
            with server:
                if self.config.smtp_use_tls and self.config.smtp_port != 465:
                    server.starttls()
                if self.config.smtp_user:
                    server.login(self.config.smtp_user, self.config.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise TransportFailure(message.to, str(e)) from e

        return msg["Message-ID"]
