"""SMTP mail delivery."""

from __future__ import annotations

import asyncio
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, EmailStr, Field, ValidationError

from mail_agent.config import Settings
from mail_agent.core.logging import get_logger
from mail_agent.exceptions import EmailSendError

logger = get_logger(__name__)

# Fixed test message used by /api/joke and the operator scripts
JOKE_SUBJECT = "程序员笑话测试"
JOKE_TEXT = "程序员冷笑话：为什么开发者总是分不清万圣节和圣诞节？因为 Oct 31 == Dec 25。"


@dataclass(frozen=True)
class EmailConfig:
    """SMTP connection settings."""

    host: str
    port: int
    secure: bool
    user: str
    password: str
    sender: Optional[str] = None
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailConfig":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            secure=settings.SMTP_SECURE,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASS,
            sender=settings.smtp_sender,
            timeout=settings.SMTP_TIMEOUT,
        )


class _Envelope(BaseModel):
    to: EmailStr = Field(..., description="Invalid recipient email")
    subject: str = Field(..., min_length=1)


class EmailService:
    """Send mail through a single SMTP server.

    Stateless apart from its configuration, so one instance is shared by all
    requests and sessions.
    """

    def __init__(self, config: EmailConfig) -> None:
        self.config = config
        self.sender = config.sender or config.user

    async def send(
        self,
        to: str,
        subject: str,
        text: Optional[str] = None,
        html: Optional[str] = None,
    ) -> str:
        """Send one message and return its Message-ID.

        Raises:
            EmailSendError: On invalid input or any SMTP failure.
        """
        try:
            _Envelope(to=to, subject=subject)
        except ValidationError as e:
            field = str(e.errors()[0]["loc"][0]) if e.errors() else ""
            if field == "to":
                raise EmailSendError("Invalid recipient", details={"to": to}) from e
            raise EmailSendError("Missing subject") from e
        if not text and not html:
            raise EmailSendError("Missing content: provide text or html")

        message = self._build_message(to, subject, text, html)
        try:
            refused = await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP send failed", host=self.config.host, error=str(e))
            raise EmailSendError(str(e) or e.__class__.__name__, details={"host": self.config.host}) from e

        accepted = [to] if to not in refused else []
        logger.info(
            "SMTP send result",
            accepted=accepted,
            rejected=list(refused),
            message_id=message["Message-ID"],
        )
        return message["Message-ID"]

    def _build_message(
        self,
        to: str,
        subject: str,
        text: Optional[str],
        html: Optional[str],
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        domain = self.sender.rpartition("@")[2] or None
        message["Message-ID"] = make_msgid(domain=domain)
        if text:
            message.set_content(text)
            if html:
                message.add_alternative(html, subtype="html")
        else:
            message.set_content(html, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> Dict[str, Tuple[int, bytes]]:
        cfg = self.config
        if cfg.secure:
            client: smtplib.SMTP = smtplib.SMTP_SSL(
                cfg.host, cfg.port, timeout=cfg.timeout, context=ssl.create_default_context()
            )
        else:
            client = smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout)
        with client:
            if not cfg.secure:
                client.ehlo()
                if client.has_extn("starttls"):
                    client.starttls(context=ssl.create_default_context())
                    client.ehlo()
            if cfg.user:
                client.login(cfg.user, cfg.password)
            return client.send_message(message)


def create_email_service(settings: Settings) -> EmailService:
    """Build the mail service from application settings."""
    return EmailService(EmailConfig.from_settings(settings))
