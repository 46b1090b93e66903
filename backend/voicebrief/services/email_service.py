"""
VoiceBrief Backend: Delivery Service
====================================

What:  Sends the summary notification through the SMTP relay.
How:   Builds a multipart/alternative EmailMessage (text + HTML) and hands it
       to the relay with aiosmtplib, so the send is a non-blocking await on
       the event loop.
Who:   VoiceService for immediate sends; DeliveryScheduler for delayed ones;
       the health route for verify().

Failure policy:
    send()    relay rejection or unreachability → DeliveryError. Not retried
              here; no caller in the system retries email sends.
    verify()  never raises. Returns False when the relay cannot be reached
              or rejects the credentials.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Optional

import aiosmtplib

from voicebrief.config import settings
from voicebrief.exceptions import DeliveryError, ValidationError
from voicebrief.schemas.voice import Summary
from voicebrief.services import email_template

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_email_address(value: Optional[str]) -> str:
    """
    Check a recipient address before any relay call.

    Raises:
        ValidationError when the address is missing or malformed.
    """
    if not value or not isinstance(value, str):
        raise ValidationError(message="Email address is required", field="email")
    if not EMAIL_PATTERN.match(value):
        raise ValidationError(message="Invalid email address format", field="email")
    return value


@dataclass(frozen=True)
class DeliveryReceipt:
    message_id: str
    timestamp: str


class EmailService:
    """SMTP-backed Delivery Service."""

    def _sender(self) -> str:
        return formataddr((settings.mail_from_name, settings.smtp_user))

    def _connection_options(self) -> dict:
        return {
            "hostname": settings.smtp_host,
            "port": settings.smtp_port,
            "username": settings.smtp_user or None,
            "password": settings.smtp_pass or None,
            "use_tls": settings.smtp_use_tls,
            "start_tls": settings.smtp_start_tls if not settings.smtp_use_tls else False,
            "validate_certs": settings.smtp_validate_certs,
            "timeout": settings.smtp_timeout,
        }

    def build_message(
        self,
        recipient: str,
        summary: Summary,
        transcript: str,
        moment: Optional[datetime] = None,
    ) -> EmailMessage:
        """Render the notification into a ready-to-send EmailMessage."""
        moment = moment or datetime.now(timezone.utc)
        sender_domain = settings.smtp_user.rpartition("@")[2] or None

        message = EmailMessage()
        message["From"] = self._sender()
        message["To"] = recipient
        message["Subject"] = email_template.render_subject(moment)
        message["Message-ID"] = make_msgid(domain=sender_domain)
        message.set_content(email_template.render_text(summary, transcript, moment))
        message.add_alternative(
            email_template.render_html(summary, transcript, moment, settings.mail_from_name),
            subtype="html",
        )
        return message

    async def send(self, recipient: str, summary: Summary, transcript: str) -> DeliveryReceipt:
        """
        Send the summary to `recipient` now.

        Returns:
            DeliveryReceipt with the Message-ID and the send time (ISO 8601).

        Raises:
            ValidationError: recipient address malformed (no relay call made)
            DeliveryError:   relay rejected the message or was unreachable
        """
        validate_email_address(recipient)
        message = self.build_message(recipient, summary, transcript)
        logger.info("Sending email to %s", recipient)

        try:
            await aiosmtplib.send(message, **self._connection_options())
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("Email send to %s failed: %s", recipient, str(e))
            raise DeliveryError(
                message=f"Failed to send email: {e}",
                context={"error_type": type(e).__name__},
            ) from e

        receipt = DeliveryReceipt(
            message_id=message["Message-ID"],
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("Email sent successfully: %s", receipt.message_id)
        return receipt

    async def verify(self) -> bool:
        """
        Check relay reachability and credentials without sending anything.

        Connects (with STARTTLS/login as configured) and quits.
        """
        client = aiosmtplib.SMTP(**self._connection_options())
        try:
            await client.connect()
            await client.quit()
        except Exception as e:
            logger.warning("Email configuration verification failed: %s", str(e))
            return False
        logger.info("Email configuration verified successfully")
        return True


# ── Singleton Instance ────────────────────────────────────────────────────
email_service = EmailService()
