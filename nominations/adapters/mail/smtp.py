"""
SMTP mail adapter - Implements Mailer protocol over smtplib.
"""

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any

from nominations.domain.exceptions import DeliveryFailed

from .templates import render

logger = logging.getLogger(__name__)


class SmtpMailer:
    """Sends rendered templates through an SMTP relay, one connection per message."""

    def __init__(
        self,
        host: str,
        port: int,
        from_address: str,
        from_name: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = False,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = formataddr((from_name, from_address))
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def build_message(self, template: str, to: str, context: dict[str, Any]) -> EmailMessage:
        subject, body = render(template, context)
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    def send(self, template: str, to: str, context: dict[str, Any]) -> None:
        """
        Render and deliver a message.

        Raises:
            DeliveryFailed: Connection, authentication, or relay refusal
        """
        message = self.build_message(template, to, context)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                if self._use_tls:
                    smtp.starttls()
                if self._username:
                    smtp.login(self._username, self._password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP delivery of %s to %s failed: %s", template, to, e)
            raise DeliveryFailed(f"Could not send {template} email") from e

        logger.info("Sent %s email to %s", template, to)
