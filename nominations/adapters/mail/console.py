"""
Console mail adapter - Implements Mailer protocol.

This module provides a console-based implementation of the domain's
mailer port, logging rendered messages for demo and development use.
"""

import logging
from typing import Any

from .templates import render

logger = logging.getLogger(__name__)


class ConsoleMailer:
    """
    Implements Mailer protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Messages are rendered exactly as the SMTP adapter would send them.
    """

    def send(self, template: str, to: str, context: dict[str, Any]) -> None:
        """
        Log a rendered email at INFO level (simulates delivery).

        Args:
            template: Template name, e.g. "verify-email"
            to: Recipient email address
            context: Template variables
        """
        subject, body = render(template, context)
        logger.info("[MAIL] To: %s Subject: %s\n%s", to, subject, body)
