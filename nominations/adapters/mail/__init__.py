"""Mail adapters - Console and SMTP delivery."""

from .console import ConsoleMailer
from .smtp import SmtpMailer

__all__ = ["ConsoleMailer", "SmtpMailer"]
