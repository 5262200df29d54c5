"""SMTP provider: outbound submission over aiosmtplib."""

from gpuremail.infrastructure.email.providers.smtp.client import SmtpTransport

__all__ = ["SmtpTransport"]
